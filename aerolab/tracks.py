"""
Benchmark circuit catalog.

Track attributes drive both the optimal setup ranges and the context sent
to the oracle with every request.
"""

from dataclasses import dataclass
from typing import Dict, Any, List, Tuple

from .errors import TrackNotFoundError


DOWNFORCE_LEVELS = ("low", "medium", "high", "max")
ABRASIVENESS_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class Track:
    """A benchmark circuit."""
    id: str
    name: str
    country: str
    type: str
    downforce_level: str  # "low", "medium", "high", "max"
    abrasiveness: str  # "low", "medium", "high"
    key_features: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the oracle's camelCase field names."""
        return {
            "id": self.id,
            "name": self.name,
            "country": self.country,
            "type": self.type,
            "downforceLevel": self.downforce_level,
            "abrasiveness": self.abrasiveness,
            "keyFeatures": self.key_features,
        }


# =============================================================================
# TRACKS
# =============================================================================

TRACKS: Tuple[Track, ...] = (
    Track(
        id="catalunya",
        name="Circuit de Barcelona-Catalunya",
        country="Spain",
        type="Balanced, Technical",
        downforce_level="high",
        abrasiveness="high",
        key_features=(
            "A mix of high-speed and low-speed corners, long main straight. "
            "A comprehensive test of car performance."
        ),
    ),
    Track(
        id="monza",
        name="Autodromo Nazionale Monza",
        country="Italy",
        type='High-Speed, "Temple of Speed"',
        downforce_level="low",
        abrasiveness="medium",
        key_features=(
            "Longest straights on the calendar, heavy braking zones into tight "
            "chicanes. Requires minimal drag and maximum power."
        ),
    ),
    Track(
        id="monaco",
        name="Circuit de Monaco",
        country="Monaco",
        type="Street Circuit, Slow & Tight",
        downforce_level="max",
        abrasiveness="low",
        key_features=(
            "Narrow, twisty streets with no room for error. Requires maximum "
            "downforce, agility, and driver precision."
        ),
    ),
    Track(
        id="silverstone",
        name="Silverstone Circuit",
        country="UK",
        type="High-Speed, Sweeping Corners",
        downforce_level="high",
        abrasiveness="high",
        key_features=(
            "Famous for its high-speed corner sequences like Maggots and "
            "Becketts. Demands aerodynamic stability and efficiency."
        ),
    ),
    Track(
        id="spa",
        name="Circuit de Spa-Francorchamps",
        country="Belgium",
        type="High-Speed, Elevation Changes",
        downforce_level="medium",
        abrasiveness="medium",
        key_features=(
            "A long lap with significant elevation changes, including the "
            "iconic Eau Rouge. A mix of long straights and challenging corners."
        ),
    ),
)

_TRACKS_BY_ID: Dict[str, Track] = {track.id: track for track in TRACKS}


# =============================================================================
# LOOKUP
# =============================================================================

def list_tracks() -> List[Track]:
    """Return all tracks in catalog order."""
    return list(TRACKS)


def get_track(track_id: str) -> Track:
    """
    Look up a track by id.

    Args:
        track_id: Catalog id, e.g. "monaco".

    Returns:
        The matching Track.

    Raises:
        TrackNotFoundError: If the id is not in the catalog.
    """
    track = _TRACKS_BY_ID.get(track_id)
    if track is None:
        raise TrackNotFoundError(track_id)
    return track


def require_catalog_track(track: Track) -> Track:
    """
    Ensure a Track object is an unmodified catalog entry.

    Raises:
        TrackNotFoundError: If the id is unknown or the record differs
            from the catalog.
    """
    known = get_track(track.id)
    if known != track:
        raise TrackNotFoundError(track.id)
    return known
