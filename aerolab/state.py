"""
Configurator state and the transitions between states.

Every user event maps to one reducer that takes the current state and
returns a new one. Results of oracle requests carry the sequence number
of the request that produced them; results from a superseded request are
ignored.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple, List

from .analysis import AnalysisResult
from .imaging import FlowImage
from .metrics import PerformanceMetrics
from .parameters import (
    CarParameters,
    OptimalRangeTable,
    auto_optimize,
    compute_optimal_ranges,
    set_parameter,
)
from .sensitivity import SensitivityDataPoint
from .tracks import get_track


@dataclass(frozen=True)
class ConfiguratorState:
    """Snapshot of everything the configurator displays."""
    params: CarParameters
    track_id: str
    optimal_ranges: OptimalRangeTable

    # Analysis
    metrics: Optional[PerformanceMetrics] = None
    analysis: str = ""
    flow_image: Optional[FlowImage] = None
    baseline: Optional[PerformanceMetrics] = None
    is_loading: bool = False
    error: Optional[str] = None
    analysis_seq: int = 0

    # Sensitivity sweep
    sweep_variable: Optional[str] = None
    sweep_points: Optional[Tuple[SensitivityDataPoint, ...]] = None
    sweep_loading: bool = False
    sweep_error: Optional[str] = None
    sweep_seq: int = 0

    @property
    def can_export(self) -> bool:
        return self.metrics is not None and not self.is_loading

    @property
    def can_toggle_baseline(self) -> bool:
        return self.metrics is not None and not self.is_loading


def initial_state(
    track_id: str,
    params: Optional[CarParameters] = None,
) -> ConfiguratorState:
    """
    Starting state for a track.

    Raises:
        TrackNotFoundError: If the track id is unknown.
    """
    track = get_track(track_id)
    return ConfiguratorState(
        params=params or CarParameters(),
        track_id=track.id,
        optimal_ranges=compute_optimal_ranges(track),
    )


# =============================================================================
# CONFIGURATION EVENTS
# =============================================================================

def apply_parameter_edit(
    state: ConfiguratorState,
    name: str,
    value: float,
) -> ConfiguratorState:
    """Slider moved."""
    return replace(state, params=set_parameter(state.params, name, value))


def load_parameters(
    state: ConfiguratorState,
    params: CarParameters,
) -> ConfiguratorState:
    """Whole configuration replaced; downforce drives the aero fields."""
    return replace(
        state,
        params=set_parameter(params, "aeroDownforce", params.aero_downforce),
    )


def select_track(state: ConfiguratorState, track_id: str) -> ConfiguratorState:
    """
    Track selector changed; optimal ranges follow the new track.

    Raises:
        TrackNotFoundError: If the track id is unknown.
    """
    track = get_track(track_id)
    return replace(
        state,
        track_id=track.id,
        optimal_ranges=compute_optimal_ranges(track),
    )


def apply_auto_optimize(state: ConfiguratorState) -> ConfiguratorState:
    """Auto-config button pressed."""
    return replace(state, params=auto_optimize(state.params, state.optimal_ranges))


def toggle_baseline(state: ConfiguratorState) -> ConfiguratorState:
    """Compare button pressed: snapshot current metrics, or clear the snapshot."""
    if state.metrics is None:
        return state
    if state.baseline is not None:
        return replace(state, baseline=None)
    return replace(state, baseline=state.metrics)


# =============================================================================
# ANALYSIS EVENTS
# =============================================================================

def begin_analysis(state: ConfiguratorState, seq: int) -> ConfiguratorState:
    """Analyze pressed: clear previous results and mark loading."""
    return replace(
        state,
        metrics=None,
        analysis="",
        flow_image=None,
        is_loading=True,
        error=None,
        analysis_seq=seq,
    )


def complete_analysis(
    state: ConfiguratorState,
    seq: int,
    result: AnalysisResult,
    image: Optional[FlowImage],
) -> ConfiguratorState:
    """Analysis and image requests both resolved."""
    if seq != state.analysis_seq:
        return state
    return replace(
        state,
        metrics=result.metrics,
        analysis=result.analysis,
        flow_image=image,
        is_loading=False,
        error=None,
    )


def fail_analysis(
    state: ConfiguratorState,
    seq: int,
    message: str,
) -> ConfiguratorState:
    """Analysis failed: no partial results are kept."""
    if seq != state.analysis_seq:
        return state
    return replace(
        state,
        metrics=None,
        analysis="",
        flow_image=None,
        is_loading=False,
        error=message,
    )


# =============================================================================
# SENSITIVITY EVENTS
# =============================================================================

def begin_sweep(
    state: ConfiguratorState,
    seq: int,
    variable: str,
) -> ConfiguratorState:
    """Sweep requested for a variable."""
    return replace(
        state,
        sweep_variable=variable,
        sweep_points=None,
        sweep_loading=True,
        sweep_error=None,
        sweep_seq=seq,
    )


def complete_sweep(
    state: ConfiguratorState,
    seq: int,
    points: List[SensitivityDataPoint],
) -> ConfiguratorState:
    """Sweep points received."""
    if seq != state.sweep_seq:
        return state
    return replace(
        state,
        sweep_points=tuple(points),
        sweep_loading=False,
        sweep_error=None,
    )


def fail_sweep(
    state: ConfiguratorState,
    seq: int,
    message: str,
) -> ConfiguratorState:
    """Sweep failed: no partial point list is kept."""
    if seq != state.sweep_seq:
        return state
    return replace(
        state,
        sweep_points=None,
        sweep_loading=False,
        sweep_error=message,
    )
