"""
Performance metrics returned by the oracle, and comparisons between runs.
"""

import math
from dataclasses import dataclass
from typing import Dict, Any, Optional, Union

from .errors import SchemaError


# Wire name -> attribute name
METRIC_NAMES: Dict[str, str] = {
    "topSpeedKmh": "top_speed_kmh",
    "brakingEfficiency": "braking_efficiency",
    "maxCorneringG": "max_cornering_g",
    "lowSpeedGrip": "low_speed_grip",
    "tractionScore": "traction_score",
    "tyreWearIndex": "tyre_wear_index",
    "energyRecoveryEfficiency": "energy_recovery_efficiency",
    "lapTimePotential": "lap_time_potential",
    "chassisResponsiveness": "chassis_responsiveness",
    "highSpeedStability": "high_speed_stability",
    "simulatedLapTime": "simulated_lap_time",
}

STRING_METRICS = ("simulatedLapTime",)

# Metrics where a smaller number is the better result
LOWER_IS_BETTER = ("tyreWearIndex", "lapTimePotential")

LAP_TIME_NEUTRAL_SEC = 0.001
METRIC_NEUTRAL_DELTA = 0.01

MetricValue = Union[float, str]


@dataclass(frozen=True)
class PerformanceMetrics:
    """Full metrics set from one analysis run."""
    top_speed_kmh: float
    braking_efficiency: float  # 0-100
    max_cornering_g: float
    low_speed_grip: float  # 0-100
    traction_score: float  # 0-100
    tyre_wear_index: float  # 1-10, lower is better
    energy_recovery_efficiency: float  # 0-100
    lap_time_potential: float  # 1-10, lower is better
    chassis_responsiveness: float  # 0-100
    high_speed_stability: float  # 0-100
    simulated_lap_time: str  # "M:SS.mmm"

    def get(self, name: str) -> MetricValue:
        """Read a metric by wire name."""
        return getattr(self, METRIC_NAMES[name])

    def to_dict(self) -> Dict[str, MetricValue]:
        """Serialize using wire names, in schema order."""
        return {wire: getattr(self, attr) for wire, attr in METRIC_NAMES.items()}


def finite_number(value: Any) -> Optional[float]:
    """A JSON number as a finite float; None for NaN, Infinity, bools and non-numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _check_value(name: str, value: Any) -> MetricValue:
    """Type-check a single metric value."""
    if name in STRING_METRICS:
        if not isinstance(value, str) or not value.strip():
            raise SchemaError(f"Metric {name} must be a non-empty string")
        return value.strip()
    number = finite_number(value)
    if number is None:
        raise SchemaError(f"Metric {name} must be a finite number, got {value!r}")
    return number


def parse_metrics(payload: Any) -> PerformanceMetrics:
    """
    Validate a full metrics object from the oracle.

    Args:
        payload: Decoded JSON object.

    Returns:
        PerformanceMetrics with every field populated.

    Raises:
        SchemaError: If the payload is not an object or any field is
            missing or has the wrong type.
    """
    if not isinstance(payload, dict):
        raise SchemaError("Metrics must be a JSON object")

    missing = [name for name in METRIC_NAMES if name not in payload]
    if missing:
        raise SchemaError(f"Metrics missing required fields: {', '.join(missing)}")

    values = {
        attr: _check_value(name, payload[name])
        for name, attr in METRIC_NAMES.items()
    }
    return PerformanceMetrics(**values)


def parse_partial_metrics(payload: Any) -> Dict[str, MetricValue]:
    """
    Validate a subset of metrics, as returned by sensitivity sweeps.

    Known fields are type-checked; unknown fields are dropped.

    Raises:
        SchemaError: If the payload is not an object or a known field has
            the wrong type.
    """
    if not isinstance(payload, dict):
        raise SchemaError("Metrics must be a JSON object")
    return {
        name: _check_value(name, payload[name])
        for name in METRIC_NAMES
        if name in payload and payload[name] is not None
    }


# =============================================================================
# COMPARISON
# =============================================================================

def parse_lap_time(text: str) -> Optional[float]:
    """
    Convert "M:SS.mmm" to seconds.

    Returns:
        Seconds, or None if the text is not in that format.
    """
    parts = text.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        minutes = float(parts[0])
        seconds = float(parts[1])
    except ValueError:
        return None
    total = minutes * 60 + seconds
    if not math.isfinite(total) or total <= 0:
        return None
    return total


@dataclass(frozen=True)
class MetricDelta:
    """Change of one metric against the baseline."""
    name: str
    difference: float  # current - baseline
    is_improvement: bool
    is_neutral: bool

    @property
    def magnitude(self) -> float:
        return abs(self.difference)


@dataclass(frozen=True)
class MetricsComparison:
    """Current metrics compared against a baseline snapshot."""
    lap_time: Optional[MetricDelta]
    metrics: Dict[str, MetricDelta]


def compare_metrics(
    current: PerformanceMetrics,
    baseline: PerformanceMetrics,
) -> MetricsComparison:
    """
    Compare two analysis results.

    The lap time delta is None when either lap time cannot be parsed.
    """
    lap_time = None
    current_time = parse_lap_time(current.simulated_lap_time)
    baseline_time = parse_lap_time(baseline.simulated_lap_time)
    if current_time is not None and baseline_time is not None:
        diff = current_time - baseline_time
        lap_time = MetricDelta(
            name="simulatedLapTime",
            difference=diff,
            is_improvement=diff < 0,
            is_neutral=abs(diff) < LAP_TIME_NEUTRAL_SEC,
        )

    deltas: Dict[str, MetricDelta] = {}
    for name in METRIC_NAMES:
        if name in STRING_METRICS:
            continue
        diff = current.get(name) - baseline.get(name)
        improved = diff < 0 if name in LOWER_IS_BETTER else diff > 0
        deltas[name] = MetricDelta(
            name=name,
            difference=diff,
            is_improvement=improved,
            is_neutral=abs(diff) < METRIC_NEUTRAL_DELTA,
        )

    return MetricsComparison(lap_time=lap_time, metrics=deltas)


@dataclass(frozen=True)
class TyreDegradation:
    """Stint-life estimate derived from the tyre wear index."""
    wear_index: float
    life_pct: float
    label: str


def tyre_degradation(metrics: PerformanceMetrics) -> TyreDegradation:
    """Summarize tyre wear as an estimated stint-life percentage."""
    wear = metrics.tyre_wear_index
    life_pct = max(0.0, (1 - (wear - 1) / 9) * 100)

    if wear <= 3:
        label = "LOW DEG"
    elif wear <= 7:
        label = "MEDIUM DEG"
    else:
        label = "CRITICAL DEG"

    return TyreDegradation(wear_index=wear, life_pct=life_pct, label=label)
