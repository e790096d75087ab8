"""
Parameter sensitivity sweeps.

One batched oracle request returns a metrics point for each evenly spaced
value of a single parameter, all other parameters held fixed.
"""

import json
import math
from dataclasses import dataclass
from typing import Dict, Any, List, Tuple

from .errors import SchemaError
from .metrics import MetricValue, finite_number, parse_partial_metrics
from .oracle import GeminiClient
from .parameters import CarParameters, wire_name
from .tracks import Track, require_catalog_track


# Sweepable parameters and their default sweep range
SWEEP_RANGES: Dict[str, Tuple[float, float]] = {
    "aeroDownforce": (20, 100),
    "aeroDrag": (20, 100),
    "suspensionStiffness": (20, 100),
    "batteryEnergyDeployment": (50, 100),
    "chassisWeightKg": (720, 760),
}

SWEEP_LABELS: Dict[str, str] = {
    "aeroDownforce": "Aero Downforce",
    "aeroDrag": "Aero Drag",
    "suspensionStiffness": "Suspension Stiffness",
    "batteryEnergyDeployment": "Battery Deployment",
    "chassisWeightKg": "Chassis Weight",
}

MIN_STEPS = 2

# Matching tolerance between requested and returned sample values
SAMPLE_TOLERANCE = 1e-6

SENSITIVITY_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "results": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "paramValue": {"type": "NUMBER"},
                    "metrics": {
                        "type": "OBJECT",
                        "properties": {
                            "topSpeedKmh": {"type": "NUMBER"},
                            "maxCorneringG": {"type": "NUMBER"},
                            "lapTimePotential": {"type": "NUMBER"},
                            "tyreWearIndex": {"type": "NUMBER"},
                            "simulatedLapTime": {"type": "STRING"},
                        },
                    },
                },
                "required": ["paramValue", "metrics"],
            },
        },
    },
    "required": ["results"],
}

PHYSICS_RULES = (
    "1. Consistency: The metrics must show a smooth, logical trend (e.g., linear "
    "or curve). Do not output random noise.",
    "2. Aero Downforce: Increasing this MUST significantly INCREASE 'maxCorneringG' "
    "and DECREASE 'topSpeedKmh' (due to drag). Lap time should generally improve "
    "unless drag penalty is too high.",
    "3. Aero Drag: Increasing this MUST DECREASE 'topSpeedKmh'.",
    "4. Engine Power: Increasing this MUST INCREASE 'topSpeedKmh' and IMPROVE "
    "'lapTimePotential'.",
    "5. Weight: Increasing this MUST WORSEN 'maxCorneringG', 'brakingEfficiency' "
    "(internal calc), and 'lapTimePotential'.",
)


@dataclass(frozen=True)
class SensitivityDataPoint:
    """Metrics at one sampled parameter value."""
    param_value: float
    metrics: Dict[str, MetricValue]

    def to_dict(self) -> Dict[str, Any]:
        return {"paramValue": self.param_value, "metrics": dict(self.metrics)}


def sweep_values(minimum: float, maximum: float, steps: int) -> List[int]:
    """
    Evenly spaced sample values from minimum to maximum inclusive,
    rounded half-up to integers.

    Raises:
        ValueError: If steps < 2 or minimum >= maximum.
    """
    if steps < MIN_STEPS:
        raise ValueError(f"Sweep needs at least {MIN_STEPS} steps, got {steps}")
    if minimum >= maximum:
        raise ValueError(f"Sweep minimum {minimum} must be below maximum {maximum}")

    step_size = (maximum - minimum) / (steps - 1)
    return [int(math.floor(minimum + i * step_size + 0.5)) for i in range(steps)]


def validate_variable(variable: str) -> str:
    """
    Normalize and check a sweep variable name.

    Raises:
        ValueError: If the parameter is unknown or not sweepable.
    """
    name = wire_name(variable)
    if name not in SWEEP_RANGES:
        raise ValueError(f"Parameter {name} is not available for sensitivity analysis")
    return name


def build_sensitivity_prompt(
    base_params: CarParameters,
    track: Track,
    variable: str,
    minimum: float,
    maximum: float,
    steps: int,
    samples: List[int],
) -> str:
    """Prompt asking for one metrics point per sample value."""
    held = base_params.to_dict()
    held[variable] = "VARIABLE"

    return "\n".join([
        "Perform a precise parameter sensitivity analysis for a 2026 F1 car simulation.",
        "",
        "Context:",
        f"- Circuit: {track.name} ({track.type})",
        f"- Downforce Level: {track.downforce_level}, Abrasiveness: {track.abrasiveness}",
        f'- Variable Parameter: "{variable}"',
        f"- Sweep Range: {minimum} to {maximum} (Steps: {steps})",
        "",
        "Base Configuration (Held Constant):",
        json.dumps(held, indent=2),
        "",
        "Task:",
        f'Simulate the car performance at these specific values for "{variable}": '
        f"[{', '.join(str(v) for v in samples)}].",
        "Return the resulting performance metrics for each step, one result per value, "
        "in ascending order.",
        "",
        "PHYSICS RULES TO ENFORCE:",
        *PHYSICS_RULES,
        "",
        'Return a JSON object with a "results" array containing the data points.',
    ])


def parse_sensitivity(payload: Any, samples: List[int]) -> List[SensitivityDataPoint]:
    """
    Validate a sweep response against the requested samples.

    Returns:
        One point per sample, ascending by param_value.

    Raises:
        SchemaError: If the results array is missing, has the wrong length,
            or its values do not match the requested samples.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise SchemaError("Sensitivity response missing 'results' array")

    results = payload["results"]
    if len(results) != len(samples):
        raise SchemaError(
            f"Sensitivity response has {len(results)} points, expected {len(samples)}"
        )

    points: List[SensitivityDataPoint] = []
    for item in results:
        if not isinstance(item, dict):
            raise SchemaError("Sensitivity point must be a JSON object")
        value = finite_number(item.get("paramValue"))
        if value is None:
            raise SchemaError(f"Sensitivity point has invalid paramValue: {item.get('paramValue')!r}")
        points.append(SensitivityDataPoint(
            param_value=value,
            metrics=parse_partial_metrics(item.get("metrics")),
        ))

    points.sort(key=lambda point: point.param_value)
    for point, expected in zip(points, sorted(samples)):
        if abs(point.param_value - expected) > SAMPLE_TOLERANCE:
            raise SchemaError(
                f"Sensitivity point {point.param_value} does not match requested value {expected}"
            )

    return points


class SensitivityClient:
    """Runs batched parameter sweeps through the oracle."""

    def __init__(self, oracle: GeminiClient, model: str = "gemini-2.5-flash"):
        self._oracle = oracle
        self.model = model

    async def sweep(
        self,
        base_params: CarParameters,
        track: Track,
        variable: str,
        minimum: float,
        maximum: float,
        steps: int,
    ) -> List[SensitivityDataPoint]:
        """
        Sweep one parameter across a range.

        Args:
            base_params: Configuration held constant apart from the variable.
            track: Catalog track.
            variable: Sweepable parameter (wire or attribute name).
            minimum: Lowest sample value.
            maximum: Highest sample value.
            steps: Number of samples, at least 2.

        Returns:
            Points ascending by param_value, one per requested sample.

        Raises:
            ValueError: If the sweep arguments are invalid.
            TrackNotFoundError: If the track is not a catalog entry.
            ConfigurationError: If no API key is configured.
            TransportError: If the oracle could not be reached.
            SchemaError: If the response does not match the request.
        """
        variable = validate_variable(variable)
        samples = sweep_values(minimum, maximum, steps)
        track = require_catalog_track(track)

        prompt = build_sensitivity_prompt(
            base_params, track, variable, minimum, maximum, steps, samples
        )
        response = await self._oracle.generate_json(self.model, prompt, SENSITIVITY_SCHEMA)
        try:
            points = parse_sensitivity(response.payload, samples)
        except SchemaError as e:
            print(f"[Schema] Sensitivity response rejected: {e.message}")
            raise

        print(f"[Sensitivity] {variable} {minimum}-{maximum} x{steps} on {track.name} "
              f"({response.latency_ms:.0f}ms)")
        return points
