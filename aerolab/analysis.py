"""
Performance analysis requests.

Sends the full configuration and track context to the oracle and validates
the metrics + narrative it returns. Either every metric is present and
well-typed or the call fails.
"""

from dataclasses import dataclass
from typing import Dict, Any

from .errors import SchemaError
from .metrics import PerformanceMetrics, parse_metrics
from .oracle import GeminiClient
from .parameters import CarParameters, tyre_compound_label, format_parameter_value
from .tracks import Track, require_catalog_track


METRIC_DESCRIPTIONS: Dict[str, str] = {
    "topSpeedKmh": "Estimated top speed in km/h on a long straight.",
    "brakingEfficiency": "Braking performance score (0-100), considering stability and deceleration.",
    "maxCorneringG": "Maximum lateral G-force achievable in high-speed corners.",
    "lowSpeedGrip": "Mechanical grip score (0-100) in slow corners.",
    "tractionScore": "Traction score (0-100) out of slow corners.",
    "tyreWearIndex": "Tyre wear index (1-10), where 1 is minimal wear and 10 is very high wear.",
    "energyRecoveryEfficiency": "Efficiency of the MGU-K energy recovery system (0-100).",
    "lapTimePotential": "An index of overall lap time potential (1-10), where 1 is fastest and 10 is slowest.",
    "chassisResponsiveness": "Agility and responsiveness of the chassis score (0-100).",
    "highSpeedStability": "Aerodynamic stability score (0-100) in high-speed sections.",
    "simulatedLapTime": "Simulated lap time on the specified benchmark circuit in M:SS.mmm format.",
}

ANALYSIS_DESCRIPTION = (
    "A detailed analysis (5-7 paragraphs) of the car's performance "
    "characteristics, strengths, and weaknesses based on the provided "
    "parameters AND the specific track. Use markdown for formatting with "
    "headings like **Overall Assessment**, **Strengths**, **Weaknesses**, and "
    "**Optimization Suggestions**. List key points under each heading."
)


def _metrics_schema() -> Dict[str, Any]:
    properties = {
        name: {
            "type": "STRING" if name == "simulatedLapTime" else "NUMBER",
            "description": description,
        }
        for name, description in METRIC_DESCRIPTIONS.items()
    }
    return {
        "type": "OBJECT",
        "properties": properties,
        "required": list(METRIC_DESCRIPTIONS),
    }


ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "metrics": _metrics_schema(),
        "analysis": {"type": "STRING", "description": ANALYSIS_DESCRIPTION},
    },
    "required": ["metrics", "analysis"],
}


@dataclass(frozen=True)
class AnalysisResult:
    """Validated metrics and narrative from one analysis run."""
    metrics: PerformanceMetrics
    analysis: str
    latency_ms: float = 0.0


def format_parameter_lines(params: CarParameters) -> str:
    """Parameter block of the analysis prompt."""
    fmt = format_parameter_value
    lines = [
        f"- Front Wing Angle: {fmt(params.front_wing_flap_angle)} deg",
        f"- Aero Downforce (Index): {fmt(params.aero_downforce)}",
        f"- Aero Drag (Index): {fmt(params.aero_drag)}",
        f"- Suspension Stiffness: {fmt(params.suspension_stiffness)}",
        f"- Tyre Compound: {tyre_compound_label(params.tyre_compound)}",
        f"- Chassis Weight: {fmt(params.chassis_weight_kg)} kg",
        f"- ICE Power: {fmt(params.engine_power_ice)} kW",
        f"- MGU-K Power: {fmt(params.engine_power_mgu)} kW",
        f"- Battery Deployment: {fmt(params.battery_energy_deployment)}%",
    ]
    return "\n".join(lines)


def build_analysis_prompt(params: CarParameters, track: Track) -> str:
    """
    Describe the configuration and track for the oracle.

    Args:
        params: Car configuration.
        track: Benchmark circuit.

    Returns:
        Prompt text embedding every parameter and track attribute.
    """
    return "\n".join([
        f"Analyze the performance of an F1 car designed for the 2026 regulations "
        f"on the {track.name} ({track.type}), {track.country}.",
        "",
        "Track Characteristics:",
        f"- Downforce Level: {track.downforce_level}",
        f"- Abrasiveness: {track.abrasiveness}",
        f"- Key Features: {track.key_features}",
        "",
        "Car Parameters:",
        format_parameter_lines(params),
        "",
        "Tyre compounds run from C5 (softest, most grip) to C1 (hardest, most durable).",
        "",
        "Provide a structured JSON response including quantitative performance "
        "metrics and a detailed textual analysis.",
        f'Calculate a specific "Simulated Lap Time" for {track.name} based on these parameters.',
        f"The analysis should explain how the car fits the specific demands of {track.name}.",
    ])


def parse_analysis(payload: Any, latency_ms: float = 0.0) -> AnalysisResult:
    """
    Validate an analysis payload.

    Raises:
        SchemaError: If metrics or analysis are missing or malformed.
    """
    if not isinstance(payload, dict):
        raise SchemaError("Analysis response must be a JSON object")
    if "metrics" not in payload:
        raise SchemaError("Analysis response missing 'metrics'")

    metrics = parse_metrics(payload["metrics"])

    analysis = payload.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        raise SchemaError("Analysis response missing 'analysis' text")

    return AnalysisResult(metrics=metrics, analysis=analysis.strip(), latency_ms=latency_ms)


class AnalysisClient:
    """Requests metrics and narrative analysis for a configuration."""

    def __init__(self, oracle: GeminiClient, model: str = "gemini-2.5-flash"):
        self._oracle = oracle
        self.model = model

    async def analyze(self, params: CarParameters, track: Track) -> AnalysisResult:
        """
        Analyze a configuration on a track.

        Args:
            params: Car configuration.
            track: Catalog track.

        Returns:
            AnalysisResult with all eleven metrics and the narrative.

        Raises:
            TrackNotFoundError: If the track is not a catalog entry. Raised
                before any request is sent.
            ConfigurationError: If no API key is configured.
            TransportError: If the oracle could not be reached.
            SchemaError: If the response does not match the schema.
        """
        track = require_catalog_track(track)
        prompt = build_analysis_prompt(params, track)

        response = await self._oracle.generate_json(self.model, prompt, ANALYSIS_SCHEMA)
        try:
            result = parse_analysis(response.payload, latency_ms=response.latency_ms)
        except SchemaError as e:
            print(f"[Schema] Analysis response rejected: {e.message}")
            raise

        print(f"[Analysis] {track.name}: {result.metrics.simulated_lap_time} "
              f"({response.latency_ms:.0f}ms)")
        return result
