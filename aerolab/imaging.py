"""
CFD-style flow visualization images.

Image generation is best-effort: any failure yields None and never aborts
the analysis it accompanies.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

from .errors import OracleError
from .oracle import GeminiClient
from .parameters import CarParameters, format_parameter_value
from .tracks import Track


HIGH_DOWNFORCE_THRESHOLD = 70
LOW_DOWNFORCE_THRESHOLD = 40


@dataclass(frozen=True)
class FlowImage:
    """Generated image payload."""
    mime_type: str
    data: str  # base64

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def extension(self) -> str:
        return {"image/jpeg": ".jpg", "image/webp": ".webp"}.get(self.mime_type, ".png")

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def build_image_prompt(params: CarParameters, track: Track) -> str:
    """Rendering prompt tied to the current aero values."""
    fmt = format_parameter_value
    return "\n".join([
        "Create a futuristic, high-contrast CFD (Computational Fluid Dynamics) "
        "simulation image of a 2026 Formula 1 car, top-down view.",
        "",
        "Simulation Context:",
        f"- Circuit: {track.name} ({track.country}).",
        f"- Environmental Physics: Simulate air density and skin friction corresponding "
        f"to {track.country}'s climate. Account for ambient track temperature affecting "
        f"airflow viscosity.",
        "",
        "Aesthetics:",
        "- Deep dark void/blueprint background.",
        "- The car should be rendered as a sleek, metallic or wireframe silhouette.",
        "- NEON COLORED aerodynamic streamlines (glowing cyan, electric blue, and intense "
        "red for high pressure areas) flowing dynamically over the body.",
        "- High-tech, digital engineering look.",
        "- Particle Systems: Integrate subtle, luminescent particle tracers within the "
        "streamlines. Use elongated motion-blur particles to denote high-velocity airflow "
        "(low pressure), and denser, slower-moving particle clusters in high-pressure drag "
        "zones (e.g., behind tires or rear wing).",
        "",
        "Parameter Visualization:",
        f"- Front Wing Angle: {fmt(params.front_wing_flap_angle)} degrees "
        f"(show flow disruption at the nose).",
        f"- Downforce: {fmt(params.aero_downforce)}/100 (if > {HIGH_DOWNFORCE_THRESHOLD}, "
        f"show intense red/orange pressure zones on wings/floor; if < {LOW_DOWNFORCE_THRESHOLD}, "
        f"show mostly blue/green smooth flow).",
        f"- Drag: {fmt(params.aero_drag)}/100 (visualize the wake/turbulence behind the car; "
        f"larger/chaotic wake for high drag).",
        "",
        "The image should look like it came from advanced F1 simulation software with "
        "real-time particle physics.",
    ])


class ImageClient:
    """Requests flow visualization images."""

    def __init__(
        self,
        oracle: GeminiClient,
        model: str = "gemini-2.5-flash-image",
        aspect_ratio: str = "16:9",
    ):
        self._oracle = oracle
        self.model = model
        self.aspect_ratio = aspect_ratio

    async def render(self, params: CarParameters, track: Track) -> Optional[FlowImage]:
        """
        Render a flow visualization for a configuration.

        Returns:
            FlowImage, or None on any failure.
        """
        prompt = build_image_prompt(params, track)
        try:
            inline = await self._oracle.generate_image(self.model, prompt, self.aspect_ratio)
        except OracleError as e:
            print(f"[Image] Generation failed: {e.message}")
            return None
        except Exception as e:
            print(f"[Image] Unexpected error: {e}")
            return None

        try:
            base64.b64decode(inline.data, validate=True)
        except (binascii.Error, ValueError):
            print("[Image] Discarding undecodable image payload")
            return None

        print(f"[Image] Received {inline.mime_type} ({inline.latency_ms:.0f}ms)")
        return FlowImage(mime_type=inline.mime_type, data=inline.data)
