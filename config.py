"""
Configuration for the 2026 car setup configurator.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file
load_dotenv()


@dataclass
class Config:
    """Configuration with environment variable support."""

    # Oracle credentials - loaded from .env file
    google_ai_api_key: str = field(
        default_factory=lambda: os.getenv("GOOGLE_AI_API_KEY", "")
    )

    # Oracle endpoint and models
    oracle_base_url: str = field(
        default_factory=lambda: os.getenv(
            "ORACLE_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
        )
    )
    analysis_model: str = field(
        default_factory=lambda: os.getenv("ANALYSIS_MODEL", "gemini-2.5-flash")
    )
    image_model: str = field(
        default_factory=lambda: os.getenv("IMAGE_MODEL", "gemini-2.5-flash-image")
    )
    oracle_timeout_sec: float = 120.0

    # Image rendering
    image_aspect_ratio: str = "16:9"

    # Sensitivity sweep
    sensitivity_steps: int = 5

    # Track selected on startup
    default_track_id: str = "catalunya"

    # Export
    export_dir: Path = field(default_factory=lambda: Path("./data/exports"))

    # Logging
    log_sessions: bool = True
    session_log_dir: Path = field(default_factory=lambda: Path("./data/sessions"))

    def __post_init__(self):
        """Ensure directories exist."""
        if self.log_sessions:
            self.session_log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def has_api_key(self) -> bool:
        """True when an oracle API key is configured."""
        return bool(self.google_ai_api_key and self.google_ai_api_key.strip())
