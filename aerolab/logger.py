"""
Session logger for configurator runs.

Keeps every analysis, sweep and failure of a session and writes them to a
gzipped JSON file when the session ends.
"""

import gzip
import json
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any

from .analysis import AnalysisResult
from .parameters import CarParameters
from .sensitivity import SensitivityDataPoint


class SessionLogger:
    """Logs oracle runs for later review."""

    def __init__(self, log_dir: str = "./data/sessions"):
        self.log_dir = log_dir
        self._session_id: Optional[str] = None
        self._start_time: Optional[datetime] = None
        self._track_id: Optional[str] = None
        self._events: List[Dict[str, Any]] = []

    @property
    def active(self) -> bool:
        return self._session_id is not None

    def start_session(self, track_id: str) -> str:
        """
        Start a new logging session.

        Args:
            track_id: Track selected when the session starts.

        Returns:
            Session ID.
        """
        Path(self.log_dir).mkdir(parents=True, exist_ok=True)

        self._session_id = str(uuid.uuid4())[:8]
        self._start_time = datetime.now()
        self._track_id = track_id
        self._events = []

        return self._session_id

    def log_analysis(
        self,
        track_id: str,
        params: CarParameters,
        result: AnalysisResult,
        has_image: bool,
    ) -> None:
        """Log a completed analysis."""
        self._append("analysis", {
            "track": track_id,
            "params": params.to_dict(),
            "metrics": result.metrics.to_dict(),
            "analysis": result.analysis,
            "latency_ms": result.latency_ms,
            "has_image": has_image,
        })

    def log_sensitivity(
        self,
        track_id: str,
        variable: str,
        params: CarParameters,
        points: List[SensitivityDataPoint],
    ) -> None:
        """Log a completed sensitivity sweep."""
        self._append("sensitivity", {
            "track": track_id,
            "variable": variable,
            "params": params.to_dict(),
            "results": [point.to_dict() for point in points],
        })

    def log_error(self, operation: str, error_type: str, message: str) -> None:
        """Log a failed operation."""
        self._append("error", {
            "operation": operation,
            "error_type": error_type,
            "message": message,
        })

    def _append(self, event_type: str, data: Dict[str, Any]) -> None:
        if self._session_id is None:
            return
        self._events.append({
            "timestamp": datetime.now().isoformat(),
            "event_type": event_type,
            "data": data,
        })

    def end_session(self) -> Optional[str]:
        """
        End the session and save to gzipped JSON file.

        Returns:
            Path to the saved file, or None if no session was active.
        """
        if self._session_id is None:
            return None

        session_data = {
            "metadata": {
                "session_id": self._session_id,
                "start_time": self._start_time.isoformat(),
                "track": self._track_id,
            },
            "events": self._events,
        }

        # Microseconds keep file names unique
        filename = self._start_time.strftime("%Y-%m-%d_%H-%M-%S-%f") + ".json.gz"
        filepath = os.path.join(self.log_dir, filename)

        with gzip.open(filepath, "wt", encoding="utf-8") as f:
            json.dump(session_data, f, indent=2)

        self._session_id = None
        self._start_time = None
        self._track_id = None
        self._events = []

        return filepath
