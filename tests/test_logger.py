"""
Tests for SessionLogger class.
"""

import gzip
import json
import os
import tempfile
from pathlib import Path

from aerolab.analysis import AnalysisResult
from aerolab.logger import SessionLogger
from aerolab.metrics import parse_metrics
from aerolab.parameters import CarParameters
from aerolab.sensitivity import SensitivityDataPoint


def make_result(lap_time: str = "1:16.330", latency_ms: float = 850.0) -> AnalysisResult:
    """Helper to create test analysis results."""
    metrics = parse_metrics({
        "topSpeedKmh": 342.5,
        "brakingEfficiency": 88.0,
        "maxCorneringG": 5.2,
        "lowSpeedGrip": 74.0,
        "tractionScore": 81.0,
        "tyreWearIndex": 4.5,
        "energyRecoveryEfficiency": 90.0,
        "lapTimePotential": 3.2,
        "chassisResponsiveness": 79.0,
        "highSpeedStability": 85.0,
        "simulatedLapTime": lap_time,
    })
    return AnalysisResult(metrics=metrics, analysis="Solid traction.", latency_ms=latency_ms)


def read_log(tmpdir: str) -> dict:
    """Helper to load the single log file in a directory."""
    files = list(Path(tmpdir).glob("*.json.gz"))
    assert len(files) == 1
    with gzip.open(files[0], "rt") as f:
        return json.load(f)


class TestSessionLoggerInitialization:
    """Tests for logger initialization."""

    def test_can_instantiate_with_custom_path(self):
        """Test logger accepts custom log directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            assert logger.log_dir == tmpdir
            assert not logger.active

    def test_creates_log_directory_if_missing(self):
        """Test logger creates log directory if it doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = os.path.join(tmpdir, "sessions", "nested")
            logger = SessionLogger(log_dir=log_path)
            logger.start_session("monaco")
            assert os.path.exists(log_path)


class TestStartSession:
    """Tests for start_session() method."""

    def test_start_session_returns_session_id(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            session_id = logger.start_session("spa")
            assert session_id
            assert logger.active

    def test_start_session_clears_previous_events(self):
        """Test starting new session clears events from previous session."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.start_session("spa")
            logger.log_error("analysis", "TransportError", "timed out")
            logger.log_error("analysis", "TransportError", "timed out")
            first = logger.end_session()
            os.remove(first)

            logger.start_session("monza")
            logger.log_analysis("monza", CarParameters(), make_result(), has_image=False)
            logger.end_session()

            data = read_log(tmpdir)
            assert data["metadata"]["track"] == "monza"
            assert len(data["events"]) == 1


class TestLogEvents:
    """Tests for the log_* methods."""

    def test_log_analysis(self):
        """Test an analysis event carries params, metrics and latency."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.start_session("monaco")
            logger.log_analysis("monaco", CarParameters(), make_result(), has_image=True)
            logger.end_session()

            event = read_log(tmpdir)["events"][0]
            assert event["event_type"] == "analysis"
            assert "timestamp" in event
            assert event["data"]["track"] == "monaco"
            assert event["data"]["params"]["aeroDownforce"] == 60.0
            assert event["data"]["metrics"]["simulatedLapTime"] == "1:16.330"
            assert event["data"]["latency_ms"] == 850.0
            assert event["data"]["has_image"] is True

    def test_log_sensitivity(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.start_session("spa")
            points = [
                SensitivityDataPoint(720.0, {"lapTimePotential": 3.0}),
                SensitivityDataPoint(760.0, {"lapTimePotential": 4.1}),
            ]
            logger.log_sensitivity("spa", "chassisWeightKg", CarParameters(), points)
            logger.end_session()

            data = read_log(tmpdir)["events"][0]["data"]
            assert data["variable"] == "chassisWeightKg"
            assert [r["paramValue"] for r in data["results"]] == [720.0, 760.0]

    def test_log_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.start_session("spa")
            logger.log_error("sensitivity", "SchemaError", "expected 5 points")
            logger.end_session()

            event = read_log(tmpdir)["events"][0]
            assert event["event_type"] == "error"
            assert event["data"] == {
                "operation": "sensitivity",
                "error_type": "SchemaError",
                "message": "expected 5 points",
            }

    def test_events_logged_in_order(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.start_session("spa")
            logger.log_error("analysis", "TransportError", "down")
            logger.log_analysis("spa", CarParameters(), make_result(), has_image=False)
            logger.end_session()

            types = [e["event_type"] for e in read_log(tmpdir)["events"]]
            assert types == ["error", "analysis"]


class TestEndSession:
    """Tests for end_session() method."""

    def test_end_session_file_has_correct_structure(self):
        """Test output file has metadata and events."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.start_session("catalunya")
            path = logger.end_session()

            assert path.endswith(".json.gz")
            data = read_log(tmpdir)
            assert data["events"] == []
            assert set(data["metadata"]) == {"session_id", "start_time", "track"}
            assert not logger.active

    def test_log_without_start_session_is_ignored(self):
        """Test logging before a session starts does nothing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            logger.log_error("analysis", "TransportError", "down")
            logger.log_analysis("spa", CarParameters(), make_result(), has_image=False)
            assert list(Path(tmpdir).iterdir()) == []

    def test_end_session_without_start_is_safe(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = SessionLogger(log_dir=tmpdir)
            assert logger.end_session() is None
