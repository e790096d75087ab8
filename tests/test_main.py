"""
Tests for Configurator main integration.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from config import Config
from aerolab.analysis import AnalysisResult
from aerolab.errors import (
    API_KEY_REMEDIATION,
    ConfigurationError,
    SchemaError,
    TransportError,
)
from aerolab.imaging import FlowImage
from aerolab.main import Configurator, main
from aerolab.metrics import parse_metrics
from aerolab.sensitivity import SensitivityDataPoint


def make_result(lap_time: str = "1:16.330") -> AnalysisResult:
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
    return AnalysisResult(metrics=metrics, analysis="Good balance.", latency_ms=500.0)


def make_points(values) -> list:
    return [SensitivityDataPoint(float(v), {"topSpeedKmh": 340.0}) for v in values]


@pytest.fixture
def config(tmp_path):
    """Config without session logging or a real key lookup."""
    return Config(
        google_ai_api_key="test-key",
        log_sessions=False,
        export_dir=tmp_path / "exports",
        session_log_dir=tmp_path / "sessions",
    )


class TestConfiguratorInitialization:
    """Tests for configurator initialization."""

    def test_starts_on_default_track(self, config):
        configurator = Configurator(config)
        assert configurator.state.track_id == "catalunya"
        assert configurator.state.metrics is None

    def test_uses_configured_models(self, config):
        config.analysis_model = "analysis-model"
        config.image_model = "image-model"
        configurator = Configurator(config)
        assert configurator._analysis.model == "analysis-model"
        assert configurator._sensitivity.model == "analysis-model"
        assert configurator._images.model == "image-model"

    @pytest.mark.asyncio
    async def test_stop_without_logging_returns_none(self, config):
        configurator = Configurator(config)
        configurator.start()
        assert await configurator.stop() is None


class TestConfigurationEvents:
    """Tests for the synchronous configuration methods."""

    def test_set_parameter(self, config):
        configurator = Configurator(config)
        state = configurator.set_parameter("aeroDrag", 45)
        assert state.params.aero_drag == 45
        assert state.params.aero_downforce == pytest.approx(72.2)

    def test_select_track_and_auto_optimize(self, config):
        configurator = Configurator(config)
        configurator.select_track("monaco")
        state = configurator.auto_optimize()
        assert state.params.aero_downforce == 95

    def test_unknown_parameter_raises(self, config):
        configurator = Configurator(config)
        with pytest.raises(ValueError):
            configurator.set_parameter("rideHeight", 30)


class TestAnalyze:
    """Tests for analyze()."""

    @pytest.mark.asyncio
    async def test_success_sets_metrics_and_image(self, config):
        """Test both results are committed together."""
        configurator = Configurator(config)
        image = FlowImage("image/png", "aGVsbG8=")

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.return_value = make_result()
            render.return_value = image
            state = await configurator.analyze()

        assert state.metrics.simulated_lap_time == "1:16.330"
        assert state.analysis == "Good balance."
        assert state.flow_image == image
        assert not state.is_loading
        assert state.error is None

    @pytest.mark.asyncio
    async def test_missing_image_does_not_fail_analysis(self, config):
        """Test analysis succeeds when no image was produced."""
        configurator = Configurator(config)

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.return_value = make_result()
            render.return_value = None
            state = await configurator.analyze()

        assert state.metrics is not None
        assert state.flow_image is None
        assert state.error is None

    @pytest.mark.asyncio
    async def test_failure_sets_error_without_results(self, config):
        """Test a failed analysis keeps no metrics, narrative or image."""
        configurator = Configurator(config)

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.side_effect = TransportError("Oracle request timed out after 120s")
            render.return_value = FlowImage("image/png", "aGVsbG8=")
            state = await configurator.analyze()

        assert state.metrics is None
        assert state.analysis == ""
        assert state.flow_image is None
        assert state.error == "Oracle request timed out after 120s"
        assert not state.is_loading

    @pytest.mark.asyncio
    async def test_missing_key_shows_remediation(self, config):
        """Test configuration errors are reported with setup instructions."""
        configurator = Configurator(config)

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.side_effect = ConfigurationError("API key missing")
            render.return_value = None
            state = await configurator.analyze()

        assert state.error == API_KEY_REMEDIATION

    @pytest.mark.asyncio
    async def test_missing_key_end_to_end(self, config):
        """Test an empty key fails without any network request."""
        config.google_ai_api_key = ""
        configurator = Configurator(config)

        with patch.object(configurator._oracle, "_make_request", new_callable=AsyncMock) as request:
            state = await configurator.analyze()

        request.assert_not_awaited()
        assert state.error == API_KEY_REMEDIATION

    @pytest.mark.asyncio
    async def test_new_analysis_keeps_baseline(self, config):
        configurator = Configurator(config)

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            render.return_value = None
            analysis.return_value = make_result("1:17.000")
            await configurator.analyze()
            configurator.toggle_baseline()

            analysis.return_value = make_result("1:16.000")
            state = await configurator.analyze()

        assert state.baseline.simulated_lap_time == "1:17.000"
        assert state.metrics.simulated_lap_time == "1:16.000"

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded(self, config):
        """Test a slow earlier analysis cannot overwrite a newer one."""
        configurator = Configurator(config)
        gate = asyncio.Event()

        async def fake_analyze(params, track):
            if params.aero_downforce == 60:
                await gate.wait()
                return make_result("1:20.000")
            return make_result("1:15.000")

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.side_effect = fake_analyze
            render.return_value = None

            slow = asyncio.create_task(configurator.analyze())
            await asyncio.sleep(0)

            configurator.set_parameter("aeroDownforce", 80)
            await configurator.analyze()

            gate.set()
            await slow

        assert configurator.state.metrics.simulated_lap_time == "1:15.000"
        assert configurator.state.params.aero_downforce == 80

    @pytest.mark.asyncio
    async def test_unexpected_error_clears_loading(self, config):
        """Test an error outside the oracle taxonomy still ends the loading state."""
        configurator = Configurator(config)

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.side_effect = RuntimeError("boom")
            render.return_value = None
            with pytest.raises(RuntimeError):
                await configurator.analyze()

        state = configurator.state
        assert not state.is_loading
        assert state.error == "boom"
        assert state.metrics is None

    @pytest.mark.asyncio
    async def test_malformed_image_response_keeps_analysis(self, config):
        """Test a garbled image response end to end yields metrics without an image."""
        configurator = Configurator(config)
        payload = {"metrics": make_result().metrics.to_dict(), "analysis": "Good balance."}

        async def fake_request(model, body):
            if "responseModalities" in body["generationConfig"]:
                return {"candidates": [{"content": {"parts": [{"inlineData": "abc"}]}}]}
            return {"candidates": [{"content": {"parts": [{"text": json.dumps(payload)}]}}]}

        with patch.object(configurator._oracle, "_make_request", new_callable=AsyncMock) as request:
            request.side_effect = fake_request
            state = await configurator.analyze()

        assert state.metrics.simulated_lap_time == "1:16.330"
        assert state.flow_image is None
        assert state.error is None
        assert not state.is_loading

    @pytest.mark.asyncio
    async def test_analysis_and_image_run_concurrently(self, config):
        """Test both requests are in flight at the same time."""
        configurator = Configurator(config)
        both_started = asyncio.Event()
        started = []

        async def wait_for_other():
            started.append(True)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), 1.0)

        async def fake_analyze(params, track):
            await wait_for_other()
            return make_result()

        async def fake_render(params, track):
            await wait_for_other()
            return FlowImage("image/png", "aGVsbG8=")

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.side_effect = fake_analyze
            render.side_effect = fake_render
            state = await configurator.analyze()

        assert len(started) == 2
        assert state.metrics is not None
        assert state.flow_image is not None


class TestSweep:
    """Tests for sweep()."""

    @pytest.mark.asyncio
    async def test_uses_default_range_and_steps(self, config):
        """Test defaults come from the sweep table and config."""
        configurator = Configurator(config)

        with patch.object(configurator._sensitivity, "sweep", new_callable=AsyncMock) as sweep:
            sweep.return_value = make_points([720, 730, 740, 750, 760])
            state = await configurator.sweep("chassisWeightKg")

        _, _, variable, minimum, maximum, steps = sweep.call_args.args
        assert (variable, minimum, maximum, steps) == ("chassisWeightKg", 720, 760, 5)
        assert len(state.sweep_points) == 5
        assert not state.sweep_loading

    @pytest.mark.asyncio
    async def test_failure_sets_sweep_error(self, config):
        configurator = Configurator(config)

        with patch.object(configurator._sensitivity, "sweep", new_callable=AsyncMock) as sweep:
            sweep.side_effect = SchemaError("Sensitivity response has 3 points, expected 5")
            state = await configurator.sweep("aeroDrag")

        assert state.sweep_points is None
        assert state.sweep_error == "Sensitivity response has 3 points, expected 5"

    @pytest.mark.asyncio
    async def test_invalid_arguments_raise_before_request(self, config):
        configurator = Configurator(config)

        with patch.object(configurator._sensitivity, "sweep", new_callable=AsyncMock) as sweep:
            with pytest.raises(ValueError):
                await configurator.sweep("tyreCompound")
            with pytest.raises(ValueError):
                await configurator.sweep("aeroDrag", steps=1)

        sweep.assert_not_awaited()
        assert not configurator.state.sweep_loading

    @pytest.mark.asyncio
    async def test_sweep_does_not_touch_analysis(self, config):
        configurator = Configurator(config)

        with patch.object(configurator._sensitivity, "sweep", new_callable=AsyncMock) as sweep:
            sweep.side_effect = TransportError("down")
            await configurator.sweep("aeroDrag")

        assert configurator.state.error is None

    @pytest.mark.asyncio
    async def test_unexpected_error_clears_sweep_loading(self, config):
        """Test an error outside the oracle taxonomy still ends the sweep loading state."""
        configurator = Configurator(config)

        with patch.object(configurator._sensitivity, "sweep", new_callable=AsyncMock) as sweep:
            sweep.side_effect = RuntimeError("boom")
            with pytest.raises(RuntimeError):
                await configurator.sweep("aeroDrag")

        assert not configurator.state.sweep_loading
        assert configurator.state.sweep_error == "boom"
        assert configurator.state.sweep_points is None


class TestExport:
    """Tests for export_csv()."""

    def test_nothing_to_export(self, config):
        assert Configurator(config).export_csv() is None

    @pytest.mark.asyncio
    async def test_exports_after_analysis(self, config):
        configurator = Configurator(config)
        configurator.select_track("spa")

        with patch.object(configurator._analysis, "analyze", new_callable=AsyncMock) as analysis, \
             patch.object(configurator._images, "render", new_callable=AsyncMock) as render:
            analysis.return_value = make_result()
            render.return_value = None
            await configurator.analyze()

        path = configurator.export_csv()
        assert path == config.export_dir / "f1_2026_analysis_spa.csv"
        assert "Metric,simulatedLapTime,1:16.330" in path.read_text(encoding="utf-8")


class TestCli:
    """Tests for the command line entry point."""

    @pytest.mark.asyncio
    async def test_list_tracks(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert await main(["--list-tracks"]) == 0
        out = capsys.readouterr().out
        assert "monaco" in out
        assert "Circuit de Spa-Francorchamps" in out

    @pytest.mark.asyncio
    async def test_unknown_track_exits(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            await main(["--track", "imola"])

    @pytest.mark.asyncio
    async def test_unknown_parameter_exits(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            await main(["--set", "rideHeight=30"])

    @pytest.mark.asyncio
    async def test_missing_key_returns_error(self, tmp_path, monkeypatch, capsys):
        """Test a run without a key prints the remediation and exits 1."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GOOGLE_AI_API_KEY", "")

        assert await main(["--track", "monza", "--set", "aeroDownforce=30"]) == 1

        out = capsys.readouterr().out
        assert "GOOGLE_AI_API_KEY is not set" in out
        assert "Autodromo Nazionale Monza" in out
        assert API_KEY_REMEDIATION in out
        assert list((tmp_path / "data" / "sessions").glob("*.json.gz"))
