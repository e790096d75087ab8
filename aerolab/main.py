"""
Main integration for the 2026 car setup configurator.

Ties together the parameter model, the oracle clients, export and logging.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, List

from config import Config
from .analysis import AnalysisClient
from .errors import OracleError, describe_error
from .export import write_csv
from .imaging import ImageClient
from .logger import SessionLogger
from .metrics import compare_metrics, tyre_degradation
from .oracle import GeminiClient
from .parameters import (
    CarParameters,
    PARAMETER_SPECS,
    clamp_to_slider,
    format_parameter_value,
    in_optimal_range,
    tyre_compound_label,
)
from .sensitivity import (
    SWEEP_LABELS,
    SWEEP_RANGES,
    SensitivityClient,
    sweep_values,
    validate_variable,
)
from .state import (
    ConfiguratorState,
    apply_auto_optimize,
    apply_parameter_edit,
    begin_analysis,
    begin_sweep,
    complete_analysis,
    complete_sweep,
    fail_analysis,
    fail_sweep,
    initial_state,
    load_parameters,
    select_track,
    toggle_baseline,
)
from .tracks import get_track, list_tracks


class Configurator:
    """Owns the configurator state and runs oracle requests against it."""

    def __init__(self, config: Config, oracle: Optional[GeminiClient] = None):
        self._config = config
        self._oracle = oracle or GeminiClient(
            api_key=config.google_ai_api_key,
            base_url=config.oracle_base_url,
            timeout=config.oracle_timeout_sec,
        )
        self._analysis = AnalysisClient(self._oracle, model=config.analysis_model)
        self._sensitivity = SensitivityClient(self._oracle, model=config.analysis_model)
        self._images = ImageClient(
            self._oracle,
            model=config.image_model,
            aspect_ratio=config.image_aspect_ratio,
        )

        self._logger: Optional[SessionLogger] = None
        if config.log_sessions:
            self._logger = SessionLogger(log_dir=str(config.session_log_dir))

        self._state = initial_state(config.default_track_id)

        # Request sequence counters
        self._analysis_seq = 0
        self._sweep_seq = 0

    @property
    def state(self) -> ConfiguratorState:
        return self._state

    def start(self) -> None:
        """Begin a logging session."""
        if self._logger:
            self._logger.start_session(self._state.track_id)

    async def stop(self) -> Optional[str]:
        """
        Save the session log and close the oracle client.

        Returns:
            Path of the saved session log, if any.
        """
        path = None
        if self._logger:
            path = self._logger.end_session()
        await self._oracle.close()
        return path

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def set_parameter(self, name: str, value: float) -> ConfiguratorState:
        self._state = apply_parameter_edit(self._state, name, value)
        return self._state

    def load_parameters(self, params: CarParameters) -> ConfiguratorState:
        self._state = load_parameters(self._state, params)
        return self._state

    def select_track(self, track_id: str) -> ConfiguratorState:
        self._state = select_track(self._state, track_id)
        return self._state

    def auto_optimize(self) -> ConfiguratorState:
        self._state = apply_auto_optimize(self._state)
        return self._state

    def toggle_baseline(self) -> ConfiguratorState:
        self._state = toggle_baseline(self._state)
        return self._state

    # =========================================================================
    # ORACLE OPERATIONS
    # =========================================================================

    async def analyze(self) -> ConfiguratorState:
        """
        Run analysis and image generation concurrently.

        Nothing is committed until both requests resolve. If a newer
        analysis started in the meantime, this result is discarded.
        """
        self._analysis_seq += 1
        seq = self._analysis_seq
        self._state = begin_analysis(self._state, seq)

        params = self._state.params
        track_id = self._state.track_id

        try:
            track = get_track(track_id)
            result, image = await asyncio.gather(
                self._analysis.analyze(params, track),
                self._images.render(params, track),
            )
        except OracleError as e:
            print(f"[Configurator] Analysis failed ({type(e).__name__}): {e.message}")
            self._log_error("analysis", e)
            self._state = fail_analysis(self._state, seq, describe_error(e))
            return self._state
        except Exception as e:
            print(f"[Configurator] Unexpected analysis error ({type(e).__name__}): {e}")
            self._state = fail_analysis(self._state, seq, describe_error(e))
            raise

        if seq != self._state.analysis_seq:
            print(f"[Configurator] Discarding stale analysis result #{seq}")
            return self._state

        self._state = complete_analysis(self._state, seq, result, image)
        if self._logger:
            self._logger.log_analysis(track_id, params, result, has_image=image is not None)
        return self._state

    async def sweep(
        self,
        variable: str,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        steps: Optional[int] = None,
    ) -> ConfiguratorState:
        """
        Run a sensitivity sweep for one variable.

        Range and step count default to the variable's sweep range and the
        configured step count.

        Raises:
            ValueError: If the variable or range is invalid.
        """
        variable = validate_variable(variable)
        default_min, default_max = SWEEP_RANGES[variable]
        minimum = default_min if minimum is None else minimum
        maximum = default_max if maximum is None else maximum
        steps = self._config.sensitivity_steps if steps is None else steps
        sweep_values(minimum, maximum, steps)

        self._sweep_seq += 1
        seq = self._sweep_seq
        self._state = begin_sweep(self._state, seq, variable)

        params = self._state.params
        track_id = self._state.track_id

        try:
            track = get_track(track_id)
            points = await self._sensitivity.sweep(
                params, track, variable, minimum, maximum, steps
            )
        except OracleError as e:
            print(f"[Configurator] Sweep failed ({type(e).__name__}): {e.message}")
            self._log_error("sensitivity", e)
            self._state = fail_sweep(self._state, seq, describe_error(e))
            return self._state
        except Exception as e:
            print(f"[Configurator] Unexpected sweep error ({type(e).__name__}): {e}")
            self._state = fail_sweep(self._state, seq, describe_error(e))
            raise

        if seq != self._state.sweep_seq:
            print(f"[Configurator] Discarding stale sweep result #{seq}")
            return self._state

        self._state = complete_sweep(self._state, seq, points)
        if self._logger:
            self._logger.log_sensitivity(track_id, variable, params, points)
        return self._state

    def export_csv(self, directory: Optional[Path] = None) -> Optional[Path]:
        """
        Export parameters and metrics to CSV.

        Returns:
            Path to the file, or None when there is nothing to export.
        """
        if not self._state.can_export:
            return None
        return write_csv(
            directory or self._config.export_dir,
            self._state.track_id,
            self._state.params,
            self._state.metrics,
        )

    def _log_error(self, operation: str, error: OracleError) -> None:
        if self._logger:
            self._logger.log_error(operation, type(error).__name__, error.message)


# =============================================================================
# CLI
# =============================================================================

def _parse_assignment(text: str) -> tuple:
    name, sep, raw = text.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected NAME=VALUE, got {text!r}")
    try:
        return name.strip(), float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Value for {name} must be numeric")


def build_parser(config: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Analyze a 2026 F1 car setup on a benchmark circuit"
    )
    parser.add_argument("--track", default=config.default_track_id,
                        help="Track id (see --list-tracks)")
    parser.add_argument("--list-tracks", action="store_true",
                        help="List available tracks and exit")
    parser.add_argument("--params", type=Path,
                        help="JSON file with all nine parameters")
    parser.add_argument("--set", dest="assignments", action="append", default=[],
                        type=_parse_assignment, metavar="NAME=VALUE",
                        help="Set a parameter, e.g. aeroDownforce=80 (repeatable)")
    parser.add_argument("--auto-optimize", action="store_true",
                        help="Move parameters to the middle of the track's optimal ranges")
    parser.add_argument("--sweep", metavar="VARIABLE", choices=sorted(SWEEP_RANGES),
                        help="Run a sensitivity sweep after the analysis")
    parser.add_argument("--steps", type=int, default=config.sensitivity_steps,
                        help="Number of sweep steps")
    parser.add_argument("--export", type=Path, nargs="?", const=config.export_dir,
                        help="Write a CSV export into this directory")
    parser.add_argument("--image-out", type=Path,
                        help="Save the flow visualization image to this file")
    return parser


def print_setup(state: ConfiguratorState) -> None:
    """Print the configuration with target zone markers."""
    flags = in_optimal_range(state.params, state.optimal_ranges)
    print(f"Track: {get_track(state.track_id).name}")
    for name, spec in PARAMETER_SPECS.items():
        value = state.params.get(name)
        shown = tyre_compound_label(value) if name == "tyreCompound" else format_parameter_value(value)
        low, high = state.optimal_ranges.get(name, (None, None))
        target = f"[{format_parameter_value(low)}-{format_parameter_value(high)}]" if low is not None else ""
        marker = "*" if flags.get(name) else " "
        print(f" {marker} {spec.label:<22} {shown:>14} {spec.unit:<3} {target}")


def print_results(state: ConfiguratorState) -> None:
    """Print metrics, tyre summary and narrative."""
    metrics = state.metrics
    print(f"\nSimulated lap time: {metrics.simulated_lap_time}")
    for name, value in metrics.to_dict().items():
        if name != "simulatedLapTime":
            print(f"  {name:<26} {value:8.2f}")

    deg = tyre_degradation(metrics)
    print(f"\nTyre stint life: {deg.life_pct:.0f}% ({deg.label})")

    if state.baseline is not None:
        comparison = compare_metrics(metrics, state.baseline)
        if comparison.lap_time is not None:
            print(f"Lap time vs baseline: {comparison.lap_time.difference:+.3f}s")

    print(f"\n{state.analysis}")


def print_sweep(state: ConfiguratorState) -> None:
    print(f"\nSensitivity: {SWEEP_LABELS[state.sweep_variable]}")
    for point in state.sweep_points:
        values = ", ".join(f"{k}={v}" for k, v in point.metrics.items())
        print(f"  {format_parameter_value(point.param_value):>6}: {values}")


async def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""
    config = Config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    if args.list_tracks:
        for track in list_tracks():
            print(f"{track.id:<12} {track.name} ({track.country}) - "
                  f"downforce {track.downforce_level}, abrasiveness {track.abrasiveness}")
        return 0

    if not config.has_api_key:
        print("[Config] GOOGLE_AI_API_KEY is not set; oracle requests will fail")

    configurator = Configurator(config)
    try:
        configurator.select_track(args.track)
        if args.params:
            data = json.loads(args.params.read_text(encoding="utf-8"))
            configurator.load_parameters(CarParameters.from_dict(data))
        for name, value in args.assignments:
            configurator.set_parameter(name, clamp_to_slider(name, value))
        if args.auto_optimize:
            configurator.auto_optimize()
    except (OracleError, ValueError, OSError) as e:
        await configurator.stop()
        parser.error(describe_error(e))

    print_setup(configurator.state)
    configurator.start()

    try:
        state = await configurator.analyze()
        if state.error:
            print(f"Error: {state.error}")
            return 1
        print_results(state)

        if args.image_out and state.flow_image is not None:
            args.image_out.write_bytes(state.flow_image.to_bytes())
            print(f"Flow image saved to: {args.image_out}")

        if args.sweep:
            state = await configurator.sweep(args.sweep, steps=args.steps)
            if state.sweep_error:
                print(f"Sensitivity error: {state.sweep_error}")
            else:
                print_sweep(state)

        if args.export:
            path = configurator.export_csv(args.export)
            if path:
                print(f"Exported to: {path}")
        return 0
    finally:
        path = await configurator.stop()
        if path:
            print(f"Session saved to: {path}")


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
