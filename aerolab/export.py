"""
CSV export of the current configuration and last metrics.
"""

import csv
import io
from pathlib import Path
from typing import Optional, Union

from .metrics import PerformanceMetrics
from .parameters import CarParameters, format_parameter_value


CSV_HEADER = ("Category", "Parameter", "Value")
CSV_MIME_TYPE = "text/csv"


def export_filename(track_id: str) -> str:
    """File name for an export, e.g. f1_2026_analysis_monaco.csv."""
    return f"f1_2026_analysis_{track_id}.csv"


def _format_metric(value: Union[float, str]) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value:.4f}"
    return str(value)


def to_csv(
    params: CarParameters,
    metrics: Optional[PerformanceMetrics],
) -> Optional[str]:
    """
    Render parameters and metrics as CSV text.

    Args:
        params: Current configuration.
        metrics: Last analysis metrics.

    Returns:
        CSV text, or None when there are no metrics to export.
    """
    if metrics is None:
        return None

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for name, value in params.to_dict().items():
        writer.writerow(("Parameter", name, format_parameter_value(value)))
    for name, value in metrics.to_dict().items():
        writer.writerow(("Metric", name, _format_metric(value)))

    return buffer.getvalue().rstrip("\n")


def write_csv(
    directory: Union[str, Path],
    track_id: str,
    params: CarParameters,
    metrics: Optional[PerformanceMetrics],
) -> Optional[Path]:
    """
    Write an export file into a directory.

    Returns:
        Path to the written file, or None when there are no metrics.
    """
    content = to_csv(params, metrics)
    if content is None:
        return None

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(track_id)
    path.write_text(content, encoding="utf-8")
    return path
