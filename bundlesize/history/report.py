"""Human-readable comparison summaries written through the logger."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from bundlesize.history.models import ComparisonResult

logger = logging.getLogger(__name__)

_UNITS = ["Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]


def format_bytes(num_bytes: int, decimals: int = 2) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    sign = "-" if num_bytes < 0 else ""
    magnitude = abs(num_bytes)
    k = 1024
    places = max(decimals, 0)
    idx = 0
    while idx < len(_UNITS) - 1 and magnitude >= k ** (idx + 1):
        idx += 1
    value = round(magnitude / k ** idx, places)
    text = f"{value:.{places}f}".rstrip("0").rstrip(".") if places else f"{value:.0f}"
    return f"{sign}{text} {_UNITS[idx]}"


def _describe(delta: Optional[int], percent: Optional[float]) -> str:
    if not delta:
        return "±0 bytes"
    pct = "" if percent is None else f" {'+' if percent > 0 else ''}{percent}%"
    if delta > 0:
        return f"+{format_bytes(delta)}{pct}"
    return f"-{format_bytes(abs(delta))}{pct}"


def summary_line(result: ComparisonResult) -> str:
    line = f"{result.name} {format_bytes(result.size)}"
    if not result.has_baseline:
        return f"{line} compressed: {format_bytes(result.compressed_size)} (no base revision found for comparison)"
    line += f" ({_describe(result.size_delta, result.size_delta_percent)})"
    line += f" compressed: {format_bytes(result.compressed_size)}"
    line += f" ({_describe(result.compressed_delta, result.compressed_delta_percent)})"
    return line


def log_comparison(results: Iterable[ComparisonResult]) -> List[str]:
    lines = [summary_line(result) for result in results]
    for line in lines:
        logger.info(line)
    return lines
