"""Size deltas between the current run and a baseline. No I/O.

Sign convention: a negative delta means the asset shrank, positive means it grew.
Percentages are ``None`` when the baseline metric is zero.
"""
from __future__ import annotations

import math
import sys
from typing import Iterable, List, Mapping, Optional, Tuple

from bundlesize.history.models import AssetMeasurement, BaselineEntry, ComparisonResult

TOTAL_NAME = "total"


def round1(value: float) -> float:
    """Round to one decimal place, halves away from zero.

    ``sys.float_info.epsilon`` is added to the magnitude first so values such
    as 1.005 * 10 that land just below a half due to binary representation
    still round up.
    """
    magnitude = math.floor((abs(value) + sys.float_info.epsilon) * 10 + 0.5) / 10
    return math.copysign(magnitude, value) if magnitude else 0.0


def _delta(current: int, previous: int) -> Tuple[int, Optional[float]]:
    delta = current - previous
    if previous == 0:
        return delta, None
    return delta, round1(delta / previous * 100)


def _result(name: str, size: int, compressed_size: int, previous: Optional[BaselineEntry]) -> ComparisonResult:
    if previous is None:
        return ComparisonResult(name=name, size=size, compressed_size=compressed_size)
    size_delta, size_pct = _delta(size, previous.size)
    compressed_delta, compressed_pct = _delta(compressed_size, previous.compressed_size)
    return ComparisonResult(
        name=name,
        size=size,
        compressed_size=compressed_size,
        has_baseline=True,
        size_delta=size_delta,
        size_delta_percent=size_pct,
        compressed_delta=compressed_delta,
        compressed_delta_percent=compressed_pct,
    )


def compare(
    current: Iterable[AssetMeasurement],
    baseline: Optional[Mapping[str, BaselineEntry]],
) -> List[ComparisonResult]:
    baseline = baseline or {}
    return [
        _result(asset.name, asset.size, asset.compressed_size, baseline.get(asset.name))
        for asset in current
    ]


def compare_totals(
    current: Iterable[AssetMeasurement],
    baseline: Optional[Mapping[str, BaselineEntry]],
) -> ComparisonResult:
    """Aggregate over every current asset against every baseline asset."""
    assets = list(current)
    size = sum(asset.size for asset in assets)
    compressed_size = sum(asset.compressed_size for asset in assets)
    if not baseline:
        return _result(TOTAL_NAME, size, compressed_size, None)
    previous = BaselineEntry(
        size=sum(entry.size for entry in baseline.values()),
        compressed_size=sum(entry.compressed_size for entry in baseline.values()),
    )
    return _result(TOTAL_NAME, size, compressed_size, previous)
