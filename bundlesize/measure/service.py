from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from bundlesize.common.errors import DatasetIOError
from bundlesize.history.models import AssetMeasurement
from bundlesize.history.report import format_bytes
from bundlesize.measure.compress import Compression, compressed_size

logger = logging.getLogger(__name__)

# Asset label -> files that make up the asset.
AssetSpec = Dict[str, Sequence[str]]


@dataclass
class FileMeasurement:
    name: str
    path: str
    size: int
    compressed_size: int


def measure_assets(spec: AssetSpec, compression: Compression = "brotli") -> List[FileMeasurement]:
    """Measure every file of every asset; one record per physical file."""
    result: List[FileMeasurement] = []
    for name, paths in spec.items():
        total = 0
        compressed_total = 0
        logger.info("%s:", name)
        for path in paths:
            try:
                size = Path(path).stat().st_size
            except OSError as exc:
                raise DatasetIOError(f"Cannot stat asset file {path}: {exc}") from exc
            packed = compressed_size(path, compression)
            result.append(FileMeasurement(name=name, path=str(path), size=size, compressed_size=packed))
            total += size
            compressed_total += packed
            logger.info("* %s: %s (compressed: %s)", path, format_bytes(size), format_bytes(packed))
        if len(paths) > 1:
            logger.info("  TOTAL: %s (compressed: %s)", format_bytes(total), format_bytes(compressed_total))
    return result


def group_by_name(records: Iterable[FileMeasurement]) -> List[AssetMeasurement]:
    """Sum per-file measurements into one AssetMeasurement per asset name."""
    totals: Dict[str, List[int]] = {}
    for record in records:
        entry = totals.setdefault(record.name, [0, 0])
        entry[0] += record.size
        entry[1] += record.compressed_size
    return [
        AssetMeasurement(name=name, size=size, compressed_size=compressed)
        for name, (size, compressed) in totals.items()
    ]
