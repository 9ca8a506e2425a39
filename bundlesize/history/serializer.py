"""Field encoders for the two dataset exchange formats. Pure, no I/O."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from bundlesize.history.models import AssetMeasurement, RunRecord

Scalar = Union[str, int, float, None]

# Column order is load-bearing: older datasets were written with exactly this header.
CSV_HEADER = (
    "project",
    "branch",
    "changeset",
    "message",
    "author",
    "avatar",
    "baseRevision",
    "compare",
    "timestamp",
    "date",
    "name",
    "size",
    "compressedSize",
    "statsUrl",
    "reportUrl",
)

_NEEDS_QUOTING = (",", '"', "\n", "\r")


def serialize_field(value: Scalar) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    if any(ch in text for ch in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def serialize_row(values: Sequence[Scalar]) -> str:
    """Encode one delimited-text row (no trailing newline)."""
    return ",".join(serialize_field(value) for value in values)


def header_row() -> str:
    return serialize_row(CSV_HEADER)


def _row_values(record: RunRecord, asset: AssetMeasurement) -> List[Scalar]:
    return [
        record.project,
        record.branch,
        record.revision or "",
        record.message,
        record.author,
        record.avatar_url,
        record.base_revision,
        record.compare_url,
        record.timestamp,
        record.date,
        asset.name,
        asset.size,
        asset.compressed_size,
        record.stats_url,
        record.report_url,
    ]


def record_rows(record: RunRecord) -> List[str]:
    """One row per asset, each repeating the run-level fields."""
    return [serialize_row(_row_values(record, asset)) for asset in record.assets]


def serialize_record(record: RunRecord) -> Dict[str, Any]:
    """Structured form: run-level keys plus a nested ``assets`` list."""
    return record.to_wire()


def parse_int(value: Optional[str], column: str) -> int:
    if value is None or value.strip() == "":
        raise ValueError(f"column {column!r} is empty")
    try:
        return int(value)
    except ValueError:
        # Some writers emitted whole numbers as floats ("182310.0").
        number = float(value)
        if not number.is_integer():
            raise ValueError(f"column {column!r} is not an integer: {value!r}") from None
        return int(number)
