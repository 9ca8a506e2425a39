"""History repository and comparison engine."""
from bundlesize.history.formats import DatasetCodec, DelimitedCodec, StructuredCodec, get_codec
from bundlesize.history.compare import compare, compare_totals, round1
from bundlesize.history.models import (
    AppendResult,
    AssetMeasurement,
    BaselineEntry,
    BaselineSummary,
    ComparisonResult,
    DatasetFormat,
    RunRecord,
)

__all__ = [
    "AppendResult",
    "AssetMeasurement",
    "BaselineEntry",
    "BaselineSummary",
    "ComparisonResult",
    "DatasetCodec",
    "DatasetFormat",
    "DelimitedCodec",
    "RunRecord",
    "StructuredCodec",
    "compare",
    "compare_totals",
    "get_codec",
    "round1",
]
