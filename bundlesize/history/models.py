from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


class DatasetFormat(str, Enum):
    csv = "csv"
    json = "json"


class AssetMeasurement(BaseModel):
    """Size of one logical asset for one run (files already summed)."""

    model_config = ConfigDict(populate_by_name=True)

    name: StrictStr = Field(min_length=1)
    size: StrictInt = Field(ge=0)
    compressed_size: StrictInt = Field(ge=0, alias="compressedSize")


class RunRecord(BaseModel):
    """One persisted history entry.

    Aliases are the persisted key names of the structured format. The
    delimited header spells two of them differently (``message`` for
    ``commitMessage``, ``compare`` for ``compareUrl``); both spellings are
    accepted on input.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    project: StrictStr
    branch: StrictStr
    revision: Optional[StrictStr] = Field(default=None, alias="changeset")
    message: StrictStr = Field(
        default="",
        validation_alias=AliasChoices("commitMessage", "message"),
        serialization_alias="commitMessage",
    )
    author: StrictStr = ""
    avatar_url: StrictStr = Field(default="", alias="avatar")
    base_revision: StrictStr = Field(default="", alias="baseRevision")
    compare_url: StrictStr = Field(
        default="",
        validation_alias=AliasChoices("compareUrl", "compare"),
        serialization_alias="compareUrl",
    )
    timestamp: StrictInt
    date: StrictStr
    stats_url: Optional[StrictStr] = Field(default=None, alias="statsUrl")
    report_url: Optional[StrictStr] = Field(default=None, alias="reportUrl")
    assets: List[AssetMeasurement]

    @field_validator("assets")
    @classmethod
    def _unique_asset_names(cls, value: List[AssetMeasurement]) -> List[AssetMeasurement]:
        seen = set()
        for asset in value:
            if asset.name in seen:
                raise ValueError(f"duplicate asset name {asset.name!r}")
            seen.add(asset.name)
        return value

    def to_wire(self) -> dict:
        """Structured record form; unset optional keys are left out."""
        return self.model_dump(by_alias=True, exclude_none=True)


class BaselineEntry(BaseModel):
    size: int
    compressed_size: int
    stats_url: Optional[str] = None


# Asset name -> baseline measurement for the target revision.
BaselineSummary = Dict[str, BaselineEntry]


class ComparisonResult(BaseModel):
    name: str
    size: int
    compressed_size: int
    has_baseline: bool = False
    size_delta: Optional[int] = None
    size_delta_percent: Optional[float] = None
    compressed_delta: Optional[int] = None
    compressed_delta_percent: Optional[float] = None

    @property
    def no_prior_data(self) -> bool:
        return not self.has_baseline


@dataclass(frozen=True)
class AppendResult:
    content: bytes
    is_first_run: bool
