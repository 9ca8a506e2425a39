"""Storage-location manifest consumed by the analytics ingestion (QuickSight-style)."""
from __future__ import annotations

from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

MANIFEST_CONTENT_TYPE = "application/json"


class FileLocation(BaseModel):
    URIs: Optional[List[str]] = None
    URIPrefixes: Optional[List[str]] = None


class UploadSettings(BaseModel):
    format: Literal["CSV", "TSV", "CLF", "ELF", "JSON"] = "CSV"
    delimiter: str = ","
    textqualifier: str = '"'
    containsHeader: bool = True


class Manifest(BaseModel):
    fileLocations: List[FileLocation] = Field(default_factory=list)
    globalUploadSettings: Optional[UploadSettings] = None

    def to_bytes(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")


def build_manifest(uris: Sequence[str], dataset_format: Optional[str] = None) -> Manifest:
    settings = None
    if dataset_format == "json":
        settings = UploadSettings(format="JSON", containsHeader=False)
    return Manifest(fileLocations=[FileLocation(URIs=list(uris))], globalUploadSettings=settings)

