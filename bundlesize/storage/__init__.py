"""Dataset object storage."""
from bundlesize.storage.filesystem_adapter import FileSystemDatasetRepository
from bundlesize.storage.repository import (
    DatasetRepository,
    InMemoryDatasetRepository,
    S3DatasetRepository,
    object_url,
)

__all__ = [
    "DatasetRepository",
    "FileSystemDatasetRepository",
    "InMemoryDatasetRepository",
    "S3DatasetRepository",
    "object_url",
]
