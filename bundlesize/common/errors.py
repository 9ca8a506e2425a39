"""Error taxonomy shared by the history engines."""
from __future__ import annotations

from typing import Any, Dict, Optional


class HistoryError(Exception):
    """Base class for every fatal error raised while processing a run."""

    code = "history.error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DatasetIOError(HistoryError):
    """Transport or storage failure other than the object being absent."""

    code = "dataset.io_error"


class RevisionLookupError(DatasetIOError):
    code = "revision.lookup_failed"


class DatasetFormatError(HistoryError):
    """Persisted bytes do not parse as the declared dataset format."""

    code = "dataset.format_error"


class RecordValidationError(HistoryError):
    """A new record handed to the appender is malformed."""

    code = "record.invalid"


class ConfigError(HistoryError):
    code = "config.invalid"


class ObjectNotFound(Exception):
    """Raised by storage adapters when the requested object does not exist.

    Not a HistoryError: absence of the dataset is the first-run signal and is
    converted into a ``None`` baseline by the decoder.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"object not found: {key}")
        self.key = key
