"""Dataset codecs: one interface, a delimited-text and a structured implementation.

The codec for a run is chosen once from configuration (``get_codec``) and
used for both the baseline lookup and the append that follows it.
"""
from __future__ import annotations

import asyncio
import codecs
import csv
import json
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from pydantic import ValidationError

from bundlesize.common.errors import (
    DatasetFormatError,
    DatasetIOError,
    HistoryError,
    ObjectNotFound,
    RecordValidationError,
)
from bundlesize.history.models import AppendResult, BaselineEntry, BaselineSummary, DatasetFormat, RunRecord
from bundlesize.history.serializer import header_row, parse_int, record_rows, serialize_record
from bundlesize.history.tee import TeeBranch, capture_to_file, collect_bytes, tee

logger = logging.getLogger(__name__)

NewRecord = Union[RunRecord, Mapping[str, Any]]

_REQUIRED_COLUMNS = ("changeset", "name", "size", "compressedSize")


class DatasetCodec(Protocol):
    format: DatasetFormat
    content_type: str

    async def decode(
        self,
        stream: AsyncIterator[bytes],
        target_revision: str,
        capture_path: Path,
    ) -> Optional[BaselineSummary]:
        """Return the baseline for *target_revision*, or None when the dataset does not exist."""
        ...

    def append(self, existing: Optional[bytes], record: NewRecord) -> AppendResult:
        ...

    def append_to_file(self, path: Path, record: NewRecord, exists: bool) -> bool:
        """Append *record* to the captured dataset at *path*; returns is_first_run."""
        ...


def coerce_record(record: NewRecord) -> RunRecord:
    """Validate a new record before it is written."""
    if not isinstance(record, RunRecord):
        try:
            record = RunRecord.model_validate(record)
        except ValidationError as exc:
            raise RecordValidationError(
                f"Invalid run record: {exc.errors()[0].get('msg', exc)}",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
    if not record.assets:
        raise RecordValidationError("Run record has no assets to store")
    return record


async def _drain(branch: TeeBranch, work: Awaitable[Any]) -> Any:
    try:
        return await work
    finally:
        await branch.aclose()


async def _tee_into(
    stream: AsyncIterator[bytes],
    capture_path: Path,
    consumer,
) -> Tuple[bool, Any]:
    """Capture *stream* to *capture_path* while *consumer* reads a second copy.

    Returns ``(found, consumer_result)``. Absence of the object is reported
    as ``found=False`` and the partial capture file is removed.
    """
    capture_branch, read_branch = tee(stream)
    outcomes = await asyncio.gather(
        _drain(capture_branch, capture_to_file(capture_branch, capture_path)),
        _drain(read_branch, consumer(read_branch)),
        return_exceptions=True,
    )
    errors = [item for item in outcomes if isinstance(item, BaseException)]
    if any(isinstance(err, ObjectNotFound) for err in errors):
        capture_path.unlink(missing_ok=True)
        return False, None
    for err in errors:
        if isinstance(err, HistoryError) or not isinstance(err, Exception):
            raise err
    if errors:
        err = errors[0]
        raise DatasetIOError(f"Failed to read dataset: {err}", details={"path": str(capture_path)}) from err
    logger.debug("Captured %s bytes to %s", outcomes[0], capture_path)
    return True, outcomes[1]


def _split_records(text: str) -> Tuple[List[str], str]:
    """Split *text* into complete CSV records; the unterminated tail is returned separately.

    A newline inside a quoted field does not end a record: a record is only
    complete once it holds an even number of quote characters.
    """
    segments = text.split("\n")
    tail = segments.pop()
    records: List[str] = []
    current: List[str] = []
    quotes = 0
    for segment in segments:
        current.append(segment)
        quotes += segment.count('"')
        if quotes % 2 == 0:
            records.append("\n".join(current))
            current = []
            quotes = 0
    pending = "\n".join(current + [tail])
    return records, pending


class _CsvFold:
    """Streaming fold of CSV records into a baseline summary."""

    def __init__(self, target_revision: str) -> None:
        self.target_revision = target_revision
        self.summary: BaselineSummary = {}
        self.columns: Optional[Dict[str, int]] = None
        self.width = 0
        self.line = 0

    def feed(self, record: str) -> None:
        self.line += 1
        record = record.rstrip("\r")
        if not record.strip():
            return
        try:
            row = next(csv.reader([record]))
        except csv.Error as exc:
            raise DatasetFormatError(f"Malformed CSV at record {self.line}: {exc}") from exc
        if self.columns is None:
            self._read_header(row)
            return
        if len(row) != self.width:
            raise DatasetFormatError(
                f"Record {self.line} has {len(row)} fields but the header declares {self.width}",
                details={"record": self.line},
            )
        if not self.target_revision or row[self.columns["changeset"]] != self.target_revision:
            return
        name = row[self.columns["name"]]
        try:
            entry = BaselineEntry(
                size=parse_int(row[self.columns["size"]], "size"),
                compressed_size=parse_int(row[self.columns["compressedSize"]], "compressedSize"),
                stats_url=self._optional(row, "statsUrl"),
            )
        except ValueError as exc:
            raise DatasetFormatError(f"Record {self.line}: {exc}", details={"record": self.line}) from exc
        logger.debug("Matched %s for %s at record %s", name, self.target_revision, self.line)
        self.summary[name] = entry

    def _read_header(self, row: Sequence[str]) -> None:
        names = [column.strip() for column in row]
        if names:
            names[0] = names[0].lstrip("\ufeff")
        missing = [column for column in _REQUIRED_COLUMNS if column not in names]
        if missing:
            raise DatasetFormatError(
                f"CSV header is missing required columns: {', '.join(missing)}",
                details={"header": names},
            )
        self.columns = {name: idx for idx, name in enumerate(names)}
        self.width = len(names)

    def _optional(self, row: Sequence[str], column: str) -> Optional[str]:
        idx = self.columns.get(column) if self.columns else None
        if idx is None:
            return None
        return row[idx] or None


class DelimitedCodec:
    format = DatasetFormat.csv
    content_type = "text/csv"

    async def decode(
        self,
        stream: AsyncIterator[bytes],
        target_revision: str,
        capture_path: Path,
    ) -> Optional[BaselineSummary]:
        logger.info("Looking up baseline for revision %r in CSV dataset", target_revision)

        async def fold(branch: TeeBranch) -> BaselineSummary:
            state = _CsvFold(target_revision)
            decoder = codecs.getincrementaldecoder("utf-8")()
            pending = ""
            try:
                async for chunk in branch:
                    records, pending = _split_records(pending + decoder.decode(chunk))
                    for record in records:
                        state.feed(record)
                pending += decoder.decode(b"", final=True)
            except UnicodeDecodeError as exc:
                raise DatasetFormatError(f"Dataset is not valid UTF-8: {exc}") from exc
            if pending:
                state.feed(pending)
            return state.summary

        found, summary = await _tee_into(stream, capture_path, fold)
        return summary if found else None

    def append(self, existing: Optional[bytes], record: NewRecord) -> AppendResult:
        record = coerce_record(record)
        rows = "\n".join(record_rows(record))
        if existing is None or not existing.strip():
            return AppendResult(content=(header_row() + "\n" + rows).encode("utf-8"), is_first_run=True)
        separator = b"" if existing.endswith(b"\n") else b"\n"
        return AppendResult(content=existing + separator + rows.encode("utf-8"), is_first_run=False)

    def append_to_file(self, path: Path, record: NewRecord, exists: bool) -> bool:
        record = coerce_record(record)
        rows = "\n".join(record_rows(record)).encode("utf-8")
        if not exists or not path.exists() or path.stat().st_size == 0:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(header_row().encode("utf-8") + b"\n" + rows)
            logger.info("Started new CSV dataset at %s", path)
            return True
        with open(path, "rb") as handle:
            handle.seek(-1, 2)
            separator = b"" if handle.read(1) == b"\n" else b"\n"
        with open(path, "ab") as handle:
            handle.write(separator + rows)
        return False


class StructuredCodec:
    format = DatasetFormat.json
    content_type = "application/json"

    async def decode(
        self,
        stream: AsyncIterator[bytes],
        target_revision: str,
        capture_path: Path,
    ) -> Optional[BaselineSummary]:
        logger.info("Looking up baseline for revision %r in JSON dataset", target_revision)
        # The document is a single array, so decoding waits for the full capture.
        found, raw = await _tee_into(stream, capture_path, collect_bytes)
        if not found:
            return None
        summary: BaselineSummary = {}
        for record in self.load_records(raw):
            if not target_revision or record.revision != target_revision:
                continue
            for asset in record.assets:
                summary[asset.name] = BaselineEntry(
                    size=asset.size,
                    compressed_size=asset.compressed_size,
                    stats_url=record.stats_url or None,
                )
        return summary

    @staticmethod
    def _load_array(raw: bytes) -> List[Any]:
        if not raw.strip():
            return []
        try:
            items = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DatasetFormatError(f"Dataset is not valid JSON: {exc}") from exc
        if not isinstance(items, list):
            raise DatasetFormatError(
                f"JSON dataset is not an array (got {type(items).__name__})",
            )
        return items

    def load_records(self, raw: bytes) -> List[RunRecord]:
        records: List[RunRecord] = []
        for idx, item in enumerate(self._load_array(raw)):
            if not isinstance(item, dict):
                raise DatasetFormatError(f"Record {idx} is not an object", details={"record": idx})
            try:
                records.append(RunRecord.model_validate(item))
            except ValidationError as exc:
                first = exc.errors()[0]
                location = ".".join(str(part) for part in first.get("loc", ()))
                raise DatasetFormatError(
                    f"Record {idx} is invalid at {location or '<root>'}: {first.get('msg')}",
                    details={"record": idx, "field": location},
                ) from exc
        return records

    def append(self, existing: Optional[bytes], record: NewRecord) -> AppendResult:
        record = coerce_record(record)
        items = self._load_array(existing) if existing is not None else []
        is_first_run = not items
        items.append(serialize_record(record))
        return AppendResult(content=json.dumps(items).encode("utf-8"), is_first_run=is_first_run)

    def append_to_file(self, path: Path, record: NewRecord, exists: bool) -> bool:
        existing = path.read_bytes() if exists and path.exists() else None
        result = self.append(existing, record)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(result.content)
        if result.is_first_run:
            logger.info("Started new JSON dataset at %s", path)
        return result.is_first_run


_CODECS: Dict[DatasetFormat, DatasetCodec] = {
    DatasetFormat.csv: DelimitedCodec(),
    DatasetFormat.json: StructuredCodec(),
}


def get_codec(dataset_format: Union[str, DatasetFormat]) -> DatasetCodec:
    try:
        return _CODECS[DatasetFormat(dataset_format)]
    except ValueError as exc:
        raise DatasetFormatError(f"Unknown dataset format {dataset_format!r}") from exc


async def decode(
    stream: AsyncIterator[bytes],
    dataset_format: Union[str, DatasetFormat],
    target_revision: str,
    capture_path: Path,
) -> Optional[BaselineSummary]:
    return await get_codec(dataset_format).decode(stream, target_revision, capture_path)


def append_record(
    existing: Optional[bytes],
    record: NewRecord,
    dataset_format: Union[str, DatasetFormat],
) -> AppendResult:
    return get_codec(dataset_format).append(existing, record)
