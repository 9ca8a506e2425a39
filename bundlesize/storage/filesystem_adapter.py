"""Filesystem-backed dataset storage for local runs.

Location: <base_dir>/<bucket>/<key>
"""
from __future__ import annotations

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import AsyncIterator

from bundlesize.common.errors import DatasetIOError, ObjectNotFound

logger = logging.getLogger(__name__)


class FileSystemDatasetRepository:
    def __init__(self, base_dir: str | Path, bucket_name: str = "local", chunk_size: int = 64 * 1024) -> None:
        self.bucket_name = bucket_name
        self._root = Path(base_dir) / bucket_name
        self._chunk_size = chunk_size

    def _path(self, key: str) -> Path:
        """Full path for *key*; parent traversal segments are rejected."""
        parts = [part for part in key.split("/") if part]
        if not parts or any(part in {".", ".."} for part in parts):
            raise DatasetIOError(f"Invalid object key {key!r}", details={"key": key})
        return self._root.joinpath(*parts)

    def url_for(self, key: str) -> str:
        return self._path(key).resolve().as_uri()

    async def open_stream(self, key: str) -> AsyncIterator[bytes]:
        path = self._path(key)
        if not path.is_file():
            raise ObjectNotFound(key)
        try:
            with open(path, "rb") as handle:
                while True:
                    chunk = handle.read(self._chunk_size)
                    if not chunk:
                        break
                    yield chunk
                    await asyncio.sleep(0)
        except OSError as exc:
            raise DatasetIOError(f"Failed to read {path}: {exc}") from exc

    def _write_meta(self, path: Path, content_type: str, cache_control: str, access_policy: str) -> None:
        meta = {"content_type": content_type, "cache_control": cache_control, "access_policy": access_policy}
        path.with_name(path.name + ".meta.json").write_text(json.dumps(meta), encoding="utf-8")

    async def put(
        self,
        key: str,
        content: bytes,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
            self._write_meta(path, content_type, cache_control, access_policy)
        except OSError as exc:
            logger.error("Failed to store %s: %s", key, exc)
            raise DatasetIOError(f"Object store PUT failed for {key}: {exc}") from exc
        return self.url_for(key)

    async def upload_file(
        self,
        key: str,
        path: Path,
        content_type: str,
        cache_control: str = "",
        access_policy: str = "",
    ) -> str:
        target = self._path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, target)
            self._write_meta(target, content_type, cache_control, access_policy)
        except OSError as exc:
            raise DatasetIOError(f"Object store upload failed for {key}: {exc}") from exc
        return self.url_for(key)
