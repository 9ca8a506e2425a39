"""Compressed-size measurement for build artifacts."""
from __future__ import annotations

import zlib
from pathlib import Path
from typing import Literal

try:  # pragma: no cover - optional dep
    import brotli  # type: ignore
except Exception:  # pragma: no cover
    brotli = None

from bundlesize.common.errors import ConfigError, DatasetIOError

Compression = Literal["brotli", "gzip"]
CHUNK_SIZE = 256 * 1024
_GZIP_WBITS = 16 + zlib.MAX_WBITS


def _gzip_size(path: Path) -> int:
    compressor = zlib.compressobj(9, zlib.DEFLATED, _GZIP_WBITS)
    total = 0
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
            total += len(compressor.compress(chunk))
    return total + len(compressor.flush())


def _brotli_size(path: Path) -> int:
    if brotli is None:
        raise ConfigError("brotli is required for brotli compression; install bundlesize-history[brotli]")
    compressor = brotli.Compressor(quality=11)
    total = 0
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
            total += len(compressor.process(chunk))
    return total + len(compressor.finish())


def compressed_size(path: str | Path, compression: Compression = "brotli") -> int:
    """Size in bytes of *path* after compression; nothing is written to disk."""
    target = Path(path)
    try:
        if compression == "gzip":
            return _gzip_size(target)
        if compression == "brotli":
            return _brotli_size(target)
    except OSError as exc:
        raise DatasetIOError(f"Failed to read {target}: {exc}") from exc
    raise ConfigError(f"Unsupported compression {compression!r}; expected brotli or gzip")
