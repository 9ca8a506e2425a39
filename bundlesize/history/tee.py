"""Fan-out of one async byte stream to two independent consumers.

Each consumer owns a bounded queue. The pump only pulls the next chunk from
the source once both queues have room for the previous one, so the slower
consumer throttles the source while the faster one drains its own buffer.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

_EOF = object()


class _Failure:
    __slots__ = ("exc",)

    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


class TeeBranch:
    """One consumer handle; iterate it with ``async for``."""

    def __init__(self, tee: "StreamTee", queue: "asyncio.Queue[object]") -> None:
        self._tee = tee
        self._queue = queue
        self._done = False

    def __aiter__(self) -> "TeeBranch":
        return self

    async def __anext__(self) -> bytes:
        if self._done:
            raise StopAsyncIteration
        self._tee._ensure_started()
        item = await self._queue.get()
        if item is _EOF:
            self._done = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._done = True
            raise item.exc
        return item  # type: ignore[return-value]

    async def aclose(self) -> None:
        """Stop consuming; remaining chunks for this branch are discarded."""
        self._done = True
        self._tee._detach(self._queue)


class StreamTee:
    def __init__(self, source: AsyncIterator[bytes], max_buffered: int = 8) -> None:
        if max_buffered < 1:
            raise ValueError("max_buffered must be >= 1")
        self._source = source
        self._queues: List["asyncio.Queue[object]"] = [asyncio.Queue(maxsize=max_buffered) for _ in range(2)]
        self._detached: set[int] = set()
        self._pump_task: Optional["asyncio.Task[None]"] = None
        self.branches: Tuple[TeeBranch, TeeBranch] = (
            TeeBranch(self, self._queues[0]),
            TeeBranch(self, self._queues[1]),
        )

    def _ensure_started(self) -> None:
        if self._pump_task is None:
            self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    def _detach(self, queue: "asyncio.Queue[object]") -> None:
        self._detached.add(id(queue))
        # Unblock a pump waiting on this queue.
        while not queue.empty():
            queue.get_nowait()

    async def _broadcast(self, item: object) -> None:
        for queue in self._queues:
            if id(queue) in self._detached:
                continue
            await queue.put(item)

    async def _pump(self) -> None:
        try:
            async for chunk in self._source:
                if not chunk:
                    continue
                if len(self._detached) == len(self._queues):
                    return
                await self._broadcast(chunk)
        except Exception as exc:
            logger.debug("Source stream failed: %s", exc)
            await self._broadcast(_Failure(exc))
            return
        await self._broadcast(_EOF)


def tee(source: AsyncIterator[bytes], max_buffered: int = 8) -> Tuple[TeeBranch, TeeBranch]:
    return StreamTee(source, max_buffered=max_buffered).branches


async def capture_to_file(branch: AsyncIterator[bytes], path: Path) -> int:
    """Durably write every chunk of *branch* to *path*; returns bytes written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with open(path, "wb") as handle:
        async for chunk in branch:
            handle.write(chunk)
            written += len(chunk)
        handle.flush()
    return written


async def collect_bytes(branch: AsyncIterator[bytes]) -> bytes:
    parts: List[bytes] = []
    async for chunk in branch:
        parts.append(chunk)
    return b"".join(parts)
