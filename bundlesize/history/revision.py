"""Baseline revision resolution for push and pull-request events."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

from bundlesize.common.errors import RevisionLookupError
from bundlesize.common.trigger import TriggerContext

logger = logging.getLogger(__name__)


class HeadRevisionLookup(Protocol):
    async def head_revision(self, branch: str) -> str:
        """Return the head revision of *branch*; raise RevisionLookupError on failure."""
        ...


class GitHeadRevisionLookup:
    """Runs ``git rev-parse <branch>`` in the checked-out workspace."""

    def __init__(self, cwd: Optional[Path] = None, git: str = "git") -> None:
        self._cwd = cwd
        self._git = git

    async def head_revision(self, branch: str) -> str:
        if not branch:
            raise RevisionLookupError("Cannot resolve the head of an empty branch name")
        try:
            proc = await asyncio.create_subprocess_exec(
                self._git,
                "rev-parse",
                branch,
                cwd=str(self._cwd) if self._cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            out, err = await proc.communicate()
        except OSError as exc:
            raise RevisionLookupError(f"Failed to run git rev-parse {branch}: {exc}") from exc
        stderr = err.decode("utf-8", errors="replace").strip()
        revision = out.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0 or stderr:
            raise RevisionLookupError(
                f"git rev-parse {branch} failed: {stderr or f'exit status {proc.returncode}'}",
                details={"branch": branch, "returncode": proc.returncode},
            )
        if not revision:
            raise RevisionLookupError(f"git rev-parse {branch} returned no revision", details={"branch": branch})
        logger.debug("Resolved %s to %s", branch, revision)
        return revision


async def resolve_baseline(ctx: TriggerContext, lookup: HeadRevisionLookup) -> str:
    """Revision whose measurements the current run is compared against.

    Pull requests compare against the current head of the target branch.
    Pushes use the event's previous revision verbatim; it is empty on a
    repository's first push and then matches nothing.
    """
    if ctx.is_pull_request:
        revision = await lookup.head_revision(ctx.base_ref)
        logger.info("Pull request: comparing against %s head %s", ctx.base_ref, revision)
        return revision
    logger.info("Push: comparing against previous revision %r", ctx.before)
    return ctx.before
