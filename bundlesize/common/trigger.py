"""Explicit trigger context built once from the CI environment."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from bundlesize.common.errors import ConfigError

logger = logging.getLogger(__name__)

PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})
DEFAULT_SERVER_URL = "https://github.com"


def branch_from_ref(ref: Optional[str], base_ref: Optional[str] = None) -> str:
    """Branch name for a ref: ``refs/heads/<b>`` gives ``<b>``, pull refs give the base ref."""
    if not ref:
        return ""
    if ref.startswith("refs/heads/"):
        return ref[len("refs/heads/"):]
    if (ref.startswith("refs/pull/") or ref.startswith("refs/pulls/")) and base_ref:
        return base_ref
    logger.warning("Failed to find branch name for ref %s (base ref %r)", ref, base_ref)
    return ""


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Ignoring unparseable commit timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class TriggerContext:
    event_name: str
    head_revision: str
    repository: str = ""
    branch: str = ""
    before: str = ""
    base_ref: str = ""
    workspace: Path = field(default_factory=Path.cwd)
    message: str = ""
    author: str = ""
    avatar_url: str = ""
    compare_url: str = ""
    pr_number: Optional[int] = None
    committed_at: Optional[datetime] = None
    server_url: str = DEFAULT_SERVER_URL

    def __post_init__(self) -> None:
        if not self.event_name:
            raise ConfigError("event_name is required")
        if self.is_pull_request and not self.base_ref:
            raise ConfigError(
                "Pull request events require a base ref (GITHUB_BASE_REF)",
                details={"event_name": self.event_name},
            )

    @property
    def is_pull_request(self) -> bool:
        return self.event_name in PULL_REQUEST_EVENTS or self.pr_number is not None


class TriggerContextBuilder:
    """Builder for TriggerContext from CI environment variables and the event payload."""

    @classmethod
    def load_payload(cls, environ: Mapping[str, str]) -> Dict[str, Any]:
        path = environ.get("GITHUB_EVENT_PATH")
        if not path:
            return {}
        event_file = Path(path)
        if not event_file.exists():
            logger.warning("Event payload %s does not exist", event_file)
            return {}
        try:
            payload = json.loads(event_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid event payload in {event_file}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigError(f"Event payload in {event_file} is not an object")
        return payload

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> TriggerContext:
        env = os.environ if environ is None else environ
        if payload is None:
            payload = cls.load_payload(env)
        pull_request = payload.get("pull_request") or None
        event_name = env.get("GITHUB_EVENT_NAME") or ("pull_request" if pull_request else "push")
        base_ref = env.get("GITHUB_BASE_REF") or ""
        ref = env.get("GITHUB_REF") or ""
        sender = payload.get("sender") or {}

        if pull_request:
            head = pull_request.get("head") or {}
            base = pull_request.get("base") or {}
            user = pull_request.get("user") or {}
            base_ref = base_ref or base.get("ref") or ""
            return TriggerContext(
                event_name=event_name,
                head_revision=head.get("sha") or env.get("GITHUB_SHA") or "",
                repository=env.get("GITHUB_REPOSITORY") or "",
                branch=branch_from_ref(ref, base_ref) or base_ref,
                before="",
                base_ref=base_ref,
                workspace=Path(env.get("GITHUB_WORKSPACE") or Path.cwd()),
                message=pull_request.get("title") or "",
                author=user.get("login") or sender.get("login") or "",
                avatar_url=user.get("avatar_url") or sender.get("avatar_url") or "",
                pr_number=pull_request.get("number"),
                committed_at=parse_timestamp(pull_request.get("updated_at")),
                server_url=env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
            )

        head_commit = payload.get("head_commit") or {}
        commit_author = head_commit.get("author") or {}
        return TriggerContext(
            event_name=event_name,
            head_revision=payload.get("after") or head_commit.get("id") or env.get("GITHUB_SHA") or "",
            repository=env.get("GITHUB_REPOSITORY") or "",
            branch=branch_from_ref(ref, base_ref),
            before=payload.get("before") or "",
            base_ref=base_ref,
            workspace=Path(env.get("GITHUB_WORKSPACE") or Path.cwd()),
            message=head_commit.get("message") or "",
            author=commit_author.get("username") or commit_author.get("name") or sender.get("login") or "",
            avatar_url=sender.get("avatar_url") or "",
            compare_url=payload.get("compare") or "",
            committed_at=parse_timestamp(head_commit.get("timestamp")),
            server_url=env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
        )
