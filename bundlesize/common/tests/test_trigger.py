import json
from datetime import datetime, timezone

import pytest

from bundlesize.common.errors import ConfigError
from bundlesize.common.trigger import TriggerContext, TriggerContextBuilder, branch_from_ref, parse_timestamp

PUSH_PAYLOAD = {
    "after": "e9c1bc8cf2f6f6a1a1b5a0d5c0f6e0a5b1c2d3e4",
    "before": "a1b2c3d4e5f60718293a4b5c6d7e8f9012345678",
    "compare": "https://github.com/myorg/myproject/compare/a1b2c3d4e5f6...e9c1bc8cf2f6",
    "head_commit": {
        "id": "e9c1bc8cf2f6f6a1a1b5a0d5c0f6e0a5b1c2d3e4",
        "message": "Bump deps",
        "timestamp": "2020-10-16T11:05:57+02:00",
        "author": {"name": "Author A", "username": "authorA"},
    },
    "sender": {"login": "authorA", "avatar_url": "https://avatars1.githubusercontent.com/u/1234"},
}

PR_PAYLOAD = {
    "pull_request": {
        "number": 42,
        "title": "Add feature",
        "updated_at": "2020-10-16T09:05:57Z",
        "head": {"sha": "feedface"},
        "base": {"ref": "develop"},
        "user": {"login": "contributor", "avatar_url": "https://avatars/c"},
    },
}


@pytest.mark.parametrize(
    "ref,base_ref,expected",
    [
        ("refs/heads/main", None, "main"),
        ("refs/heads/feature/x", None, "feature/x"),
        ("refs/pull/42/merge", "develop", "develop"),
        ("refs/pulls/42/merge", "develop", "develop"),
        ("refs/tags/v1.0", None, ""),
        ("", None, ""),
    ],
)
def test_branch_from_ref(ref, base_ref, expected):
    assert branch_from_ref(ref, base_ref) == expected


def test_parse_timestamp_handles_zulu_and_garbage():
    assert parse_timestamp("2020-10-16T09:05:57Z") == datetime(2020, 10, 16, 9, 5, 57, tzinfo=timezone.utc)
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_push_context_from_env(tmp_path):
    env = {
        "GITHUB_EVENT_NAME": "push",
        "GITHUB_REF": "refs/heads/main",
        "GITHUB_REPOSITORY": "myorg/myproject",
        "GITHUB_WORKSPACE": str(tmp_path),
    }
    ctx = TriggerContextBuilder.from_env(env, payload=PUSH_PAYLOAD)
    assert ctx.is_pull_request is False
    assert ctx.branch == "main"
    assert ctx.head_revision == PUSH_PAYLOAD["after"]
    assert ctx.before == PUSH_PAYLOAD["before"]
    assert ctx.author == "authorA"
    assert ctx.message == "Bump deps"
    assert ctx.compare_url == PUSH_PAYLOAD["compare"]
    assert ctx.workspace == tmp_path
    assert ctx.committed_at == datetime(2020, 10, 16, 9, 5, 57, tzinfo=timezone.utc)


def test_pull_request_context_reads_payload_file(tmp_path):
    event = tmp_path / "event.json"
    event.write_text(json.dumps(PR_PAYLOAD))
    env = {
        "GITHUB_EVENT_NAME": "pull_request",
        "GITHUB_EVENT_PATH": str(event),
        "GITHUB_REF": "refs/pull/42/merge",
        "GITHUB_BASE_REF": "develop",
    }
    ctx = TriggerContextBuilder.from_env(env)
    assert ctx.is_pull_request is True
    assert ctx.base_ref == "develop"
    assert ctx.branch == "develop"
    assert ctx.head_revision == "feedface"
    assert ctx.author == "contributor"
    assert ctx.pr_number == 42
    assert ctx.before == ""


def test_pull_request_base_ref_falls_back_to_payload():
    ctx = TriggerContextBuilder.from_env({"GITHUB_EVENT_NAME": "pull_request"}, payload=PR_PAYLOAD)
    assert ctx.base_ref == "develop"


def test_pull_request_without_base_ref_is_rejected():
    with pytest.raises(ConfigError):
        TriggerContext(event_name="pull_request", head_revision="x")


def test_event_name_is_required():
    with pytest.raises(ConfigError):
        TriggerContext(event_name="", head_revision="x")


def test_invalid_payload_file(tmp_path):
    event = tmp_path / "event.json"
    event.write_text("[1, 2]")
    with pytest.raises(ConfigError):
        TriggerContextBuilder.load_payload({"GITHUB_EVENT_PATH": str(event)})


def test_missing_payload_file_is_empty(tmp_path):
    assert TriggerContextBuilder.load_payload({"GITHUB_EVENT_PATH": str(tmp_path / "nope.json")}) == {}
