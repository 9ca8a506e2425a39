import json

import pytest

from bundlesize.common.errors import ConfigError
from bundlesize.history import runner
from bundlesize.history.runner import load_measurements, main

_ENV_TO_CLEAR = (
    "BUNDLESIZE_PROJECT",
    "BUNDLESIZE_DEST",
    "BUNDLESIZE_FORMAT",
    "BUNDLESIZE_REGION",
    "BUNDLESIZE_CACHE_CONTROL",
    "BUNDLESIZE_ACL",
    "GITHUB_BASE_REF",
    "GITHUB_SERVER_URL",
)


@pytest.fixture
def ci_env(monkeypatch, tmp_path):
    for name in _ENV_TO_CLEAR:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(runner, "configure_logging", lambda verbose=False: None)

    def _set(head, before="", **extra):
        payload = tmp_path / f"event-{head}.json"
        payload.write_text(json.dumps({
            "after": head,
            "before": before,
            "compare": f"https://github.com/myorg/myproject/compare/{before}...{head}",
            "head_commit": {
                "message": f"Commit {head}",
                "timestamp": "2020-10-16T09:05:57Z",
                "author": {"username": "authorA"},
            },
            "sender": {"login": "authorA", "avatar_url": "https://avatars/1234"},
        }))
        env = {
            "BUNDLESIZE_BACKEND": "filesystem",
            "BUNDLESIZE_FS_DIR": str(tmp_path / "store"),
            "BUNDLESIZE_BUCKET": "stats",
            "GITHUB_WORKSPACE": str(tmp_path),
            "GITHUB_EVENT_NAME": "push",
            "GITHUB_EVENT_PATH": str(payload),
            "GITHUB_REF": "refs/heads/main",
            "GITHUB_SHA": head,
            "GITHUB_REPOSITORY": "myorg/myproject",
        }
        env.update(extra)
        for name, value in env.items():
            monkeypatch.setenv(name, value)

    return _set


def _measurements(tmp_path, items):
    path = tmp_path / "measurements.json"
    path.write_text(json.dumps(items))
    return path


def test_store_then_compare(ci_env, tmp_path, capsys):
    ci_env("aaa111")
    first = _measurements(tmp_path, [{"name": "app.js", "size": 100, "compressedSize": 50}])
    assert main(["--action", "store", "--measurements", str(first)]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["is_first_run"] is True
    dataset = tmp_path / "store" / "stats" / "myproject" / "log.csv"
    assert dataset.is_file()
    assert (tmp_path / "store" / "stats" / "myproject" / "quicksight_manifest.json").is_file()
    assert "myproject,main,aaa111,Commit aaa111,authorA," in dataset.read_text()

    ci_env("bbb222", before="aaa111")
    second = _measurements(tmp_path, [{"name": "app.js", "size": 150, "compressedSize": 50}])
    assert main(["--measurements", str(second)]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["base_revision"] == "aaa111"
    assert result["results"][0]["size_delta"] == 50
    assert result["results"][0]["size_delta_percent"] == 50.0
    assert result["is_first_run"] is None


def test_config_error_exits_nonzero(ci_env, tmp_path, capsys):
    ci_env("aaa111", BUNDLESIZE_FORMAT="xml")
    path = _measurements(tmp_path, [{"name": "app.js", "size": 1, "compressedSize": 1}])
    assert main(["--measurements", str(path)]) == 1
    assert capsys.readouterr().err.startswith("[config.invalid] Unrecognized dataset format 'xml'")


def test_load_measurements_groups_duplicate_names(tmp_path):
    path = _measurements(tmp_path, [
        {"name": "app.js", "size": 10, "compressedSize": 4},
        {"name": "vendor.js", "size": 5, "compressedSize": 2},
        {"name": "app.js", "size": 1, "compressedSize": 1},
    ])
    assets = load_measurements(path)
    assert [(a.name, a.size, a.compressed_size) for a in assets] == [("app.js", 11, 5), ("vendor.js", 5, 2)]


def test_load_measurements_measures_paths(tmp_path):
    bundle = tmp_path / "app.js"
    bundle.write_bytes(b"console.log('hi');\n" * 50)
    path = _measurements(tmp_path, [{"name": "app", "paths": [str(bundle)]}])
    [asset] = load_measurements(path, compression="gzip")
    assert asset.size == bundle.stat().st_size
    assert 0 < asset.compressed_size < asset.size


@pytest.mark.parametrize("content", ['{"name": "x"}', '[{"size": 1}]', '[{"name": "x", "size": -1, "compressedSize": 0}]'])
def test_load_measurements_rejects_bad_input(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_measurements(path)


@pytest.mark.parametrize("paths", [5, "dist/app.js", [], ["dist/app.js", 3]])
def test_malformed_paths_exit_with_message(ci_env, tmp_path, capsys, paths):
    ci_env("aaa111")
    path = _measurements(tmp_path, [{"name": "app", "paths": paths}])
    assert main(["--measurements", str(path), "--compression", "gzip"]) == 1
    assert capsys.readouterr().err.splitlines()[-1].startswith("[config.invalid] Measurement 0")


def test_unexpected_errors_exit_with_message(ci_env, tmp_path, monkeypatch, capsys):
    ci_env("aaa111")

    def explode(path, compression="brotli"):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(runner, "load_measurements", explode)
    path = _measurements(tmp_path, [{"name": "app.js", "size": 1, "compressedSize": 1}])
    assert main(["--measurements", str(path)]) == 1
    assert capsys.readouterr().err.splitlines()[-1] == "[unexpected.RuntimeError] disk on fire"


def test_load_measurements_rejects_non_string_name(tmp_path):
    path = _measurements(tmp_path, [{"name": 7, "size": 1, "compressedSize": 1}])
    with pytest.raises(ConfigError):
        load_measurements(path)
