"""Runtime configuration helpers for the history engines."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from bundlesize.common.errors import ConfigError

VALID_FORMATS = frozenset({"csv", "json"})
VALID_BACKENDS = frozenset({"s3", "filesystem", "memory"})

DEFAULT_CACHE_CONTROL = "max-age=0, no-cache"
DEFAULT_ACCESS_POLICY = ""
MANIFEST_FILENAME = "quicksight_manifest.json"


def _get_env(name: str, default: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    source = os.environ if environ is None else environ
    value = source.get(name)
    if value is None or value == "":
        return default
    return value


def get_dataset_bucket(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    return _get_env("BUNDLESIZE_BUCKET", environ=environ)


def get_dataset_prefix(environ: Optional[Mapping[str, str]] = None) -> str:
    return (_get_env("BUNDLESIZE_DEST", "", environ) or "").strip("/")


def get_dataset_format(environ: Optional[Mapping[str, str]] = None) -> str:
    return (_get_env("BUNDLESIZE_FORMAT", "csv", environ) or "csv").lower()


def get_region(environ: Optional[Mapping[str, str]] = None) -> str:
    return (
        _get_env("BUNDLESIZE_REGION", environ=environ)
        or _get_env("AWS_REGION", environ=environ)
        or _get_env("AWS_DEFAULT_REGION", environ=environ)
        or "us-east-1"
    )


def get_project(environ: Optional[Mapping[str, str]] = None) -> str:
    explicit = _get_env("BUNDLESIZE_PROJECT", environ=environ)
    if explicit:
        return explicit
    repository = _get_env("GITHUB_REPOSITORY", "", environ) or ""
    return repository.split("/")[-1] or "default"


def get_workspace(environ: Optional[Mapping[str, str]] = None) -> Path:
    return Path(_get_env("GITHUB_WORKSPACE", environ=environ) or Path.cwd())


def get_storage_backend(environ: Optional[Mapping[str, str]] = None) -> str:
    return (_get_env("BUNDLESIZE_BACKEND", "s3", environ) or "s3").lower()


def get_filesystem_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    root = _get_env("BUNDLESIZE_FS_DIR", environ=environ)
    if root:
        return Path(root)
    return get_workspace(environ) / "var" / "bundlesize_store"


def get_cache_control(environ: Optional[Mapping[str, str]] = None) -> str:
    return _get_env("BUNDLESIZE_CACHE_CONTROL", DEFAULT_CACHE_CONTROL, environ) or DEFAULT_CACHE_CONTROL


def get_access_policy(environ: Optional[Mapping[str, str]] = None) -> str:
    return _get_env("BUNDLESIZE_ACL", DEFAULT_ACCESS_POLICY, environ) or DEFAULT_ACCESS_POLICY


@dataclass
class HistorySettings:
    """Resolved configuration for one run."""

    project: str
    dataset_format: str
    backend: str
    bucket: Optional[str]
    prefix: str
    region: str
    workspace: Path
    cache_control: str = DEFAULT_CACHE_CONTROL
    access_policy: str = DEFAULT_ACCESS_POLICY

    @property
    def extension(self) -> str:
        return self.dataset_format

    def _key(self, filename: str) -> str:
        parts = [p for p in (self.prefix, self.project, filename) if p]
        return "/".join(parts)

    @property
    def dataset_key(self) -> str:
        return self._key(f"log.{self.extension}")

    @property
    def manifest_key(self) -> str:
        return self._key(MANIFEST_FILENAME)

    @property
    def capture_path(self) -> Path:
        """Local file the downloaded dataset is captured into while decoding."""
        return self.workspace / ".bundlesize" / f"log.{self.extension}"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> HistorySettings:
    """Read and validate settings from the environment."""
    dataset_format = get_dataset_format(environ)
    if dataset_format not in VALID_FORMATS:
        raise ConfigError(
            f"Unrecognized dataset format {dataset_format!r}; expected one of {sorted(VALID_FORMATS)}",
            details={"format": dataset_format},
        )
    backend = get_storage_backend(environ)
    if backend not in VALID_BACKENDS:
        raise ConfigError(
            f"Unrecognized storage backend {backend!r}; expected one of {sorted(VALID_BACKENDS)}",
            details={"backend": backend},
        )
    bucket = get_dataset_bucket(environ)
    if backend == "s3" and not bucket:
        raise ConfigError("BUNDLESIZE_BUCKET config missing. Set it to the S3 bucket holding the dataset.")
    return HistorySettings(
        project=get_project(environ),
        dataset_format=dataset_format,
        backend=backend,
        bucket=bucket,
        prefix=get_dataset_prefix(environ),
        region=get_region(environ),
        workspace=get_workspace(environ),
        cache_control=get_cache_control(environ),
        access_policy=get_access_policy(environ),
    )
