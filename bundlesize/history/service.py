"""One fetch/compare/append cycle for a build event."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from bundlesize.common.errors import ConfigError
from bundlesize.common.trigger import TriggerContext
from bundlesize.config.runtime_config import HistorySettings, get_filesystem_root
from bundlesize.history.compare import compare, compare_totals
from bundlesize.history.formats import DatasetCodec, get_codec
from bundlesize.history.manifest import MANIFEST_CONTENT_TYPE, build_manifest
from bundlesize.history.models import AssetMeasurement, BaselineEntry, BaselineSummary, ComparisonResult, RunRecord
from bundlesize.history.report import log_comparison
from bundlesize.history.revision import GitHeadRevisionLookup, HeadRevisionLookup, resolve_baseline
from bundlesize.storage.filesystem_adapter import FileSystemDatasetRepository
from bundlesize.storage.repository import DatasetRepository, InMemoryDatasetRepository, S3DatasetRepository

logger = logging.getLogger(__name__)

Action = Literal["compare", "store"]


def iso_date(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. ``2020-10-16T09:05:57.000Z``."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def build_run_record(
    ctx: TriggerContext,
    project: str,
    assets: Sequence[AssetMeasurement],
    base_revision: str,
    stats_url: Optional[str] = None,
    report_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RunRecord:
    moment = ctx.committed_at or now or datetime.now(timezone.utc)
    compare_url = ctx.compare_url
    if not compare_url and base_revision and ctx.repository and ctx.head_revision:
        compare_url = f"{ctx.server_url}/{ctx.repository}/compare/{base_revision[:12]}...{ctx.head_revision[:12]}"
    return RunRecord(
        project=project,
        branch=ctx.branch,
        revision=ctx.head_revision or None,
        message=ctx.message,
        author=ctx.author,
        avatar_url=ctx.avatar_url,
        base_revision=base_revision,
        compare_url=compare_url,
        timestamp=int(moment.timestamp() * 1000),
        date=iso_date(moment),
        stats_url=stats_url,
        report_url=report_url,
        assets=list(assets),
    )


class RunOutcome(BaseModel):
    base_revision: str
    dataset_found: bool
    baseline: Dict[str, BaselineEntry] = Field(default_factory=dict)
    results: List[ComparisonResult] = Field(default_factory=list)
    total: ComparisonResult
    is_first_run: Optional[bool] = None
    dataset_url: Optional[str] = None
    manifest_url: Optional[str] = None


def build_repository(settings: HistorySettings) -> DatasetRepository:
    if settings.backend == "s3":
        return S3DatasetRepository(bucket_name=settings.bucket or "", region=settings.region)
    if settings.backend == "filesystem":
        return FileSystemDatasetRepository(get_filesystem_root(), bucket_name=settings.bucket or "local")
    if settings.backend == "memory":
        return InMemoryDatasetRepository(bucket_name=settings.bucket or "test-mem-bucket", region=settings.region)
    raise ConfigError(f"Unrecognized storage backend {settings.backend!r}")


class HistoryService:
    def __init__(
        self,
        settings: HistorySettings,
        repo: Optional[DatasetRepository] = None,
        lookup: Optional[HeadRevisionLookup] = None,
        codec: Optional[DatasetCodec] = None,
    ) -> None:
        self.settings = settings
        self.repo = repo or build_repository(settings)
        self.lookup = lookup or GitHeadRevisionLookup(cwd=settings.workspace)
        self.codec = codec or get_codec(settings.dataset_format)

    async def fetch_baseline(self, ctx: TriggerContext) -> tuple[str, Optional[BaselineSummary]]:
        """Resolve the base revision and decode its measurements, capturing the dataset locally."""
        base_revision = await resolve_baseline(ctx, self.lookup)
        stream = self.repo.open_stream(self.settings.dataset_key)
        baseline = await self.codec.decode(stream, base_revision, self.settings.capture_path)
        if baseline is None:
            logger.info("No dataset at %s yet; this is the first run", self.settings.dataset_key)
        elif not baseline:
            logger.info("No records for revision %r in %s", base_revision, self.settings.dataset_key)
        return base_revision, baseline

    async def store(self, record: RunRecord, dataset_exists: bool) -> tuple[bool, str, Optional[str]]:
        """Append *record* to the captured dataset and upload it; the manifest follows on the first run."""
        settings = self.settings
        is_first_run = self.codec.append_to_file(settings.capture_path, record, exists=dataset_exists)
        dataset_url = await self.repo.upload_file(
            settings.dataset_key,
            settings.capture_path,
            content_type=self.codec.content_type,
            cache_control=settings.cache_control,
            access_policy=settings.access_policy,
        )
        manifest_url = None
        if is_first_run:
            manifest = build_manifest([dataset_url], settings.dataset_format)
            logger.info("First run: writing manifest %s", settings.manifest_key)
            manifest_url = await self.repo.put(
                settings.manifest_key,
                manifest.to_bytes(),
                content_type=MANIFEST_CONTENT_TYPE,
                cache_control=settings.cache_control,
                access_policy=settings.access_policy,
            )
        return is_first_run, dataset_url, manifest_url

    async def run(
        self,
        ctx: TriggerContext,
        assets: Sequence[AssetMeasurement],
        action: Action = "compare",
        stats_url: Optional[str] = None,
        report_url: Optional[str] = None,
    ) -> RunOutcome:
        if action not in ("compare", "store"):
            raise ConfigError(f'Unrecognized action "{action}". Only "store" and "compare" are recognized.')
        base_revision, baseline = await self.fetch_baseline(ctx)
        results = compare(assets, baseline)
        total = compare_totals(assets, baseline)
        log_comparison(results)
        outcome = RunOutcome(
            base_revision=base_revision,
            dataset_found=baseline is not None,
            baseline=baseline or {},
            results=results,
            total=total,
        )
        if action == "store":
            record = build_run_record(
                ctx,
                self.settings.project,
                assets,
                base_revision,
                stats_url=stats_url,
                report_url=report_url,
            )
            is_first_run, dataset_url, manifest_url = await self.store(record, dataset_exists=baseline is not None)
            outcome.is_first_run = is_first_run
            outcome.dataset_url = dataset_url
            outcome.manifest_url = manifest_url
        return outcome
