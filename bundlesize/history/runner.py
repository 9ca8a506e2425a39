"""CLI runner for the bundle-size history engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from bundlesize.common.error_envelope import format_error
from bundlesize.common.errors import ConfigError, HistoryError
from bundlesize.common.log_setup import configure_logging
from bundlesize.common.trigger import TriggerContextBuilder
from bundlesize.config.runtime_config import load_settings
from bundlesize.history.models import AssetMeasurement
from bundlesize.history.service import HistoryService
from bundlesize.measure.service import FileMeasurement, group_by_name, measure_assets

logger = logging.getLogger(__name__)


def load_measurements(path: Path, compression: str = "brotli") -> List[AssetMeasurement]:
    """Read pre-measured assets, or measure ``{"name", "paths"}`` groups on the fly."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read measurements from {path}: {exc}") from exc
    if not isinstance(payload, list):
        raise ConfigError(f"Measurements file {path} must contain a JSON array")

    records: List[FileMeasurement] = []
    for idx, item in enumerate(payload):
        if not isinstance(item, dict) or not isinstance(item.get("name"), str) or not item["name"]:
            raise ConfigError(f"Measurement {idx} in {path} needs a name")
        if "paths" in item:
            paths = item["paths"]
            if not isinstance(paths, list) or not paths or not all(isinstance(p, str) and p for p in paths):
                raise ConfigError(f"Measurement {idx} in {path}: paths must be a non-empty list of file paths")
            records.extend(measure_assets({item["name"]: paths}, compression))
            continue
        try:
            asset = AssetMeasurement.model_validate(item)
        except ValidationError as exc:
            raise ConfigError(f"Measurement {idx} in {path} is invalid: {exc.errors()[0].get('msg')}") from exc
        records.append(FileMeasurement(asset.name, "", asset.size, asset.compressed_size))
    return group_by_name(records)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare bundle sizes against history and record this run")
    parser.add_argument("--action", choices=["compare", "store"], default="compare")
    parser.add_argument("--measurements", type=Path, required=True, help="JSON array of asset measurements")
    parser.add_argument("--compression", choices=["brotli", "gzip"], default="brotli")
    parser.add_argument("--stats-url", default=None, help="URL of the uploaded stats file for this run")
    parser.add_argument("--report-url", default=None, help="URL of the uploaded report for this run")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


async def _execute(args: argparse.Namespace) -> dict[str, Any]:
    settings = load_settings()
    ctx = TriggerContextBuilder.from_env()
    assets = load_measurements(args.measurements, args.compression)
    service = HistoryService(settings)
    outcome = await service.run(
        ctx,
        assets,
        action=args.action,
        stats_url=args.stats_url,
        report_url=args.report_url,
    )
    return outcome.model_dump(mode="json")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(verbose=args.verbose)
    try:
        result = asyncio.run(_execute(args))
    except HistoryError as exc:
        logger.debug("Run failed", exc_info=True)
        print(format_error(exc), file=sys.stderr)
        return 1
    except Exception as exc:
        logger.error("Unexpected failure", exc_info=True)
        print(format_error(exc), file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
