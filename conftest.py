import sys
from pathlib import Path

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bundlesize.config.runtime_config import HistorySettings
from bundlesize.storage.repository import InMemoryDatasetRepository


class StaticLookup:
    """Head-revision lookup returning fixed answers per branch."""

    def __init__(self, heads=None):
        self.heads = dict(heads or {})
        self.calls = []

    async def head_revision(self, branch):
        self.calls.append(branch)
        return self.heads[branch]


@pytest.fixture
def memory_repo():
    return InMemoryDatasetRepository(bucket_name="bundle-stats", region="us-west-2", chunk_size=7)


@pytest.fixture
def make_settings(tmp_path):
    def _make(dataset_format="csv", project="myproject"):
        return HistorySettings(
            project=project,
            dataset_format=dataset_format,
            backend="memory",
            bucket="bundle-stats",
            prefix="",
            region="us-west-2",
            workspace=tmp_path,
        )

    return _make


@pytest.fixture
def static_lookup():
    return StaticLookup
