import pytest

from bundlesize.history.compare import TOTAL_NAME, compare, compare_totals, round1
from bundlesize.history.models import AssetMeasurement, BaselineEntry


def _asset(name, size, compressed):
    return AssetMeasurement(name=name, size=size, compressed_size=compressed)


def test_grown_and_shrunk_metrics():
    [result] = compare([_asset("app.js", 200, 80)], {"app.js": BaselineEntry(size=100, compressed_size=100)})
    assert result.has_baseline is True
    assert result.size_delta == 100
    assert result.size_delta_percent == 100.0
    assert result.compressed_delta == -20
    assert result.compressed_delta_percent == -20.0


def test_no_baseline_means_no_prior_data():
    [result] = compare([_asset("app.js", 200, 80)], {})
    assert result.no_prior_data is True
    assert result.size_delta is None
    assert result.compressed_delta_percent is None


def test_none_baseline_treated_as_empty():
    results = compare([_asset("a.js", 1, 1), _asset("b.js", 2, 2)], None)
    assert [r.name for r in results] == ["a.js", "b.js"]
    assert all(r.no_prior_data for r in results)


def test_unchanged_asset_is_distinct_from_missing_baseline():
    [result] = compare([_asset("app.js", 100, 40)], {"app.js": BaselineEntry(size=100, compressed_size=40)})
    assert result.has_baseline is True
    assert result.size_delta == 0
    assert result.size_delta_percent == 0.0


def test_zero_baseline_has_no_percentage():
    [result] = compare([_asset("app.js", 50, 10)], {"app.js": BaselineEntry(size=0, compressed_size=0)})
    assert result.size_delta == 50
    assert result.size_delta_percent is None
    assert result.compressed_delta_percent is None


def test_removed_assets_are_not_reported():
    results = compare([_asset("app.js", 1, 1)], {
        "app.js": BaselineEntry(size=1, compressed_size=1),
        "gone.js": BaselineEntry(size=5, compressed_size=5),
    })
    assert [r.name for r in results] == ["app.js"]


def test_totals_aggregate_all_assets():
    total = compare_totals(
        [_asset("app.js", 150, 60), _asset("new.js", 50, 20)],
        {"app.js": BaselineEntry(size=100, compressed_size=40), "gone.js": BaselineEntry(size=100, compressed_size=40)},
    )
    assert total.name == TOTAL_NAME
    assert total.size == 200
    assert total.size_delta == 0
    assert total.compressed_delta == 0


def test_totals_without_baseline():
    total = compare_totals([_asset("app.js", 150, 60)], None)
    assert total.size == 150
    assert total.no_prior_data is True


@pytest.mark.parametrize(
    "value,expected",
    [
        (12.34, 12.3),
        (2.25, 2.3),
        (0.05, 0.1),
        (-0.05, -0.1),
        (-2.25, -2.3),
        (-0.01, 0.0),
        (100.0, 100.0),
    ],
)
def test_round1_rounds_halves_away_from_zero(value, expected):
    assert round1(value) == expected


def test_round1_never_returns_negative_zero():
    assert str(round1(-0.04)) == "0.0"
