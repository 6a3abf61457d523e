import pytest

from tsch_sync.results import SyncResults
from tsch_sync.stats import max_abs_cdf_error, percentile_interval, relative_error


def test_relative_error() -> None:
    assert relative_error(1.01, 1.0) == pytest.approx(0.01)
    assert relative_error(0.99, 1.0) == pytest.approx(0.01)
    with pytest.raises(ValueError, match="non-zero"):
        relative_error(1.0, 0.0)


def test_max_abs_cdf_error_runs_until_both_saturate() -> None:
    a = SyncResults(avg_sync_time=1.0, cdf_table=[0.0, 0.5, 0.9])
    b = SyncResults(avg_sync_time=1.0, cdf_table=[0.0, 0.4, 0.8, 0.95])
    # k=1: 0.1, k=2: 0.1, k=3: |1.0 - 0.95| = 0.05
    assert max_abs_cdf_error(a, b) == pytest.approx(0.1)
    assert max_abs_cdf_error(a, a) == 0.0


def test_percentile_interval() -> None:
    values = list(range(100))
    lo, hi = percentile_interval(values, 0.95)
    # floor(100 * 0.025) = 2, floor(100 * 0.975) = 97
    assert (lo, hi) == (2, 97)


def test_percentile_interval_single_value() -> None:
    assert percentile_interval([3.5]) == (3.5, 3.5)


def test_percentile_interval_rejects_bad_input() -> None:
    with pytest.raises(ValueError, match="empty"):
        percentile_interval([])
    with pytest.raises(ValueError, match="confidence"):
        percentile_interval([1.0], 1.5)
