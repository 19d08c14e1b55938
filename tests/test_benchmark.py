import pytest

pytest.importorskip("psutil")

from simulation_benchmark import percentile


def test_percentile_is_not_the_maximum():
    samples = sorted(float(i) for i in range(1000))
    assert percentile(samples, 0.5) == 500.0
    assert percentile(samples, 0.99) == 990.0
    assert percentile(samples, 0.99) < samples[-1]


def test_percentile_on_short_runs_stays_in_range():
    assert percentile([1.0, 2.0], 0.99) == 2.0
