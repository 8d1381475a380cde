"""Tests for running moments, accumulators, histograms and risk metrics."""

import numpy as np
import pytest

from decision_sim.diagnostics import mean_confidence_interval, risk_metrics
from decision_sim.simulation import (
    OutputAccumulator,
    RunAccumulator,
    RunningMoments,
    build_histogram,
)
from decision_sim.simulation.histogram import bin_count, format_number
from decision_sim.types import IterationOutcome


def naive(samples):
    """Two-pass mean and population variance."""
    mean = sum(samples) / len(samples)
    return mean, sum((s - mean) ** 2 for s in samples) / len(samples)


@pytest.fixture
def samples():
    rng = np.random.default_rng(7)
    return list(rng.normal(1_000.0, 250.0, size=2_000))


class TestRunningMoments:
    """Tests for the Welford update and Chan merge."""

    def test_matches_two_pass(self, samples):
        """Online mean/variance equal the two-pass values."""
        moments = RunningMoments()
        for value in samples:
            moments.push(value)
        mean, variance = naive(samples)
        assert moments.mean == pytest.approx(mean, rel=1e-9)
        assert moments.variance == pytest.approx(variance, rel=1e-9)
        assert moments.min == min(samples)
        assert moments.max == max(samples)

    def test_merge_equals_single_pass(self, samples):
        """Merging disjoint partial states equals one pass over all samples."""
        left, right, whole = RunningMoments(), RunningMoments(), RunningMoments()
        for value in samples[:700]:
            left.push(value)
        for value in samples[700:]:
            right.push(value)
        for value in samples:
            whole.push(value)
        left.merge(right)
        assert left.count == whole.count
        assert left.mean == pytest.approx(whole.mean, rel=1e-9)
        assert left.variance == pytest.approx(whole.variance, rel=1e-9)
        assert (left.min, left.max) == (whole.min, whole.max)

    def test_merge_with_empty(self):
        """Merging an empty state changes nothing; merging into one copies."""
        moments = RunningMoments()
        moments.push(3.0)
        moments.merge(RunningMoments())
        assert moments.count == 1
        empty = RunningMoments()
        empty.merge(moments)
        assert (empty.count, empty.mean, empty.min, empty.max) == (1, 3.0, 3.0, 3.0)

    def test_single_value_variance(self):
        """One sample has zero variance."""
        moments = RunningMoments()
        moments.push(5.0)
        assert moments.variance == 0.0
        assert moments.stddev == 0.0


class TestHistogram:
    """Tests for equal-width histograms."""

    def test_counts_sum_to_samples(self, samples):
        """Bin counts sum to the number of samples."""
        bins = build_histogram(np.array(samples))
        assert sum(b.count for b in bins) == len(samples)
        assert len(bins) == 20

    def test_bin_count_clamp(self):
        """ceil(sqrt(n)) clamped to [5, 20]."""
        assert bin_count(4) == 5
        assert bin_count(50) == 8
        assert bin_count(10_000) == 20

    def test_degenerate_single_bin(self):
        """Identical samples give one labelled bin."""
        bins = build_histogram(np.full(30, 42.0))
        assert len(bins) == 1
        assert bins[0].count == 30
        assert bins[0].label == "42.00"

    def test_maximum_lands_in_last_bin(self):
        """The last bin is closed on the right."""
        bins = build_histogram(np.array([0.0, 1.0, 2.0, 3.0, 10.0]))
        assert bins[-1].count == 1
        assert bins[-1].end == 10.0

    def test_empty(self):
        """No samples, no bins."""
        assert build_histogram(np.array([])) == []

    def test_format_number(self):
        """Labels use compact units."""
        assert format_number(2_500_000) == "2.5M"
        assert format_number(-1_500) == "-1.5K"
        assert format_number(0.1234) == "0.123"
        assert format_number(12.5) == "12.50"


class TestRunAccumulator:
    """Tests for reducing outcomes."""

    def test_successes_and_failures(self):
        """Failures are counted and excluded from statistics."""
        accumulator = RunAccumulator(['y'])
        for i in range(10):
            accumulator.add(IterationOutcome(index=i, values={'y': float(i)}))
        accumulator.add(IterationOutcome(index=10, error="boom"))
        accumulator.add(IterationOutcome(index=11, error="boom"))
        result = accumulator.finalize(iterations=12, seed=1)
        assert (result.successful, result.failed) == (10, 2)
        assert result.outputs['y'].mean == pytest.approx(4.5)
        assert result.failure_causes == [("boom", 2)]
        assert sum(b.count for b in result.outputs['y'].histogram) == 10

    def test_percentiles(self):
        """Percentiles interpolate linearly over the sorted samples."""
        output = OutputAccumulator('y')
        for value in range(1, 101):
            output.add(float(value))
        stats = output.finalize((10, 50, 90))
        assert stats.percentiles == {
            'p10': pytest.approx(10.9), 'p50': pytest.approx(50.5), 'p90': pytest.approx(90.1),
        }

    def test_merge(self):
        """Merged accumulators equal one accumulator over both ranges."""
        left, right, whole = RunAccumulator(['y']), RunAccumulator(['y']), RunAccumulator(['y'])
        for i in range(50):
            outcome = IterationOutcome(index=i, values={'y': float(i * i)})
            (left if i < 20 else right).add(outcome)
            whole.add(outcome)
        right.add(IterationOutcome(index=50, error="bad"))
        whole.add(IterationOutcome(index=50, error="bad"))
        left.merge(right)
        merged = left.finalize(iterations=51, seed=0).to_dict()
        single = whole.finalize(iterations=51, seed=0).to_dict()
        assert merged['failed'] == single['failed'] == 1
        assert merged['outputs']['y']['mean'] == pytest.approx(single['outputs']['y']['mean'])
        assert merged['outputs']['y']['percentiles'] == single['outputs']['y']['percentiles']

    def test_merge_rejects_different_keys(self):
        """Accumulators over different outputs cannot merge."""
        with pytest.raises(ValueError):
            RunAccumulator(['a']).merge(RunAccumulator(['b']))

    def test_finalize_without_samples(self):
        """An output with no samples cannot be summarized."""
        with pytest.raises(ValueError):
            OutputAccumulator('y').finalize()


class TestRiskMetrics:
    """Tests for downside metrics and confidence intervals."""

    def test_known_values(self):
        """VaR and shortfall index the sorted series."""
        values = np.arange(-10, 90, dtype=float)  # 100 values, 10 below zero
        risk = risk_metrics(values)
        assert risk['probability_of_loss'] == pytest.approx(10.0)
        assert risk['value_at_risk_95'] == -5.0
        assert risk['value_at_risk_99'] == -9.0
        assert risk['expected_shortfall_95'] == pytest.approx(np.mean(np.arange(-10, -4)))
        assert risk['expected_shortfall_99'] == pytest.approx(-9.5)

    def test_empty(self):
        """No samples, no metrics."""
        assert risk_metrics(np.array([])) == {}

    def test_confidence_interval_contains_mean(self, samples):
        """The interval is centred on the mean."""
        output = OutputAccumulator('y')
        for value in samples:
            output.add(value)
        stats = output.finalize()
        low, high = mean_confidence_interval(stats, 0.95)
        assert low < stats.mean < high
        assert (stats.mean - low) == pytest.approx(high - stats.mean)

    def test_confidence_level_checked(self):
        """Levels outside (0, 1) are rejected."""
        output = OutputAccumulator('y')
        output.add(1.0)
        output.add(2.0)
        with pytest.raises(ValueError):
            mean_confidence_interval(output.finalize(), 1.5)
