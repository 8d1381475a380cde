"""
Incremental statistics over iteration outcomes.

First and second moments are kept with Welford's online update and
combined across partial accumulators with Chan's closed-form merge, so
parallel workers never re-average averages. Raw samples are also kept
per output because percentiles, histograms and risk metrics need the
full sorted series.
"""

from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..config import DEFAULT_PERCENTILES, MAX_FAILURE_SAMPLES, MAX_TRACKED_FAILURE_CAUSES
from ..diagnostics import risk_metrics
from ..types import AggregatedStatistics, IterationOutcome, OutputStatistics
from .histogram import build_histogram

OTHER_FAILURES = "(other failures)"


class RunningMoments:
    """Welford state: count, mean, sum of squared deviations, min and max."""

    __slots__ = ('count', 'mean', 'm2', 'min', 'max')

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0
        self.min = float('inf')
        self.max = float('-inf')

    def push(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (value - self.mean)
        if value < self.min:
            self.min = value
        if value > self.max:
            self.max = value

    def merge(self, other: 'RunningMoments') -> None:
        """Fold a disjoint partial state into this one."""
        if other.count == 0:
            return
        if self.count == 0:
            self.count, self.mean, self.m2 = other.count, other.mean, other.m2
            self.min, self.max = other.min, other.max
            return
        total = self.count + other.count
        delta = other.mean - self.mean
        self.mean += delta * other.count / total
        self.m2 += other.m2 + delta * delta * self.count * other.count / total
        self.count = total
        self.min = min(self.min, other.min)
        self.max = max(self.max, other.max)

    @property
    def variance(self) -> float:
        """Population variance (divides by count)."""
        return self.m2 / self.count if self.count > 0 else 0.0

    @property
    def stddev(self) -> float:
        return float(np.sqrt(self.variance))


class OutputAccumulator:
    """Moments plus raw samples for one output key."""

    def __init__(self, key: str):
        self.key = key
        self.moments = RunningMoments()
        self.samples: List[float] = []

    def add(self, value: float) -> None:
        self.moments.push(value)
        self.samples.append(value)

    def merge(self, other: 'OutputAccumulator') -> None:
        if other.key != self.key:
            raise ValueError(f"cannot merge output '{other.key}' into '{self.key}'")
        self.moments.merge(other.moments)
        self.samples.extend(other.samples)

    def finalize(self, percentiles: Sequence[int] = DEFAULT_PERCENTILES) -> OutputStatistics:
        """
        Raises:
            ValueError: If no samples were accumulated
        """
        if self.moments.count == 0:
            raise ValueError(f"output '{self.key}' has no samples")
        samples = np.asarray(self.samples, dtype=np.float64)
        values = np.percentile(samples, list(percentiles))
        return OutputStatistics(
            key=self.key,
            count=self.moments.count,
            mean=self.moments.mean,
            stddev=self.moments.stddev,
            variance=self.moments.variance,
            min=self.moments.min,
            max=self.moments.max,
            percentiles={f"p{p}": float(v) for p, v in zip(percentiles, values)},
            histogram=build_histogram(samples),
            risk=risk_metrics(samples),
        )


class RunAccumulator:
    """
    Reduces a stream of IterationOutcome into AggregatedStatistics.

    Args:
        output_keys: Declared output keys, in report order
    """

    def __init__(self, output_keys: Sequence[str]):
        self.output_keys = list(output_keys)
        self.outputs: Dict[str, OutputAccumulator] = {
            key: OutputAccumulator(key) for key in self.output_keys
        }
        self.successful = 0
        self.failed = 0
        self.failure_causes: Counter = Counter()

    def add(self, outcome: IterationOutcome) -> None:
        if outcome.ok:
            self.successful += 1
            for key in self.output_keys:
                self.outputs[key].add(outcome.values[key])
        else:
            self.failed += 1
            self._count_cause(outcome.error or "unknown failure", 1)

    def merge(self, other: 'RunAccumulator') -> None:
        """Fold another accumulator over a disjoint iteration range into this one."""
        if other.output_keys != self.output_keys:
            raise ValueError("cannot merge accumulators with different output keys")
        for key in self.output_keys:
            self.outputs[key].merge(other.outputs[key])
        self.successful += other.successful
        self.failed += other.failed
        for message, count in other.failure_causes.items():
            self._count_cause(message, count)

    def _count_cause(self, message: str, count: int) -> None:
        if (message not in self.failure_causes
                and len(self.failure_causes) >= MAX_TRACKED_FAILURE_CAUSES):
            message = OTHER_FAILURES
        self.failure_causes[message] += count

    def sample_causes(self, limit: int = MAX_FAILURE_SAMPLES) -> List[str]:
        return [
            f"{message} (x{count})"
            for message, count in self.failure_causes.most_common(limit)
        ]

    def finalize(
        self,
        iterations: int,
        seed: int,
        simulation_id: Optional[str] = None,
        percentiles: Sequence[int] = DEFAULT_PERCENTILES,
    ) -> AggregatedStatistics:
        return AggregatedStatistics(
            simulation_id=simulation_id,
            iterations=iterations,
            successful=self.successful,
            failed=self.failed,
            seed=seed,
            outputs={
                key: self.outputs[key].finalize(percentiles) for key in self.output_keys
            },
            failure_causes=self.failure_causes.most_common(MAX_FAILURE_SAMPLES),
        )
