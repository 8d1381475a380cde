"""Iteration running and statistical aggregation."""

from .accumulator import RunningMoments, OutputAccumulator, RunAccumulator
from .histogram import build_histogram
from .runner import run_iterations, iteration_rng

__all__ = [
    "RunningMoments",
    "OutputAccumulator",
    "RunAccumulator",
    "build_histogram",
    "run_iterations",
    "iteration_rng",
]
