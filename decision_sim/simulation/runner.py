"""
Iteration runner.

Drives N evaluations of one simulation and reduces them to
AggregatedStatistics. Every iteration draws from its own PCG64 stream,
spawned from the run's root SeedSequence by iteration index, so results
depend only on the seed and never on how iterations are split across
worker processes.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..config import (
    DEFAULT_FAILURE_CEILING,
    DEFAULT_PERCENTILES,
    MIN_ITERATIONS_PER_WORKER,
)
from ..errors import EvaluationError, RunError
from ..evaluation.business import BusinessContext
from ..evaluation.evaluator import ScenarioEvaluator
from ..types import AggregatedStatistics, IterationOutcome
from .accumulator import RunAccumulator

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 1000


def iteration_rng(entropy: int, index: int) -> np.random.Generator:
    """Independent generator for iteration `index` of the run seeded by `entropy`."""
    return np.random.Generator(
        np.random.PCG64(np.random.SeedSequence(entropy, spawn_key=(index,)))
    )


def failure_limit(failure_ceiling: float, n: int) -> int:
    """Most failures a run of `n` may absorb; the product is rounded so 0.29 * 100 allows 29."""
    return int(round(failure_ceiling * n, 9))


def evaluate_once(
    evaluator: ScenarioEvaluator,
    bindings: Mapping[str, Any],
    entropy: int,
    index: int,
    helpers: Optional[BusinessContext] = None,
) -> IterationOutcome:
    """Run one iteration, turning a per-iteration failure into an outcome."""
    rng = iteration_rng(entropy, index)
    try:
        values = evaluator.evaluate(bindings, rng.random, helpers)
    except EvaluationError as exc:
        logger.debug("Iteration %d failed: %s", index, exc)
        return IterationOutcome(index=index, error=str(exc))
    return IterationOutcome(index=index, values=values)


def _run_chunk(
    evaluator: ScenarioEvaluator,
    bindings: Mapping[str, Any],
    helpers: Optional[BusinessContext],
    entropy: int,
    start: int,
    stop: int,
    max_failures: int,
) -> RunAccumulator:
    """
    Accumulate iterations [start, stop).

    Stops early once this chunk alone has more than `max_failures`
    failures, since the run as a whole is then already lost.
    """
    accumulator = RunAccumulator(evaluator.output_keys)
    for index in range(start, stop):
        accumulator.add(evaluate_once(evaluator, bindings, entropy, index, helpers))
        if accumulator.failed > max_failures:
            break
        if (index + 1) % PROGRESS_INTERVAL == 0:
            logger.debug("Progress: %d/%d iterations (chunk %d-%d)",
                         index + 1 - start, stop - start, start, stop)
    return accumulator


def partition(n: int, workers: int) -> List[Tuple[int, int]]:
    """Split [0, n) into at most `workers` contiguous ranges of near-equal size."""
    workers = max(1, min(workers, n // MIN_ITERATIONS_PER_WORKER or 1))
    size, extra = divmod(n, workers)
    ranges = []
    start = 0
    for i in range(workers):
        stop = start + size + (1 if i < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


def run_iterations(
    evaluator: ScenarioEvaluator,
    bindings: Mapping[str, Any],
    n: int,
    seed: Optional[int] = None,
    helpers: Optional[BusinessContext] = None,
    failure_ceiling: float = DEFAULT_FAILURE_CEILING,
    workers: int = 1,
    percentiles: Sequence[int] = DEFAULT_PERCENTILES,
    simulation_id: Optional[str] = None,
) -> AggregatedStatistics:
    """
    Run `n` iterations and aggregate the successful outcomes.

    Args:
        evaluator: Compiled simulation logic
        bindings: Fully merged, normalized parameter values
        n: Iteration count
        seed: Root seed; None draws fresh process entropy
        helpers: Business context; derived from bindings when the
            evaluator needs one and none is given
        failure_ceiling: Max failed fraction of n before the run is rejected
        workers: Worker processes; small runs fall back to one
        percentiles: Percentile set reported per output
        simulation_id: Id stamped on the result

    Returns:
        AggregatedStatistics over the successful iterations

    Raises:
        ValueError: If n is not positive
        RunError: If failures exceed floor(failure_ceiling * n), or no
            iteration succeeded
    """
    if n <= 0:
        raise ValueError(f"iteration count must be positive, got {n}")

    root = np.random.SeedSequence(seed)
    entropy = root.entropy
    if evaluator.business_context and helpers is None:
        helpers = BusinessContext.from_bindings(bindings)

    max_failures = failure_limit(failure_ceiling, n)
    ranges = partition(n, workers)
    logger.info(
        "Running %s: %d iterations, seed=%s, workers=%d",
        simulation_id or "simulation", n, entropy, len(ranges),
    )

    if len(ranges) == 1:
        accumulator = _run_chunk(evaluator, bindings, helpers, entropy, 0, n, max_failures)
    else:
        with ProcessPoolExecutor(max_workers=len(ranges)) as executor:
            futures = [
                executor.submit(
                    _run_chunk, evaluator, dict(bindings), helpers,
                    entropy, start, stop, max_failures,
                )
                for start, stop in ranges
            ]
            # Merge in chunk order so the result is independent of completion order
            accumulator = RunAccumulator(evaluator.output_keys)
            for future in futures:
                accumulator.merge(future.result())

    if accumulator.failed > max_failures or accumulator.successful == 0:
        logger.warning(
            "Run rejected: %d failed of %d (ceiling %.0f%%)",
            accumulator.failed, n, failure_ceiling * 100,
        )
        raise RunError(accumulator.failed, n, failure_ceiling, accumulator.sample_causes())

    logger.info(
        "Run complete: %d successful, %d failed", accumulator.successful, accumulator.failed
    )
    return accumulator.finalize(
        iterations=n,
        seed=entropy,
        simulation_id=simulation_id,
        percentiles=percentiles,
    )
