"""
Run diagnostics.

Downside risk metrics per output, a Student-t confidence interval on the
mean, and a console summary of a run's failures and tails.
"""

import math
from typing import Dict, Tuple

import numpy as np
from scipy import stats

from .types import AggregatedStatistics, OutputStatistics


# =============================================================================
# Risk Metrics
# =============================================================================

def risk_metrics(samples: np.ndarray, threshold: float = 0.0) -> Dict[str, float]:
    """
    Downside metrics of a sample set.

    Value at risk is the sorted sample at index floor(n * 0.05) (95%) or
    floor(n * 0.01) (99%); expected shortfall is the mean of the samples
    up to and including that index.

    Args:
        samples: 1-D array of finite values
        threshold: Values strictly below this count as a loss

    Returns:
        Dict with probability_of_loss (percent), value_at_risk_95,
        value_at_risk_99, expected_shortfall_95, expected_shortfall_99.
        Empty for an empty sample set.
    """
    ordered = np.sort(np.asarray(samples, dtype=np.float64))
    n = len(ordered)
    if n == 0:
        return {}

    index_95 = int(n * 0.05)
    index_99 = int(n * 0.01)

    return {
        'probability_of_loss': float(np.count_nonzero(ordered < threshold) / n * 100),
        'value_at_risk_95': float(ordered[index_95]),
        'value_at_risk_99': float(ordered[index_99]),
        'expected_shortfall_95': float(ordered[:index_95 + 1].mean()),
        'expected_shortfall_99': float(ordered[:index_99 + 1].mean()),
    }


def mean_confidence_interval(
    output: OutputStatistics,
    level: float = 0.95,
) -> Tuple[float, float]:
    """
    Student-t confidence interval for an output's mean.

    Uses the sample standard deviation derived from the stored population
    variance. A single sample yields a zero-width interval.

    Raises:
        ValueError: If level is not strictly between 0 and 1
    """
    if not 0.0 < level < 1.0:
        raise ValueError(f"confidence level must be in (0, 1), got {level}")
    n = output.count
    if n < 2 or output.variance == 0:
        return (output.mean, output.mean)

    sample_std = math.sqrt(output.variance * n / (n - 1))
    half_width = stats.t.ppf((1 + level) / 2, df=n - 1) * sample_std / math.sqrt(n)
    return (output.mean - float(half_width), output.mean + float(half_width))


# =============================================================================
# Console Summary
# =============================================================================

def format_diagnostics(result: AggregatedStatistics, level: float = 0.95) -> str:
    """Format a run's failure summary, confidence intervals and tails."""
    lines = []
    lines.append("RUN DIAGNOSTICS")
    lines.append("=" * 60)
    lines.append(
        f"  Iterations: {result.iterations} | Successful: {result.successful} | "
        f"Failed: {result.failed} ({result.failure_rate:.1%})"
    )
    lines.append(f"  Seed: {result.seed}")

    if result.failure_causes:
        lines.append(f"\n  Failure causes (top {len(result.failure_causes[:5])}):")
        for message, count in result.failure_causes[:5]:
            lines.append(f"    {count:>6}  {message}")

    for key, output in result.outputs.items():
        low, high = mean_confidence_interval(output, level)
        lines.append(f"\n  {key}:")
        lines.append(f"    Mean {output.mean:.4g}, {level:.0%} CI [{low:.4g}, {high:.4g}]")
        risk = output.risk
        if risk:
            lines.append(
                f"    P(loss)={risk['probability_of_loss']:.1f}% | "
                f"VaR95={risk['value_at_risk_95']:.4g} | "
                f"ES95={risk['expected_shortfall_95']:.4g} | "
                f"VaR99={risk['value_at_risk_99']:.4g}"
            )

    return "\n".join(lines)
