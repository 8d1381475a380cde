"""
Equal-width histograms over an output's successful samples.

Bin count is clamp(ceil(sqrt(n)), 5, 20). A sample set whose values are
all identical collapses to a single bin labelled with that value.
"""

import math
from typing import List

import numpy as np

from ..config import HISTOGRAM_MAX_BINS, HISTOGRAM_MIN_BINS
from ..types import HistogramBin


def bin_count(n: int) -> int:
    """Number of bins for `n` samples."""
    return min(HISTOGRAM_MAX_BINS, max(HISTOGRAM_MIN_BINS, math.ceil(math.sqrt(n))))


def format_number(value: float) -> str:
    """Compact label text: 1.2M, 45.0K, 12.50, 0.125."""
    magnitude = abs(value)
    if magnitude >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if magnitude >= 1_000:
        return f"{value / 1_000:.1f}K"
    if magnitude < 1:
        return f"{value:.3f}"
    return f"{value:.2f}"


def build_histogram(samples: np.ndarray) -> List[HistogramBin]:
    """
    Bin samples into equal-width bins.

    The last bin is closed on the right so the maximum is counted; bin
    counts always sum to len(samples).

    Args:
        samples: 1-D array of finite values

    Returns:
        List of HistogramBin (empty for an empty sample set)
    """
    samples = np.asarray(samples, dtype=np.float64)
    n = len(samples)
    if n == 0:
        return []

    lo = float(samples.min())
    hi = float(samples.max())
    if lo == hi:
        return [HistogramBin(label=format_number(lo), start=lo, end=hi, count=n)]

    counts, edges = np.histogram(samples, bins=bin_count(n), range=(lo, hi))
    return [
        HistogramBin(
            label=f"{format_number(edges[i])}-{format_number(edges[i + 1])}",
            start=float(edges[i]),
            end=float(edges[i + 1]),
            count=int(counts[i]),
        )
        for i in range(len(counts))
    ]
