"""
Result formatting.

Turns AggregatedStatistics (or a scenario name -> AggregatedStatistics
map) into dicts, JSON, pandas frames, CSV and console tables. The run
path never calls into this module.
"""

import json
from typing import Dict, List, Mapping, Optional

import pandas as pd

from .simulation.histogram import format_number
from .types import AggregatedStatistics, OutputStatistics

SUMMARY_COLUMNS = ['output', 'count', 'mean', 'stddev', 'min', 'max']


# =============================================================================
# Structured Output
# =============================================================================

def statistics_to_dict(result: AggregatedStatistics) -> Dict:
    return result.to_dict()


def to_json(result: AggregatedStatistics, indent: int = 2) -> str:
    return json.dumps(result.to_dict(), indent=indent)


def comparison_to_dict(results: Mapping[str, AggregatedStatistics]) -> Dict:
    return {name: result.to_dict() for name, result in results.items()}


def comparison_to_json(results: Mapping[str, AggregatedStatistics], indent: int = 2) -> str:
    return json.dumps(comparison_to_dict(results), indent=indent)


def _summary_row(output: OutputStatistics) -> Dict:
    row = {
        'output': output.key,
        'count': output.count,
        'mean': output.mean,
        'stddev': output.stddev,
        'min': output.min,
        'max': output.max,
    }
    row.update(output.percentiles)
    return row


def statistics_frame(result: AggregatedStatistics) -> pd.DataFrame:
    """One row per output: count, moments, range and percentiles."""
    rows = [_summary_row(output) for output in result.outputs.values()]
    return pd.DataFrame(rows).set_index('output')


def comparison_frame(results: Mapping[str, AggregatedStatistics]) -> pd.DataFrame:
    """One row per (scenario, output)."""
    rows = []
    for name, result in results.items():
        for output in result.outputs.values():
            row = {'scenario': name}
            row.update(_summary_row(output))
            rows.append(row)
    return pd.DataFrame(rows).set_index(['scenario', 'output'])


def to_csv(result: AggregatedStatistics) -> str:
    return statistics_frame(result).to_csv()


def comparison_to_csv(results: Mapping[str, AggregatedStatistics]) -> str:
    return comparison_frame(results).to_csv()


# =============================================================================
# Console Output
# =============================================================================

def format_table(
    result: AggregatedStatistics,
    labels: Optional[Mapping[str, str]] = None,
) -> str:
    """Plain-text summary table of a run."""
    labels = labels or {}
    frame = statistics_frame(result)
    lines = []
    title = result.simulation_id or "simulation"
    lines.append(f"RESULTS: {title}")
    lines.append("=" * 60)
    lines.append(
        f"  Iterations: {result.iterations} | Successful: {result.successful} | "
        f"Failed: {result.failed}"
    )
    lines.append("")

    stat_columns = [c for c in frame.columns if c != 'count']
    header = f"  {'Output':<28}" + "".join(f"{c:>11}" for c in stat_columns)
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for key, row in frame.iterrows():
        label = labels.get(key, key)
        if len(label) > 27:
            label = label[:26] + "."
        cells = "".join(f"{format_number(row[c]):>11}" for c in stat_columns)
        lines.append(f"  {label:<28}{cells}")
    return "\n".join(lines)


def format_histogram(output: OutputStatistics, width: int = 40) -> str:
    """ASCII bar chart of an output's histogram."""
    if not output.histogram:
        return f"  {output.key}: no data"
    peak = max(b.count for b in output.histogram) or 1
    label_width = max(len(b.label) for b in output.histogram)
    lines = [f"  {output.key}:"]
    for b in output.histogram:
        bar = "#" * int(round(b.count / peak * width))
        lines.append(f"    {b.label:>{label_width}} | {bar} {b.count}")
    return "\n".join(lines)


def format_comparison(results: Mapping[str, AggregatedStatistics]) -> str:
    """Side-by-side means (and p10/p90 when present) per output."""
    names: List[str] = list(results.keys())
    if not names:
        return ""
    keys = results[names[0]].output_keys
    lines = []
    lines.append("SCENARIO COMPARISON")
    lines.append("=" * 60)
    header = f"  {'Output':<24}" + "".join(f"{name[:18]:>20}" for name in names)
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for key in keys:
        cells = []
        for name in names:
            output = results[name].outputs[key]
            low = output.percentiles.get('p10')
            high = output.percentiles.get('p90')
            text = format_number(output.mean)
            if low is not None and high is not None:
                text += f" [{format_number(low)},{format_number(high)}]"
            cells.append(f"{text:>20}")
        lines.append(f"  {key[:23]:<24}" + "".join(cells))
    return "\n".join(lines)
