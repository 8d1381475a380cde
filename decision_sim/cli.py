"""
Command-line interface for the decision simulation engine.
"""

import functools
import logging
from pathlib import Path

import click

from .config import DEFAULT_ITERATIONS, generate_config_template
from .data import (
    load_parameter_file,
    load_scenario_file,
    load_simulation,
    load_simulation_config,
    save_simulation_config,
)
from .diagnostics import format_diagnostics
from .errors import SimulationError
from .model import Simulation
from .registry import get_registry
from .reporting import (
    comparison_to_csv,
    comparison_to_json,
    format_comparison,
    format_histogram,
    format_table,
    to_csv,
    to_json,
)
from .scenarios import ScenarioComparison, parse_override_assignments, resolve_bindings
from .schema import validate_config

FORMATS = ['table', 'json', 'csv']


def _handle_errors(command):
    """Turn engine errors into click errors (exit code 1, message on stderr)."""
    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        try:
            return command(*args, **kwargs)
        except SimulationError as exc:
            raise click.ClickException(str(exc)) from exc
    return wrapper


def _resolve_simulation(ref: str) -> Simulation:
    """A config file path, or else a registry id."""
    if Path(ref).is_file():
        return load_simulation(ref)
    return get_registry().get(ref)


def _emit(text: str, output: str) -> None:
    if output:
        with open(output, 'w') as f:
            f.write(text)
            if not text.endswith("\n"):
                f.write("\n")
        click.echo(f"Results saved to {output}")
    else:
        click.echo(text)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Log progress to stderr')
def main(verbose):
    """Monte Carlo simulations for business decisions under uncertainty."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )


# =============================================================================
# Catalog
# =============================================================================

@main.command('list')
@click.option('--query', '-q', help='Search id, name, tags and description')
@click.option('--category', '-c', help='Only simulations in this category')
@click.option('--tag', '-t', 'tags', multiple=True, help='Only simulations with one of these tags')
def list_simulations(query, category, tags):
    """List available built-in simulations."""
    registry = get_registry()
    matches = registry.search(query=query, category=category, tags=tags or None)
    if not matches:
        click.echo("No simulations found.")
        return
    click.echo(f"{'ID':<28}{'NAME':<32}{'CATEGORY':<14}VERSION")
    for metadata in matches:
        click.echo(
            f"{metadata.id:<28}{metadata.name:<32}{metadata.category:<14}{metadata.version}"
        )
    click.echo(f"\nCategories: {', '.join(registry.categories())}")


@main.command()
@click.argument('simulation')
@_handle_errors
def params(simulation):
    """
    Show the parameters of a simulation.

    SIMULATION: Registry id or path to a config file
    """
    sim = _resolve_simulation(simulation)
    click.echo(f"{sim.metadata.name} ({sim.id} v{sim.metadata.version})")
    click.echo(sim.metadata.description)

    ui = sim.schema.ui_schema()
    sections = [(g['name'], g['fields']) for g in ui['groups']]
    if ui['ungrouped']:
        sections.append(('Other Parameters' if sections else 'Parameters', ui['ungrouped']))
    for title, fields in sections:
        click.echo(f"\n{title}:")
        for field in fields:
            detail = f"default {field['default']}"
            constraints = field['constraints'] or {}
            if 'min' in constraints or 'max' in constraints:
                detail += f", range {constraints.get('min', '-inf')}..{constraints.get('max', 'inf')}"
            if 'step' in constraints:
                detail += f", step {constraints['step']}"
            if field['options']:
                detail += f", options {', '.join(field['options'])}"
            click.echo(f"  {field['key']:<26}{field['type']:<9}{detail}")
            if field['description']:
                click.echo(f"  {'':<26}{field['description']}")

    click.echo("\nOutputs:")
    for output in sim.outputs:
        click.echo(f"  {output.key:<26}{output.label}")


@main.command()
@click.argument('config_path', type=click.Path(exists=True))
@_handle_errors
def validate(config_path):
    """
    Validate a simulation config file.

    CONFIG_PATH: Path to a JSON or YAML config
    """
    raw = load_simulation_config(config_path)
    result = validate_config(raw)
    if result.valid:
        result = Simulation.from_config(raw).validate_configuration()
    if not result.valid:
        click.echo(f"{config_path} is invalid:")
        for error in result.errors:
            click.echo(f"  - {error}")
        raise click.ClickException(f"{len(result.errors)} validation error(s)")
    click.echo(f"{config_path} is valid.")


@main.command()
@click.argument('path', type=click.Path())
@click.option('--force', is_flag=True, help='Overwrite an existing file')
@_handle_errors
def template(path, force):
    """
    Write a starter simulation config.

    PATH: Destination (.json for JSON, anything else for YAML)
    """
    if Path(path).exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    save_simulation_config(generate_config_template(), path)
    click.echo(f"Template written to {path}")


# =============================================================================
# Running
# =============================================================================

@main.command()
@click.argument('simulation')
@click.option('--iterations', '-n', type=int, default=DEFAULT_ITERATIONS,
              help=f'Number of iterations (default: {DEFAULT_ITERATIONS})')
@click.option('--seed', type=int, help='Random seed for reproducibility')
@click.option('--set', 'assignments', multiple=True, metavar='KEY=VALUE',
              help='Override one parameter (repeatable)')
@click.option('--params', 'params_file', type=click.Path(exists=True),
              help='JSON/YAML file of parameter overrides')
@click.option('--scenario-file', type=click.Path(exists=True),
              help='JSON/YAML file of named scenarios')
@click.option('--scenario', help='Scenario to apply from --scenario-file')
@click.option('--workers', type=int, default=1, help='Worker processes (default: 1)')
@click.option('--format', 'fmt', type=click.Choice(FORMATS), default='table',
              help='Output format (default: table)')
@click.option('--output', '-o', type=click.Path(), help='Write results to this file')
@click.option('--histogram', is_flag=True, help='Show histograms (table format)')
@click.option('--diagnostics', is_flag=True, help='Show risk diagnostics (table format)')
@_handle_errors
def run(simulation, iterations, seed, assignments, params_file, scenario_file, scenario,
        workers, fmt, output, histogram, diagnostics):
    """
    Run a simulation.

    SIMULATION: Registry id or path to a config file
    """
    if iterations <= 0:
        raise click.BadParameter("iterations must be a positive integer", param_hint="'--iterations'")
    if workers <= 0:
        raise click.BadParameter("workers must be a positive integer", param_hint="'--workers'")
    if scenario and not scenario_file:
        raise click.BadParameter("--scenario requires --scenario-file", param_hint="'--scenario'")

    sim = _resolve_simulation(simulation)
    explicit = parse_override_assignments(assignments)
    parameter_file = load_parameter_file(params_file) if params_file else None

    layer = None
    if scenario:
        comparison = ScenarioComparison(sim, load_scenario_file(scenario_file))
        layer = comparison.get(scenario)
        sim = comparison.simulation_for(layer)

    bindings = resolve_bindings(sim.schema, layer, parameter_file, explicit)
    result = sim.run_bindings(bindings, iterations=iterations, seed=seed, workers=workers)

    if fmt == 'json':
        _emit(to_json(result), output)
    elif fmt == 'csv':
        _emit(to_csv(result), output)
    else:
        labels = {o.key: o.label for o in sim.outputs}
        sections = [format_table(result, labels)]
        if histogram:
            sections.extend(format_histogram(o) for o in result.outputs.values())
        if diagnostics:
            sections.append(format_diagnostics(result))
        _emit("\n\n".join(sections), output)


@main.command()
@click.argument('simulation')
@click.option('--scenario-file', required=True, type=click.Path(exists=True),
              help='JSON/YAML file of named scenarios')
@click.option('--scenario', '-s', 'names', multiple=True,
              help='Scenario to include (repeatable; default: all in the file)')
@click.option('--iterations', '-n', type=int, default=DEFAULT_ITERATIONS,
              help=f'Iterations per scenario (default: {DEFAULT_ITERATIONS})')
@click.option('--seed', type=int, help='Seed shared by every scenario')
@click.option('--set', 'assignments', multiple=True, metavar='KEY=VALUE',
              help='Override one parameter in every scenario (repeatable)')
@click.option('--params', 'params_file', type=click.Path(exists=True),
              help='JSON/YAML file of overrides applied to every scenario')
@click.option('--concurrent', type=int, default=1,
              help='Scenarios to run at the same time (default: 1)')
@click.option('--format', 'fmt', type=click.Choice(FORMATS), default='table',
              help='Output format (default: table)')
@click.option('--output', '-o', type=click.Path(), help='Write results to this file')
@_handle_errors
def compare(simulation, scenario_file, names, iterations, seed, assignments, params_file,
            concurrent, fmt, output):
    """
    Compare named scenarios of a simulation.

    SIMULATION: Registry id or path to a config file
    """
    if iterations <= 0:
        raise click.BadParameter("iterations must be a positive integer", param_hint="'--iterations'")

    sim = _resolve_simulation(simulation)
    comparison = ScenarioComparison(sim, load_scenario_file(scenario_file))
    results = comparison.compare(
        list(names) or comparison.scenario_names,
        n=iterations,
        seed=seed,
        parameter_file=load_parameter_file(params_file) if params_file else None,
        explicit=parse_override_assignments(assignments),
        max_concurrent=concurrent,
    )

    if fmt == 'json':
        _emit(comparison_to_json(results), output)
    elif fmt == 'csv':
        _emit(comparison_to_csv(results), output)
    else:
        _emit(format_comparison(results), output)


if __name__ == '__main__':
    main()
