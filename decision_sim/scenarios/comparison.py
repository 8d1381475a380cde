"""
Scenario comparison.

Runs one simulation (or a scenario's variant of it) once per named
scenario and returns the results keyed by scenario name. All structural
checks happen before the first iteration: unknown scenario names, output
key mismatches between scenarios, and bad overrides in any layer.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from ..errors import ComparisonMismatchError, NotFoundError, OverrideError
from ..types import AggregatedStatistics, Scenario
from .overrides import resolve_bindings

logger = logging.getLogger(__name__)


class ScenarioComparison:
    """
    Named scenarios over a base simulation.

    Args:
        simulation: Base simulation, used by scenarios without a variant
        scenarios: Scenarios to choose from
    """

    def __init__(self, simulation: Any, scenarios: Iterable[Scenario] = ()):
        self.simulation = simulation
        self._scenarios: Dict[str, Scenario] = {}
        for scenario in scenarios:
            self.add_scenario(scenario)

    def add_scenario(self, scenario: Scenario) -> None:
        self._scenarios[scenario.name] = scenario

    @property
    def scenario_names(self) -> List[str]:
        return list(self._scenarios.keys())

    def get(self, name: str) -> Scenario:
        """
        Raises:
            NotFoundError: If no scenario has this name
        """
        if name not in self._scenarios:
            raise NotFoundError('scenario', name, self.scenario_names)
        return self._scenarios[name]

    def simulation_for(self, scenario: Scenario) -> Any:
        return scenario.simulation if scenario.simulation is not None else self.simulation

    def compare(
        self,
        names: Sequence[str],
        n: Optional[int] = None,
        seed: Optional[int] = None,
        parameter_file: Optional[Mapping[str, Any]] = None,
        explicit: Optional[Mapping[str, Any]] = None,
        workers: Optional[int] = None,
        max_concurrent: int = 1,
    ) -> Dict[str, AggregatedStatistics]:
        """
        Run every named scenario and collect the results.

        Every scenario uses the same root seed, so differences between
        results come from the parameters rather than from sampling noise.

        Args:
            names: Scenario names, in report order
            n: Iterations per scenario (simulation default when None)
            seed: Shared root seed; drawn once from process entropy when None
            parameter_file: Parameter-file layer applied to every scenario
            explicit: Explicit override layer applied to every scenario
            workers: Worker processes per run
            max_concurrent: Scenarios run at the same time

        Returns:
            Scenario name -> AggregatedStatistics, in `names` order

        Raises:
            NotFoundError: Unknown scenario name
            ComparisonMismatchError: Scenarios disagree on output keys; any
                override errors found alongside are attached
            OverrideError: Any layer of any scenario is invalid
            RunError: A scenario run exceeded its failure ceiling
        """
        if not names:
            raise ValueError("at least one scenario name is required")
        scenarios = [self.get(name) for name in names]
        simulations = [self.simulation_for(s) for s in scenarios]

        errors: List[str] = []
        bindings = []
        for scenario, simulation in zip(scenarios, simulations):
            try:
                bindings.append(resolve_bindings(
                    simulation.schema, scenario, parameter_file, explicit,
                ))
            except OverrideError as exc:
                errors.extend(exc.errors)

        key_sets = {
            s.name: frozenset(sim.output_keys) for s, sim in zip(scenarios, simulations)
        }
        if len(set(key_sets.values())) > 1:
            raise ComparisonMismatchError(key_sets, override_errors=errors)
        if errors:
            raise OverrideError(errors)

        if seed is None:
            seed = np.random.SeedSequence().entropy
        logger.info("Comparing %d scenarios: %s (seed=%s)", len(names), ", ".join(names), seed)

        def run(index: int) -> AggregatedStatistics:
            return simulations[index].run_bindings(bindings[index], n, seed, workers)

        if max_concurrent > 1 and len(scenarios) > 1:
            with ThreadPoolExecutor(max_workers=min(max_concurrent, len(scenarios))) as executor:
                results = list(executor.map(run, range(len(scenarios))))
        else:
            results = [run(i) for i in range(len(scenarios))]

        return {scenario.name: result for scenario, result in zip(scenarios, results)}
