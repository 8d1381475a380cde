"""Tests for ScenarioEvaluator and the business context."""

import pickle

import pytest

from decision_sim.errors import EvaluationError, EvaluationTimeout, ValidationError
from decision_sim.evaluation import BusinessContext, ScenarioEvaluator, enhance_config
from decision_sim.evaluation.business import (
    NEVER,
    calculate_cac,
    calculate_npv,
    calculate_payback_period,
    calculate_roi,
    calculate_runway,
)


def half():
    return 0.5


class TestEvaluate:
    """Tests for one evaluation."""

    def test_outputs_as_floats(self):
        """Declared outputs come back as floats in declared order."""
        evaluator = ScenarioEvaluator("return {b: 2, a: x}", ['a', 'b'], ['x'])
        assert evaluator.evaluate({'x': 3}, half) == {'a': 3.0, 'b': 2.0}

    def test_random_source_is_injected(self):
        """random() is the supplied rng."""
        evaluator = ScenarioEvaluator("return {y: x * random()}", ['y'], ['x'])
        assert evaluator.evaluate({'x': 10}, half) == {'y': 5.0}

    def test_extra_outputs_dropped(self):
        """Undeclared keys are ignored."""
        evaluator = ScenarioEvaluator("return {y: 1, z: 2}", ['y'])
        assert evaluator.evaluate({}, half) == {'y': 1.0}

    def test_bool_output_accepted(self):
        """Booleans count as 1/0."""
        evaluator = ScenarioEvaluator("return {ok: x > 1}", ['ok'], ['x'])
        assert evaluator.evaluate({'x': 2}, half) == {'ok': 1.0}

    def test_missing_output_names_key(self):
        """A missing key is named in the error."""
        evaluator = ScenarioEvaluator("return {y: 1}", ['y', 'z'])
        with pytest.raises(EvaluationError) as info:
            evaluator.evaluate({}, half)
        assert info.value.output_key == 'z'

    def test_nan_output(self):
        """NaN outputs are rejected."""
        evaluator = ScenarioEvaluator("return {y: x}", ['y'], ['x'])
        with pytest.raises(EvaluationError, match="not finite"):
            evaluator.evaluate({'x': float('nan')}, half)

    def test_non_numeric_output(self):
        """Strings are not numbers."""
        evaluator = ScenarioEvaluator("return {y: 'high'}", ['y'])
        with pytest.raises(EvaluationError, match="must be numeric"):
            evaluator.evaluate({}, half)

    def test_non_mapping_result(self):
        """The logic must return a mapping."""
        evaluator = ScenarioEvaluator("y = 1\nreturn [y]", ['y'])
        with pytest.raises(EvaluationError, match="mapping"):
            evaluator.evaluate({}, half)

    def test_runtime_fault_wrapped(self):
        """Runtime faults become EvaluationError with the fault message."""
        evaluator = ScenarioEvaluator("return {y: 1 / x}", ['y'], ['x'])
        with pytest.raises(EvaluationError, match="ZeroDivisionError"):
            evaluator.evaluate({'x': 0}, half)

    def test_nested_list_comparison_fails_fast(self):
        """Comparing nested lists is a logic fault, not a slow success."""
        evaluator = ScenarioEvaluator(
            "a = [1]\nb = [1]\nfor i in range(24):\n    a = [a, a]\n    b = [b, b]\nreturn {y: a == b}",
            ['y'], timeout=0.25,
        )
        with pytest.raises(EvaluationError, match="TypeError"):
            evaluator.evaluate({}, half)

    def test_round_with_huge_negative_digits(self):
        """round() returns promptly for any digit count."""
        evaluator = ScenarioEvaluator("return {y: round(1, -int(3e7))}", ['y'], timeout=0.25)
        assert evaluator.evaluate({}, half) == {'y': 0.0}

    def test_timeout_is_evaluation_error(self):
        """Timeouts are recoverable evaluation failures."""
        evaluator = ScenarioEvaluator(
            "t = 0\nfor i in range(10000):\n    for j in range(10000):\n        t += 1\nreturn {y: t}",
            ['y'],
            timeout=0.02,
        )
        with pytest.raises(EvaluationTimeout) as info:
            evaluator.evaluate({}, half)
        assert isinstance(info.value, EvaluationError)


class TestConstruction:
    """Tests for building an evaluator."""

    def test_no_outputs(self):
        """At least one output is required."""
        with pytest.raises(ValidationError):
            ScenarioEvaluator("return {y: 1}", [])

    def test_bad_logic(self):
        """Compile errors raise at construction."""
        with pytest.raises(ValidationError):
            ScenarioEvaluator("return {y: os.getcwd()}", ['y'])

    def test_unknown_parameter(self):
        """Reads outside the parameter keys are rejected."""
        with pytest.raises(ValidationError, match="unknown name 'w'"):
            ScenarioEvaluator("return {y: w}", ['y'], ['x'])

    def test_pickle_round_trip(self):
        """Evaluators survive pickling for worker processes."""
        evaluator = ScenarioEvaluator("return {y: x * random()}", ['y'], ['x'])
        clone = pickle.loads(pickle.dumps(evaluator))
        assert clone.evaluate({'x': 4}, half) == {'y': 2.0}


class TestBusinessContext:
    """Tests for the ARR business context."""

    def test_constants_from_bindings(self):
        """Budgets derive from ARR and budget percent."""
        context = BusinessContext.from_bindings(
            {'annualRecurringRevenue': 1_200_000, 'budgetPercent': 10}
        )
        assert context.arr_budget == pytest.approx(120_000)
        assert context.monthly_budget == pytest.approx(10_000)
        assert context.quarterly_budget == pytest.approx(30_000)

    def test_budget_percent_defaults_to_ten(self):
        """A missing or zero budget percent means 10%."""
        context = BusinessContext.from_bindings({'annualRecurringRevenue': 1000})
        assert context.arr_budget == pytest.approx(100)

    def test_missing_arr(self):
        """ARR is required."""
        with pytest.raises(EvaluationError, match="annualRecurringRevenue"):
            BusinessContext.from_bindings({})

    def test_helpers_available_to_logic(self):
        """Business helpers and constants are visible when enabled."""
        evaluator = ScenarioEvaluator(
            "return {roi: calculate_roi(monthly_budget, monthly_budget * 2)}",
            ['roi'],
            ['annualRecurringRevenue', 'budgetPercent'],
            business_context=True,
        )
        result = evaluator.evaluate(
            {'annualRecurringRevenue': 1_200_000, 'budgetPercent': 10}, half,
        )
        assert result == {'roi': pytest.approx(100.0)}

    def test_helpers_hidden_when_disabled(self):
        """Without business context the helpers are unknown."""
        with pytest.raises(ValidationError, match="calculate_roi"):
            ScenarioEvaluator("return {roi: calculate_roi(1, 2)}", ['roi'])

    def test_helper_edge_cases(self):
        """Helpers guard non-positive denominators."""
        assert calculate_roi(0, 100) == 0.0
        assert calculate_roi(100, 150) == pytest.approx(50.0)
        assert calculate_roi(100, 150, timeframe=2) == pytest.approx(25.0)
        assert calculate_payback_period(1000, 0) == NEVER
        assert calculate_payback_period(1000, 100) == pytest.approx(10.0)
        assert calculate_runway(1000, -5) == NEVER
        assert calculate_cac(500, 0) == 0.0
        assert calculate_cac(500, 5) == pytest.approx(100.0)
        assert calculate_npv([-100, 110], 0.1) == pytest.approx(0.0)


class TestEnhanceConfig:
    """Tests for business-context parameter injection."""

    def test_injects_when_enabled(self, single_parameter_config):
        """ARR and budget parameters plus a group are prepended."""
        single_parameter_config['businessContext'] = True
        enhanced = enhance_config(single_parameter_config)
        keys = [p['key'] for p in enhanced['parameters']]
        assert keys == ['annualRecurringRevenue', 'budgetPercent', 'x']
        assert enhanced['groups'][0]['name'] == 'Business Context'
        assert 'groups' not in single_parameter_config

    def test_untouched_when_disabled(self, single_parameter_config):
        """Configs without the flag are returned as an equal copy."""
        enhanced = enhance_config(single_parameter_config)
        assert enhanced == single_parameter_config
        assert enhanced is not single_parameter_config

    def test_existing_arr_kept(self, single_parameter_config):
        """An existing ARR parameter is not duplicated."""
        single_parameter_config['businessContext'] = True
        single_parameter_config['parameters'].append({
            'key': 'annualRecurringRevenue', 'label': 'ARR', 'type': 'number', 'default': 1e6,
        })
        enhanced = enhance_config(single_parameter_config)
        keys = [p['key'] for p in enhanced['parameters']]
        assert keys.count('annualRecurringRevenue') == 1
        assert keys[0] == 'budgetPercent'
        assert 'groups' not in enhanced
