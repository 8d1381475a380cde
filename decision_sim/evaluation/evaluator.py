"""
Scenario evaluator: one iteration of a simulation's logic.

The evaluator compiles the logic once and then runs it against a
parameter binding, an explicit uniform random source, and (when enabled)
the business-context helpers. Results are checked against the declared
output keys; anything other than a finite number per key is an
EvaluationError.
"""

import math
import numbers
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..config import DEFAULT_ITERATION_TIMEOUT
from ..errors import EvaluationError, SimulationError, ValidationError
from .business import BUSINESS_CONSTANTS, BUSINESS_FUNCTIONS, BusinessContext
from .sandbox import RANDOM_FUNCTION, SAFE_FUNCTIONS, compile_logic


class ScenarioEvaluator:
    """
    Compiled simulation logic plus its output contract.

    Args:
        logic: Logic text (restricted Python subset, see `sandbox`)
        output_keys: Keys every evaluation must produce
        parameter_keys: Readable parameter names. When given, references to
            unknown names are rejected at construction.
        business_context: Expose business helpers and budget constants
        timeout: Per-evaluation wall-clock budget in seconds

    Raises:
        ValidationError: If the logic does not compile or no outputs are declared
    """

    def __init__(
        self,
        logic: str,
        output_keys: Sequence[str],
        parameter_keys: Optional[Sequence[str]] = None,
        business_context: bool = False,
        timeout: float = DEFAULT_ITERATION_TIMEOUT,
    ):
        if not output_keys:
            raise ValidationError(["at least one output key must be declared"])
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.logic = logic
        self.output_keys: List[str] = list(output_keys)
        self.parameter_keys = list(parameter_keys) if parameter_keys is not None else None
        self.business_context = business_context
        self.timeout = timeout

        names = None
        if self.parameter_keys is not None:
            names = set(self.parameter_keys)
            if business_context:
                names.update(BUSINESS_CONSTANTS)
        extra = BUSINESS_FUNCTIONS.keys() if business_context else ()
        self._program = compile_logic(logic, names=names, extra_functions=extra)

    def __reduce__(self):
        # Compiled closures are not picklable; rebuild from source in workers
        return (
            self.__class__,
            (self.logic, self.output_keys, self.parameter_keys,
             self.business_context, self.timeout),
        )

    def evaluate(
        self,
        bindings: Mapping[str, Any],
        rng: Callable[[], float],
        helpers: Optional[BusinessContext] = None,
    ) -> Dict[str, float]:
        """
        Run the logic once.

        Args:
            bindings: Parameter key -> normalized value
            rng: Uniform source returning floats in [0, 1)
            helpers: Business context; derived from `bindings` when omitted.
                Ignored unless the evaluator was built with business_context.

        Returns:
            Output key -> finite float, in declared order

        Raises:
            EvaluationError: Logic fault or unusable output
            EvaluationTimeout: Budget exceeded
        """
        functions = dict(SAFE_FUNCTIONS)
        functions[RANDOM_FUNCTION] = rng
        variables = dict(bindings)
        if self.business_context:
            context = helpers if helpers is not None else BusinessContext.from_bindings(bindings)
            functions.update(BUSINESS_FUNCTIONS)
            variables.update(context.constants())

        try:
            result = self._program.execute(variables, functions, self.timeout)
        except SimulationError:
            raise
        except Exception as exc:
            raise EvaluationError(f"logic fault: {type(exc).__name__}: {exc}") from exc

        return self._check_outputs(result)

    def _check_outputs(self, result: Any) -> Dict[str, float]:
        if not isinstance(result, dict):
            raise EvaluationError(
                f"logic must return a mapping of outputs, got {type(result).__name__}"
            )
        outputs: Dict[str, float] = {}
        for key in self.output_keys:
            if key not in result:
                raise EvaluationError(f"missing output '{key}'", output_key=key)
            value = result[key]
            if isinstance(value, bool):
                value = float(value)
            elif not isinstance(value, numbers.Real):
                raise EvaluationError(
                    f"output '{key}' must be numeric, got {type(value).__name__}",
                    output_key=key,
                )
            try:
                value = float(value)
            except OverflowError:
                raise EvaluationError(f"output '{key}' is too large", output_key=key) from None
            if not math.isfinite(value):
                raise EvaluationError(f"output '{key}' is not finite ({value})", output_key=key)
            outputs[key] = value
        return outputs
