"""
Restricted logic compiler.

Simulation logic is author-supplied text written as a small subset of
Python: assignments, if/elif/else, bounded `for` loops, arithmetic,
comparisons, calls to a fixed function table, and a final `return` of a
mapping. The text is parsed with `ast`, every node is checked against a
whitelist, and the tree is compiled once into nested closures so each
iteration runs without re-parsing.

The compiled program never sees Python builtins, module globals or
attribute access. Each execution gets a fresh variable frame and a
wall-clock deadline that is checked before every statement and loop step,
and once more when the program finishes. Functions and operators only
accept scalar operands where nested lists would make a single step slow.
"""

import ast
import math
import operator
import textwrap
import time
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from ..config import MAX_LOOP_ITERATIONS, MAX_ROUND_DIGITS
from ..errors import EvaluationError, EvaluationTimeout, ValidationError

# Ints beyond this magnitude are demoted to float so repeated
# multiplication cannot build unbounded integers
_INT_LIMIT = 2 ** 63

_WRAPPER = "def __logic__():\n"

NESTED_TOO_DEEPLY = "logic is nested too deeply"


# =============================================================================
# Runtime Frame
# =============================================================================

class Frame:
    """Mutable state of one execution: locals, callables and the deadline."""

    __slots__ = ('variables', 'functions', 'deadline', 'budget')

    def __init__(
        self,
        variables: Dict[str, Any],
        functions: Dict[str, Callable],
        budget: float,
    ):
        self.variables = variables
        self.functions = functions
        self.budget = budget
        self.deadline = time.perf_counter() + budget

    def check_deadline(self) -> None:
        if time.perf_counter() > self.deadline:
            raise EvaluationTimeout(self.budget)


Node = Callable[[Frame], Any]


class _ReturnSignal(Exception):
    def __init__(self, value: Any):
        self.value = value


class _BreakSignal(Exception):
    pass


class _ContinueSignal(Exception):
    pass


# =============================================================================
# Safe Function Table
# =============================================================================

def _as_int(value: Any, what: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeError(f"{what} must be an integer, got '{type(value).__name__}'")


def bounded_range(*args: Any) -> range:
    """range() that accepts integral floats and refuses oversized sequences."""
    result = range(*(_as_int(a, 'range() argument') for a in args))
    if len(result) > MAX_LOOP_ITERATIONS:
        raise EvaluationError(
            f"range() of {len(result)} items exceeds the limit of {MAX_LOOP_ITERATIONS}"
        )
    return result


def safe_pow(base: Any, exponent: Any) -> float:
    result = float(_number(base, '**')) ** float(_number(exponent, '**'))
    if isinstance(result, complex):
        raise ValueError("math domain error")
    return result


def safe_round(value: Any, ndigits: Any = None) -> Any:
    """round() with `ndigits` clamped to +/- MAX_ROUND_DIGITS."""
    value = _number(value, 'round()')
    if ndigits is None:
        return round(value)
    digits = _as_int(ndigits, 'round() digits')
    return round(value, max(-MAX_ROUND_DIGITS, min(MAX_ROUND_DIGITS, digits)))


def _numeric_items(args: tuple, name: str) -> list:
    items = args[0] if len(args) == 1 and isinstance(args[0], (list, tuple, range)) else args
    return [_number(item, name) for item in items]


def safe_min(*args: Any) -> Any:
    return min(_numeric_items(args, 'min()'))


def safe_max(*args: Any) -> Any:
    return max(_numeric_items(args, 'max()'))


def safe_sum(values: Any) -> Any:
    if not isinstance(values, (list, tuple, range)):
        raise TypeError(f"sum() expects a list, got '{type(values).__name__}'")
    return sum(_number(item, 'sum()') for item in values)


SAFE_FUNCTIONS: Dict[str, Callable] = {
    'sqrt': math.sqrt,
    'pow': safe_pow,
    'log': math.log,
    'exp': math.exp,
    'abs': abs,
    'min': safe_min,
    'max': safe_max,
    'floor': math.floor,
    'ceil': math.ceil,
    'round': safe_round,
    'range': bounded_range,
    'len': len,
    'sum': safe_sum,
    'float': float,
    'int': int,
}

# Supplied per execution by the caller
RANDOM_FUNCTION = 'random'


# =============================================================================
# Operators
# =============================================================================

def _number(value: Any, symbol: str) -> Any:
    if isinstance(value, (int, float)):
        return value
    raise TypeError(f"unsupported operand type for {symbol}: '{type(value).__name__}'")


def _arithmetic(fn: Callable[[Any, Any], Any], symbol: str) -> Callable[[Any, Any], Any]:
    def apply(left: Any, right: Any) -> Any:
        result = fn(_number(left, symbol), _number(right, symbol))
        if type(result) is int and abs(result) > _INT_LIMIT:
            return float(result)
        return result
    return apply


_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: _arithmetic(operator.add, '+'),
    ast.Sub: _arithmetic(operator.sub, '-'),
    ast.Mult: _arithmetic(operator.mul, '*'),
    ast.Div: _arithmetic(operator.truediv, '/'),
    ast.FloorDiv: _arithmetic(operator.floordiv, '//'),
    ast.Mod: _arithmetic(operator.mod, '%'),
    ast.Pow: safe_pow,
}


def _scalar(value: Any, symbol: str) -> Any:
    if value is None or isinstance(value, (int, float, str)):
        return value
    raise TypeError(
        f"'{symbol}' compares numbers, strings or booleans, got '{type(value).__name__}'"
    )


def _comparison(fn: Callable[[Any, Any], bool], symbol: str) -> Callable[[Any, Any], bool]:
    def apply(left: Any, right: Any) -> bool:
        return fn(_scalar(left, symbol), _scalar(right, symbol))
    return apply


def _membership(negate: bool) -> Callable[[Any, Any], bool]:
    symbol = 'not in' if negate else 'in'

    def apply(left: Any, right: Any) -> bool:
        if not isinstance(right, (list, tuple, dict, str)):
            raise TypeError(f"'{symbol}' needs a list, got '{type(right).__name__}'")
        found = _scalar(left, symbol) in right
        return not found if negate else found
    return apply


_COMPARE_OPERATORS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: _comparison(operator.eq, '=='),
    ast.NotEq: _comparison(operator.ne, '!='),
    ast.Lt: _comparison(operator.lt, '<'),
    ast.LtE: _comparison(operator.le, '<='),
    ast.Gt: _comparison(operator.gt, '>'),
    ast.GtE: _comparison(operator.ge, '>='),
    ast.In: _membership(False),
    ast.NotIn: _membership(True),
}

_FORBIDDEN_MESSAGES: Dict[type, str] = {
    ast.Attribute: "attribute access is not allowed",
    ast.Import: "imports are not allowed",
    ast.ImportFrom: "imports are not allowed",
    ast.While: "while loops are not allowed; use for ... in range(...)",
    ast.FunctionDef: "function definitions are not allowed",
    ast.AsyncFunctionDef: "function definitions are not allowed",
    ast.Lambda: "lambdas are not allowed",
    ast.ClassDef: "class definitions are not allowed",
    ast.ListComp: "comprehensions are not allowed",
    ast.SetComp: "comprehensions are not allowed",
    ast.DictComp: "comprehensions are not allowed",
    ast.GeneratorExp: "comprehensions are not allowed",
    ast.Global: "global statements are not allowed",
    ast.Nonlocal: "nonlocal statements are not allowed",
    ast.With: "with statements are not allowed",
    ast.Try: "try statements are not allowed",
    ast.Raise: "raise statements are not allowed",
    ast.Delete: "del statements are not allowed",
}


def _lookup(frame: Frame, name: str) -> Any:
    try:
        return frame.variables[name]
    except KeyError:
        raise NameError(f"name '{name}' is not defined") from None


def _subscript(container: Any, index: Any) -> Any:
    if isinstance(container, (list, tuple)):
        return container[_as_int(index, 'list index')]
    if isinstance(container, dict):
        if not (index is None or isinstance(index, (int, float, str))):
            raise TypeError(f"mapping keys are strings or numbers, got '{type(index).__name__}'")
        return container[index]
    raise TypeError(f"'{type(container).__name__}' object is not subscriptable")


# =============================================================================
# Compiled Program
# =============================================================================

class CompiledLogic:
    """A checked, compiled logic body ready for repeated execution."""

    def __init__(self, source: str, body: Node, assigned: FrozenSet[str]):
        self.source = source
        self.assigned = assigned
        self._body = body

    def execute(
        self,
        variables: Dict[str, Any],
        functions: Dict[str, Callable],
        budget: float,
    ) -> Any:
        """
        Run the program once.

        Args:
            variables: Initial bindings (copied; the caller's dict is untouched)
            functions: Callable table visible to the logic
            budget: Wall-clock budget in seconds

        Returns:
            The value of the executed `return`, or None

        Raises:
            EvaluationTimeout: The deadline passed before the program finished
            Exception: Any runtime fault raised by an operation
        """
        frame = Frame(dict(variables), functions, budget)
        result = None
        try:
            self._body(frame)
        except _ReturnSignal as signal:
            result = signal.value
        # The last step may have overrun without reaching another check
        frame.check_deadline()
        return result


class LogicCompiler:
    """
    Compile restricted logic text into a CompiledLogic.

    Args:
        names: Bindings the logic may read (parameters, injected constants).
            None disables the unknown-name check; lookups are then resolved
            at run time only.
        functions: Names callable from the logic
    """

    def __init__(self, names: Optional[Iterable[str]], functions: Iterable[str]):
        self.names: Optional[FrozenSet[str]] = frozenset(names) if names is not None else None
        self.functions: FrozenSet[str] = frozenset(functions)
        self.errors: List[str] = []
        self._assigned: Set[str] = set()
        self._loop_depth = 0

    def compile(self, source: str) -> CompiledLogic:
        """
        Raises:
            ValidationError: With every syntax or whitelist violation found
        """
        self.errors = []
        self._loop_depth = 0
        body = _parse(source)
        self._assigned = {
            node.id for node in ast.walk(ast.Module(body=body, type_ignores=[]))
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store)
        }
        if not any(isinstance(node, ast.Return) for stmt in body for node in ast.walk(stmt)):
            self._error(None, "logic must contain a return statement")
        try:
            compiled = self._block(body)
        except (RecursionError, MemoryError):
            raise ValidationError([NESTED_TOO_DEEPLY], "Invalid simulation logic") from None
        if self.errors:
            raise ValidationError(self.errors, "Invalid simulation logic")
        return CompiledLogic(source, compiled, frozenset(self._assigned))

    def _error(self, node: Optional[ast.AST], message: str) -> Node:
        lineno = getattr(node, 'lineno', None)
        if lineno is not None:
            message = f"line {lineno - 1}: {message}"
        self.errors.append(message)
        return _noop

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _block(self, statements: List[ast.stmt]) -> Node:
        compiled = [self._statement(stmt) for stmt in statements]

        def run_block(frame: Frame) -> None:
            for stmt in compiled:
                frame.check_deadline()
                stmt(frame)
        return run_block

    def _statement(self, node: ast.stmt) -> Node:
        if isinstance(node, ast.Assign):
            return self._assign(node)
        if isinstance(node, ast.AugAssign):
            return self._aug_assign(node)
        if isinstance(node, ast.If):
            return self._if(node)
        if isinstance(node, ast.For):
            return self._for(node)
        if isinstance(node, ast.Return):
            value = self._expression(node.value) if node.value is not None else _none

            def run_return(frame: Frame) -> None:
                raise _ReturnSignal(value(frame))
            return run_return
        if isinstance(node, ast.Expr):
            value = self._expression(node.value)

            def run_expr(frame: Frame) -> None:
                value(frame)
            return run_expr
        if isinstance(node, ast.Pass):
            return _noop
        if isinstance(node, (ast.Break, ast.Continue)):
            if self._loop_depth == 0:
                return self._error(node, f"'{type(node).__name__.lower()}' outside loop")
            signal = _BreakSignal if isinstance(node, ast.Break) else _ContinueSignal

            def run_signal(frame: Frame) -> None:
                raise signal()
            return run_signal
        return self._unsupported(node)

    def _target_name(self, node: ast.expr) -> Optional[str]:
        if not isinstance(node, ast.Name):
            self._error(node, "only plain names can be assigned")
            return None
        if node.id in self.functions:
            self._error(node, f"cannot assign to function '{node.id}'")
            return None
        if node.id.startswith('__'):
            self._error(node, f"name '{node.id}' is reserved")
            return None
        return node.id

    def _assign(self, node: ast.Assign) -> Node:
        value = self._expression(node.value)
        setters: List[Callable[[Frame, Any], None]] = []
        for target in node.targets:
            if isinstance(target, ast.Tuple):
                names = [self._target_name(elt) for elt in target.elts]
                setters.append(_unpacking_setter(names))
            else:
                setters.append(_name_setter(self._target_name(target)))

        def run_assign(frame: Frame) -> None:
            result = value(frame)
            for setter in setters:
                setter(frame, result)
        return run_assign

    def _aug_assign(self, node: ast.AugAssign) -> Node:
        name = self._target_name(node.target)
        op = _BINARY_OPERATORS.get(type(node.op))
        if op is None:
            return self._error(node, f"operator '{type(node.op).__name__}' is not allowed")
        value = self._expression(node.value)

        def run_aug_assign(frame: Frame) -> None:
            frame.variables[name] = op(_lookup(frame, name), value(frame))
        return run_aug_assign

    def _if(self, node: ast.If) -> Node:
        test = self._expression(node.test)
        body = self._block(node.body)
        orelse = self._block(node.orelse) if node.orelse else None

        def run_if(frame: Frame) -> None:
            if test(frame):
                body(frame)
            elif orelse is not None:
                orelse(frame)
        return run_if

    def _for(self, node: ast.For) -> Node:
        if node.orelse:
            self._error(node, "for ... else is not allowed")
        name = self._target_name(node.target)
        iterable = self._expression(node.iter)
        self._loop_depth += 1
        body = self._block(node.body)
        self._loop_depth -= 1

        def run_for(frame: Frame) -> None:
            items = iterable(frame)
            if not isinstance(items, (range, list, tuple)):
                raise TypeError("for loops may only iterate over range() or a list")
            if len(items) > MAX_LOOP_ITERATIONS:
                raise EvaluationError(
                    f"loop of {len(items)} items exceeds the limit of {MAX_LOOP_ITERATIONS}"
                )
            for item in items:
                frame.check_deadline()
                frame.variables[name] = item
                try:
                    body(frame)
                except _BreakSignal:
                    break
                except _ContinueSignal:
                    continue
        return run_for

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def _expression(self, node: ast.expr) -> Node:
        if isinstance(node, ast.Constant):
            return self._constant(node)
        if isinstance(node, ast.Name):
            return self._name(node)
        if isinstance(node, ast.BinOp):
            op = _BINARY_OPERATORS.get(type(node.op))
            if op is None:
                return self._error(node, f"operator '{type(node.op).__name__}' is not allowed")
            left, right = self._expression(node.left), self._expression(node.right)
            return lambda frame: op(left(frame), right(frame))
        if isinstance(node, ast.UnaryOp):
            return self._unary(node)
        if isinstance(node, ast.BoolOp):
            return self._bool_op(node)
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.IfExp):
            test = self._expression(node.test)
            body, orelse = self._expression(node.body), self._expression(node.orelse)
            return lambda frame: body(frame) if test(frame) else orelse(frame)
        if isinstance(node, ast.Call):
            return self._call(node)
        if isinstance(node, (ast.List, ast.Tuple)):
            return self._sequence(node)
        if isinstance(node, ast.Dict):
            return self._dict(node)
        if isinstance(node, ast.Subscript):
            if isinstance(node.slice, ast.Slice):
                return self._error(node, "slices are not allowed")
            container, index = self._expression(node.value), self._expression(node.slice)
            return lambda frame: _subscript(container(frame), index(frame))
        return self._unsupported(node)

    def _constant(self, node: ast.Constant) -> Node:
        value = node.value
        if value is not None and not isinstance(value, (bool, int, float, str)):
            return self._error(node, f"constant of type '{type(value).__name__}' is not allowed")
        return lambda frame: value

    def _name(self, node: ast.Name) -> Node:
        name = node.id
        if name in self.functions:
            return self._error(node, f"function '{name}' must be called")
        if name.startswith('__'):
            return self._error(node, f"name '{name}' is reserved")
        if self.names is not None and name not in self.names and name not in self._assigned:
            return self._error(node, f"unknown name '{name}'")
        return lambda frame: _lookup(frame, name)

    def _unary(self, node: ast.UnaryOp) -> Node:
        operand = self._expression(node.operand)
        if isinstance(node.op, ast.Not):
            return lambda frame: not operand(frame)
        if isinstance(node.op, ast.USub):
            return lambda frame: -_number(operand(frame), '-')
        if isinstance(node.op, ast.UAdd):
            return lambda frame: +_number(operand(frame), '+')
        return self._error(node, f"operator '{type(node.op).__name__}' is not allowed")

    def _bool_op(self, node: ast.BoolOp) -> Node:
        values = [self._expression(v) for v in node.values]
        is_and = isinstance(node.op, ast.And)

        def run_bool_op(frame: Frame) -> Any:
            result = None
            for value in values:
                result = value(frame)
                if is_and and not result:
                    return result
                if not is_and and result:
                    return result
            return result
        return run_bool_op

    def _compare(self, node: ast.Compare) -> Node:
        left = self._expression(node.left)
        pairs = []
        for op, comparator in zip(node.ops, node.comparators):
            fn = _COMPARE_OPERATORS.get(type(op))
            if fn is None:
                return self._error(node, f"comparison '{type(op).__name__}' is not allowed")
            pairs.append((fn, self._expression(comparator)))

        def run_compare(frame: Frame) -> bool:
            current = left(frame)
            for fn, comparator in pairs:
                right = comparator(frame)
                if not fn(current, right):
                    return False
                current = right
            return True
        return run_compare

    def _call(self, node: ast.Call) -> Node:
        if isinstance(node.func, ast.Attribute):
            return self._error(node, _FORBIDDEN_MESSAGES[ast.Attribute])
        if not isinstance(node.func, ast.Name):
            return self._error(node, "only named functions can be called")
        name = node.func.id
        if name not in self.functions:
            return self._error(node, f"call to unknown function '{name}'")
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                return self._error(node, "star-arguments are not allowed")
            args.append(self._expression(arg))
        kwargs = []
        for keyword in node.keywords:
            if keyword.arg is None:
                return self._error(node, "keyword unpacking is not allowed")
            kwargs.append((keyword.arg, self._expression(keyword.value)))

        def run_call(frame: Frame) -> Any:
            fn = frame.functions[name]
            return fn(
                *[arg(frame) for arg in args],
                **{key: value(frame) for key, value in kwargs}
            )
        return run_call

    def _sequence(self, node: Any) -> Node:
        if any(isinstance(elt, ast.Starred) for elt in node.elts):
            return self._error(node, "star-expressions are not allowed")
        elements = [self._expression(elt) for elt in node.elts]
        factory = list if isinstance(node, ast.List) else tuple
        return lambda frame: factory(element(frame) for element in elements)

    def _dict(self, node: ast.Dict) -> Node:
        items = []
        for key, value in zip(node.keys, node.values):
            if key is None:
                return self._error(node, "dict unpacking is not allowed")
            if isinstance(key, ast.Name):
                # Bare names are output keys, not variable lookups
                key_text = key.id
            elif isinstance(key, ast.Constant) and isinstance(key.value, str):
                key_text = key.value
            else:
                return self._error(key, "dict keys must be names or strings")
            items.append((key_text, self._expression(value)))
        return lambda frame: {key: value(frame) for key, value in items}

    def _unsupported(self, node: ast.AST) -> Node:
        message = _FORBIDDEN_MESSAGES.get(type(node))
        if message is None:
            message = f"unsupported syntax '{type(node).__name__}'"
        return self._error(node, message)


# =============================================================================
# Helpers
# =============================================================================

def _noop(frame: Frame) -> None:
    return None


def _none(frame: Frame) -> None:
    return None


def _name_setter(name: Optional[str]) -> Callable[[Frame, Any], None]:
    def set_name(frame: Frame, value: Any) -> None:
        frame.variables[name] = value
    return set_name


def _unpacking_setter(names: List[Optional[str]]) -> Callable[[Frame, Any], None]:
    def set_names(frame: Frame, value: Any) -> None:
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"cannot unpack '{type(value).__name__}'")
        if len(value) != len(names):
            raise ValueError(f"expected {len(names)} values to unpack, got {len(value)}")
        for name, item in zip(names, value):
            frame.variables[name] = item
    return set_names


def _parse(source: str) -> List[ast.stmt]:
    """Parse logic text as the body of a function so `return` is legal."""
    text = textwrap.dedent(source).strip('\n')
    wrapped = _WRAPPER + textwrap.indent(text, '    ')
    try:
        tree = ast.parse(wrapped)
    except (RecursionError, MemoryError):
        raise ValidationError([NESTED_TOO_DEEPLY], "Invalid simulation logic") from None
    except SyntaxError as exc:
        lineno = (exc.lineno or 1) - 1
        raise ValidationError(
            [f"line {max(lineno, 1)}: syntax error: {exc.msg}"],
            "Invalid simulation logic",
        ) from None
    return tree.body[0].body


def compile_logic(
    source: str,
    names: Optional[Iterable[str]] = None,
    extra_functions: Iterable[str] = (),
) -> CompiledLogic:
    """
    Compile logic text against the safe function table.

    Args:
        source: Logic text
        names: Readable bindings; None skips the unknown-name check
        extra_functions: Additional callable names (e.g. business helpers)

    Raises:
        ValidationError: If the text is malformed or uses forbidden constructs
    """
    functions = set(SAFE_FUNCTIONS) | {RANDOM_FUNCTION} | set(extra_functions)
    return LogicCompiler(names, functions).compile(source)
