"""Restricted expression evaluator for dynamic field behaviour.

Expressions are written in the JavaScript-flavoured syntax form authors use
(``quantity.value * unitPrice.value``, ``age.value >= 18 && consent.value``).
They are rewritten into Python syntax, parsed with ``ast`` in ``eval`` mode
and interpreted by a walker that only understands literals, field names,
arithmetic, comparisons, boolean logic and a fixed set of helper functions.
Nothing is ever passed to ``eval``.

Results are cached per expression and context in a bounded LRU.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
import ast
import json
import logging
import math
import operator
import re

from form_runtime.config import get_config
from form_runtime.errors import EvaluationError
from form_runtime.logic.value_canonical import canonical_string, to_number
from form_runtime.models.expression import ExpressionContext, ExpressionResult
from form_runtime.models.form_definition import ExpressionConfig

logger = logging.getLogger(__name__)

_STRING_LITERAL = re.compile(r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*')")
_MEMBER_VALUE = re.compile(r"\b(\w+)\.value\b")
_LITERAL_SLOT = re.compile(r"\x00(\d+)\x00")
_IF_CALL = "_if_"

_REWRITES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"==="), "=="),
    (re.compile(r"!=="), "!="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
    (re.compile(r"\btrue\b"), "True"),
    (re.compile(r"\bfalse\b"), "False"),
    (re.compile(r"\b(?:null|undefined)\b"), "None"),
    (re.compile(r"\bif\s*\("), _IF_CALL + "("),
)

_UNSUPPORTED_FUNCTIONS = {"sin", "cos", "tan", "log", "exp"}

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"^\s*([+-]?[0-9a-zA-Z]+)")


def _split_top(text: str, sep: str) -> List[str]:
    pieces, depth, start = [], 0, 0
    for i, ch in enumerate(text):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == sep and depth == 0:
            pieces.append(text[start:i])
            start = i + 1
    pieces.append(text[start:])
    return pieces


def _closing(text: str, open_at: int) -> int:
    depth = 0
    for i in range(open_at, len(text)):
        if text[i] in "([":
            depth += 1
        elif text[i] in ")]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _fold_ternary(text: str) -> str:
    """``c ? a : b`` at the top level of ``text`` becomes ``(a) if (c) else (b)``; right-associative."""
    head = _split_top(text, "?")
    if len(head) == 1:
        return text
    cut = len(head[0])
    depth = nested = 0
    for i in range(cut + 1, len(text)):
        ch = text[i]
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif depth == 0 and ch == "?":
            nested += 1
        elif depth == 0 and ch == ":":
            if nested == 0:
                condition, chosen, other = text[:cut], text[cut + 1:i], text[i + 1:]
                return f"({_fold_ternary(chosen)}) if ({condition}) else ({_fold_ternary(other)})"
            nested -= 1
    # unmatched '?' is left for the parser to reject
    return text


def _rewrite_ternaries(text: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in "([":
            end = _closing(text, i)
            if end < 0:
                out.append(text[i:])
                break
            out.append(ch + _rewrite_ternaries(text[i + 1:end]) + text[end])
            i = end + 1
            continue
        out.append(ch)
        i += 1
    return ",".join(_fold_ternary(part) for part in _split_top("".join(out), ","))


def preprocess(expression: str) -> str:
    """Rewrite author syntax to Python syntax, leaving string literals alone."""
    literals: List[str] = []

    def stash(match: re.Match) -> str:
        literals.append(match.group(0))
        return f"\x00{len(literals) - 1}\x00"

    source = _STRING_LITERAL.sub(stash, expression)
    source = _MEMBER_VALUE.sub(r"\1", source)
    for pattern, replacement in _REWRITES:
        source = pattern.sub(replacement, source)
    if "?" in source:
        source = _rewrite_ternaries(source)
    return _LITERAL_SLOT.sub(lambda m: literals[int(m.group(1))], source).strip()


def _num(value: Any) -> float:
    if value is None:
        return 0.0
    return to_number(value)


def _display(value: Any) -> str:
    if value is None:
        return "null"
    return canonical_string(value)


def _round(value: Any) -> float:
    number = _num(value)
    if not math.isfinite(number):
        return number
    return float(math.floor(number + 0.5))


def _parse_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _NUMBER_PREFIX.match(canonical_string(value))
    return float(match.group(1)) if match else math.nan


def _parse_int(value: Any, radix: Any = 10) -> float:
    base = int(_num(radix)) or 10
    match = _INT_PREFIX.match(canonical_string(value))
    if not match:
        return math.nan
    digits = match.group(1)
    sign = -1 if digits.startswith("-") else 1
    digits = digits.lstrip("+-")
    accepted = ""
    for ch in digits:
        try:
            int(ch, base)
        except ValueError:
            break
        accepted += ch
    if not accepted:
        return math.nan
    return float(sign * int(accepted, base))


def _sqrt(value: Any) -> float:
    number = _num(value)
    return math.sqrt(number) if number >= 0 else math.nan


def _pow(base: Any, exponent: Any) -> float:
    try:
        return float(math.pow(_num(base), _num(exponent)))
    except (OverflowError, ValueError):
        return math.nan


def _min(*args: Any) -> float:
    numbers = [_num(a) for a in args]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return min(numbers) if numbers else math.inf


def _max(*args: Any) -> float:
    numbers = [_num(a) for a in args]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return max(numbers) if numbers else -math.inf


def _floor(value: Any) -> float:
    number = _num(value)
    return float(math.floor(number)) if math.isfinite(number) else number


def _ceil(value: Any) -> float:
    number = _num(value)
    return float(math.ceil(number)) if math.isfinite(number) else number


def _to_string(value: Any) -> str:
    if value is None:
        raise EvaluationError("Cannot convert null to string")
    return canonical_string(value)


def _if(condition: Any, true_value: Any, false_value: Any) -> Any:
    return true_value if _truthy(condition) else false_value


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "abs": lambda v: abs(_num(v)),
    "round": _round,
    "floor": _floor,
    "ceil": _ceil,
    "min": _min,
    "max": _max,
    "sqrt": _sqrt,
    "pow": _pow,
    "parseFloat": _parse_float,
    "parseInt": _parse_int,
    "isNaN": lambda v: math.isnan(_num(v)),
    "isFinite": lambda v: math.isfinite(_num(v)),
    "toString": _to_string,
    "getAsString": _to_string,
    "length": lambda v: len(v) if isinstance(v, (list, tuple, str, dict)) else 0,
    _IF_CALL: _if,
}

BUILTIN_NAMES = frozenset(set(FUNCTIONS) | {"if", "Math"} | _UNSUPPORTED_FUNCTIONS)


def _truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    if isinstance(value, (list, tuple, dict)):
        return True
    return bool(value)


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return _display(left) + _display(right)
    return _num(left) + _num(right)


def _div(left: Any, right: Any) -> float:
    a, b = _num(left), _num(right)
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a)
    return a / b


def _mod(left: Any, right: Any) -> float:
    a, b = _num(left), _num(right)
    if b == 0 or not math.isfinite(a):
        return math.nan
    return math.fmod(a, b)


_BINARY_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: _add,
    ast.Sub: lambda a, b: _num(a) - _num(b),
    ast.Mult: lambda a, b: _num(a) * _num(b),
    ast.Div: _div,
    ast.Mod: _mod,
    ast.Pow: _pow,
}


def _loose_equal(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    numeric = (int, float)
    if isinstance(left, numeric) or isinstance(right, numeric):
        if isinstance(left, (str, *numeric)) and isinstance(right, (str, *numeric)):
            return _num(left) == _num(right)
    return left == right


def _ordered(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(left: Any, right: Any) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            return op(left, right)
        return op(_num(left), _num(right))

    return compare


_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: _loose_equal,
    ast.NotEq: lambda a, b: not _loose_equal(a, b),
    ast.Lt: _ordered(operator.lt),
    ast.LtE: _ordered(operator.le),
    ast.Gt: _ordered(operator.gt),
    ast.GtE: _ordered(operator.ge),
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.BinOp,
    ast.UnaryOp,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Attribute,
    ast.List,
    ast.Tuple,
    *_BINARY_OPS.keys(),
    *_COMPARE_OPS.keys(),
)


def parse_expression(expression: str) -> ast.Expression:
    """Rewrite and parse; raises EvaluationError on syntax outside the subset."""
    source = preprocess(expression or "")
    if not source:
        raise EvaluationError("Expression is empty")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise EvaluationError(f"Invalid syntax: {e.msg}") from e
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise EvaluationError(f"Unsupported syntax: {type(node).__name__}")
    return tree


class _Interpreter:
    def __init__(self, variables: Mapping[str, Any]):
        self.variables = variables

    def run(self, tree: ast.Expression) -> Any:
        return self.visit(tree.body)

    def visit(self, node: ast.AST) -> Any:
        method = getattr(self, "visit_" + type(node).__name__, None)
        if method is None:
            raise EvaluationError(f"Unsupported syntax: {type(node).__name__}")
        return method(node)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(e) for e in node.elts]

    visit_Tuple = visit_List

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self.variables:
            return self.variables[node.id]
        raise EvaluationError(f"Undefined variable: {node.id}")

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        raise EvaluationError(f"Unsupported member access: {node.attr}")

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            return not _truthy(operand)
        if isinstance(node.op, ast.USub):
            return -_num(operand)
        return _num(operand)

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        return _BINARY_OPS[type(node.op)](self.visit(node.left), self.visit(node.right))

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value_node in node.values:
            result = self.visit(value_node)
            if isinstance(node.op, ast.And) and not _truthy(result):
                return result
            if isinstance(node.op, ast.Or) and _truthy(result):
                return result
        return result

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if not _COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        return self.visit(node.body) if _truthy(self.visit(node.test)) else self.visit(node.orelse)

    def visit_Call(self, node: ast.Call) -> Any:
        if node.keywords:
            raise EvaluationError("Keyword arguments are not supported")
        name = _function_name(node.func)
        if name in _UNSUPPORTED_FUNCTIONS:
            raise EvaluationError(f"Function {name} is not supported")
        func = FUNCTIONS.get(name)
        if func is None:
            raise EvaluationError(f"Unknown function: {name}")
        if name == _IF_CALL:
            if len(node.args) != 3:
                raise EvaluationError("if() takes exactly 3 arguments")
            # only the chosen branch is evaluated
            condition = self.visit(node.args[0])
            return self.visit(node.args[1] if _truthy(condition) else node.args[2])
        args = [self.visit(a) for a in node.args]
        try:
            return func(*args)
        except TypeError as e:
            raise EvaluationError(f"Invalid arguments for {name}") from e


def _function_name(func: ast.AST) -> str:
    if isinstance(func, ast.Name):
        return func.id
    # Math.floor(x) and friends
    if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name) and func.value.id == "Math":
        return func.attr
    raise EvaluationError("Only named function calls are supported")


def finalize(value: Any) -> Any:
    """Normalize numeric results: integral floats become ints, NaN/inf become None."""
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def _cache_key(expression: str, context: ExpressionContext) -> str:
    return expression + "|" + json.dumps(context.model_dump(), sort_keys=True, default=str)


class ExpressionEngine:
    """Evaluates expressions against an ``ExpressionContext`` with caching."""

    def __init__(self, cache_size: Optional[int] = None):
        self.cache_size = cache_size or get_config().expressions.cache_size
        self._cache: "OrderedDict[str, ExpressionResult]" = OrderedDict()
        self._dependency_cache: Dict[str, List[str]] = {}
        self._hits = 0
        self._misses = 0

    def evaluate(self, expression: str, context: Optional[ExpressionContext] = None) -> ExpressionResult:
        context = context or ExpressionContext()
        dependencies = self.get_dependencies(expression)
        key = _cache_key(expression, context)
        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            self._cache.move_to_end(key)
            return cached
        self._misses += 1
        try:
            tree = parse_expression(expression)
            value = finalize(_Interpreter(context.values).run(tree))
            result = ExpressionResult(value=value, dependencies=dependencies)
        except EvaluationError as e:
            logger.info("expression_evaluation_failed expression=%r error=%s", expression, e)
            return ExpressionResult(
                value=None,
                error=f"Expression evaluation failed: {e}",
                dependencies=dependencies,
            )
        except (ArithmeticError, ValueError, RecursionError) as e:
            logger.warning("expression_evaluation_error expression=%r error=%s", expression, e)
            return ExpressionResult(
                value=None,
                error=f"Expression evaluation failed: {e}",
                dependencies=dependencies,
            )
        self._cache[key] = result
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return result

    def validate(self, expression: str) -> Tuple[bool, Optional[str]]:
        """Check syntax without evaluating; returns (valid, error)."""
        try:
            parse_expression(expression)
        except EvaluationError as e:
            return False, f"Invalid expression: {e}"
        return True, None

    def get_dependencies(self, expression: str) -> List[str]:
        """Field ids referenced as ``<field>.value``, in first-seen order."""
        cached = self._dependency_cache.get(expression)
        if cached is not None:
            return list(cached)
        deps: List[str] = []
        for match in _MEMBER_VALUE.finditer(expression or ""):
            name = match.group(1)
            if name not in BUILTIN_NAMES and name not in deps:
                deps.append(name)
        self._dependency_cache[expression] = deps
        return list(deps)

    def evaluate_with_dependencies(
        self,
        expressions: Mapping[str, str],
        context: Optional[ExpressionContext] = None,
    ) -> Dict[str, ExpressionResult]:
        """Evaluate several field expressions so each sees the results it depends on.

        ``expressions`` maps field id to expression. A field that takes part in
        a dependency cycle, or depends on one, gets an error result.
        """
        base = context or ExpressionContext()
        results: Dict[str, ExpressionResult] = {}
        evaluating: List[str] = []

        def resolve(field_id: str) -> ExpressionResult:
            if field_id in results:
                return results[field_id]
            expression = expressions[field_id]
            evaluating.append(field_id)
            blocked: Optional[str] = None
            for dep in self.get_dependencies(expression):
                if dep not in expressions:
                    continue
                if dep in evaluating:
                    blocked = f"Circular dependency detected for field: {dep}"
                    break
                dep_result = resolve(dep)
                if dep_result.error and dep_result.error.startswith("Circular dependency"):
                    blocked = dep_result.error
                    break
            evaluating.pop()
            if blocked is not None:
                logger.warning("expression_circular_dependency field=%s detail=%s", field_id, blocked)
                result = ExpressionResult(value=None, error=blocked, dependencies=self.get_dependencies(expression))
            else:
                values = dict(base.values)
                for dep_id, dep_result in results.items():
                    if dep_result.value is not None:
                        values[dep_id] = dep_result.value
                result = self.evaluate(expression, base.model_copy(update={"values": values}))
            results[field_id] = result
            return result

        for field_id in expressions:
            resolve(field_id)
        return results

    def clear_cache(self) -> None:
        self._cache.clear()
        self._dependency_cache.clear()
        self._hits = 0
        self._misses = 0

    def cache_stats(self) -> Dict[str, int]:
        return {
            "cacheSize": len(self._cache),
            "dependencyCacheSize": len(self._dependency_cache),
            "maxSize": self.cache_size,
            "hits": self._hits,
            "misses": self._misses,
        }


_ENGINE: Optional[ExpressionEngine] = None


def get_engine() -> ExpressionEngine:
    """Process-wide engine shared by sessions and the HTTP API."""
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = ExpressionEngine()
    return _ENGINE


def evaluate_expression(config: ExpressionConfig, context: Optional[ExpressionContext] = None) -> ExpressionResult:
    return get_engine().evaluate(config.expression, context)


__all__ = [
    "FUNCTIONS",
    "BUILTIN_NAMES",
    "preprocess",
    "parse_expression",
    "finalize",
    "ExpressionEngine",
    "get_engine",
    "evaluate_expression",
]
