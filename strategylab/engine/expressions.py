"""
Capability-restricted expression evaluator for custom strategies.

Custom strategy code is a single Python-syntax expression such as::

    1 if rsi < params["oversold"] else (-1 if rsi > 70 else 0)

The source is parsed with ``ast`` and checked against a whitelist of node
types before it is ever evaluated. Evaluation walks the tree directly; it
never calls ``eval``/``exec`` and exposes no attribute access, so the
expression can only see the read-only values placed in its context and the
pure helper functions listed in ``HELPERS``.

Every evaluation is bounded by a node-step budget and a wall-clock budget.
Exceeding either raises StrategyTimeoutError.
"""

import ast
import math
import operator
import time
from numbers import Number
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

import numpy as np

from strategylab.engine.constants import EXPRESSION_MAX_STEPS
from strategylab.engine.exceptions import (
    InvalidStrategyError,
    StrategyExecutionError,
    StrategyTimeoutError,
)
from strategylab.indicators.series import SeriesBundle


def _isnan(value: Any) -> bool:
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def _sequence(values: Any) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _mean(values: Any) -> float:
    arr = _sequence(values)
    if arr.size == 0:
        return math.nan
    return float(arr.mean())


def _sma(values: Any, period: Any) -> float:
    arr = _sequence(values)
    period = int(period)
    if period <= 0 or arr.size < period:
        return math.nan
    return float(arr[-period:].mean())


HELPERS: Dict[str, Callable[..., Any]] = {
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "len": len,
    "isnan": _isnan,
    "mean": _mean,
    "sma": _sma,
}

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.Compare,
    ast.IfExp,
    ast.Subscript,
    ast.Slice,
    ast.Call,
    ast.Tuple,
    ast.List,
) + tuple(_BINARY_OPS) + tuple(_UNARY_OPS) + tuple(_COMPARE_OPS)

# Context names backed by a bar column or indicator series, and the
# indicator group each one needs precomputed
SERIES_NAMES: Dict[str, Optional[str]] = {
    "close": None,
    "open": None,
    "high": None,
    "low": None,
    "volume": None,
    "rsi": "rsi",
    "macd": "macd",
    "macd_signal": "macd",
    "macd_hist": "macd",
    "bb_upper": "bollinger",
    "bb_middle": "bollinger",
    "bb_lower": "bollinger",
    "obv": "volume",
    "relative_volume": "volume",
}

_BAR_COLUMNS = {
    "close": "Close",
    "open": "Open",
    "high": "High",
    "low": "Low",
    "volume": "Volume",
}

CONTEXT_NAMES = (
    frozenset(SERIES_NAMES)
    | frozenset(f"prev_{name}" for name in SERIES_NAMES)
    | frozenset({"bars", "index", "params", "nan"})
)


def _series_for(name: str, bundle: SeriesBundle) -> Any:
    if name in _BAR_COLUMNS:
        return bundle.bars[_BAR_COLUMNS[name]]
    if name == "rsi":
        return bundle.rsi()
    if name.startswith("macd"):
        macd = bundle.macd()
        return {
            "macd": macd.macd_line,
            "macd_signal": macd.signal_line,
            "macd_hist": macd.histogram,
        }[name]
    if name.startswith("bb_"):
        bands = bundle.bollinger()
        return {"bb_upper": bands.upper, "bb_middle": bands.middle, "bb_lower": bands.lower}[name]
    metrics = bundle.volume_metrics()
    return metrics.obv if name == "obv" else metrics.relative_volume


def _value_at(name: str, index: int, bundle: SeriesBundle) -> float:
    if index < 0:
        return math.nan
    return float(_series_for(name, bundle).iloc[index])


class _Budget:
    """Per-call step counter with an optional deadline."""

    __slots__ = ("steps", "max_steps", "deadline", "time_budget")

    def __init__(self, max_steps: int, time_budget: Optional[float] = None) -> None:
        self.steps = 0
        self.max_steps = max_steps
        self.time_budget = time_budget
        self.deadline = None if time_budget is None else time.perf_counter() + time_budget

    def tick(self) -> None:
        self.steps += 1
        if self.steps > self.max_steps:
            raise StrategyTimeoutError(f"{self.max_steps} evaluation steps")
        if self.deadline is not None and time.perf_counter() > self.deadline:
            raise StrategyTimeoutError(f"{self.time_budget * 1000:g} ms")


class ExpressionEvaluator:
    """
    Compiled, validated strategy expression.

    Args:
        source: Expression text.
        max_steps: Maximum node evaluations per call.
        time_budget: Maximum wall-clock seconds per call, or None (the default)
            to bound calls by steps only and keep results independent of load.

    Raises:
        InvalidStrategyError: If the source is not a valid, whitelisted expression.
    """

    def __init__(
        self,
        source: str,
        max_steps: int = EXPRESSION_MAX_STEPS,
        time_budget: Optional[float] = None,
    ) -> None:
        self.source = source
        self.max_steps = max_steps
        self.time_budget = time_budget

        try:
            self._tree = ast.parse(source.strip(), mode="eval")
        except SyntaxError as e:
            raise InvalidStrategyError("custom code", f"syntax error: {e.msg}")

        self.names = self._validate(self._tree)

    def _validate(self, tree: ast.AST) -> FrozenSet[str]:
        names = set()
        for node in ast.walk(tree):
            if not isinstance(node, _ALLOWED_NODES):
                raise InvalidStrategyError(
                    "custom code", f"'{type(node).__name__}' is not allowed"
                )
            if isinstance(node, ast.Name):
                if node.id.startswith("_"):
                    raise InvalidStrategyError("custom code", f"name '{node.id}' is not allowed")
                if node.id not in CONTEXT_NAMES and node.id not in HELPERS:
                    raise InvalidStrategyError("custom code", f"unknown name '{node.id}'")
                names.add(node.id)
            if isinstance(node, ast.Call):
                if not isinstance(node.func, ast.Name) or node.func.id not in HELPERS:
                    raise InvalidStrategyError(
                        "custom code",
                        f"only calls to {', '.join(sorted(HELPERS))} are allowed",
                    )
                if node.keywords:
                    raise InvalidStrategyError("custom code", "keyword arguments are not allowed")
            if isinstance(node, ast.Constant) and not isinstance(
                node.value, (int, float, str, bool, type(None))
            ):
                raise InvalidStrategyError(
                    "custom code", f"constant {node.value!r} is not allowed"
                )
        return frozenset(names)

    def required_indicators(self) -> FrozenSet[str]:
        """Indicator groups referenced by the expression."""
        groups = set()
        for name in self.names:
            base = name[len("prev_"):] if name.startswith("prev_") else name
            group = SERIES_NAMES.get(base)
            if group:
                groups.add(group)
        return frozenset(groups)

    def build_context(
        self,
        bars: Any,
        index: int,
        bundle: SeriesBundle,
        params: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Build the read-only name table for one bar.

        Only names the expression references are resolved. Bar arrays stop at
        ``index`` so the expression cannot look ahead.
        """
        context: Dict[str, Any] = {}
        for name in self.names:
            if name in HELPERS:
                continue
            if name == "index":
                context[name] = index
            elif name == "nan":
                context[name] = math.nan
            elif name == "params":
                context[name] = MappingProxyType(dict(params))
            elif name == "bars":
                context[name] = MappingProxyType(
                    {
                        key: bundle.bars[column].to_numpy(dtype=float)[: index + 1].copy()
                        for key, column in _BAR_COLUMNS.items()
                    }
                )
            elif name.startswith("prev_"):
                context[name] = _value_at(name[len("prev_"):], index - 1, bundle)
            else:
                context[name] = _value_at(name, index, bundle)
        return context

    def evaluate(self, context: Mapping[str, Any]) -> Any:
        """
        Evaluate the expression against a context.

        Raises:
            StrategyTimeoutError: If the step or time budget is exceeded.
            StrategyExecutionError: If the expression misuses a value.
        """
        budget = _Budget(self.max_steps, self.time_budget)
        return self._eval(self._tree.body, context, budget)

    def _eval(self, node: ast.AST, context: Mapping[str, Any], budget: _Budget) -> Any:
        budget.tick()

        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            if node.id in HELPERS:
                return HELPERS[node.id]
            return context[node.id]

        if isinstance(node, ast.BinOp):
            left = self._eval(node.left, context, budget)
            right = self._eval(node.right, context, budget)
            if not _is_number(left) or not _is_number(right):
                raise StrategyExecutionError("arithmetic is only allowed on numbers")
            if isinstance(node.op, ast.Pow):
                # Float power overflows instead of building huge integers
                return math.pow(float(left), float(right))
            return _BINARY_OPS[type(node.op)](left, right)

        if isinstance(node, ast.UnaryOp):
            return _UNARY_OPS[type(node.op)](self._eval(node.operand, context, budget))

        if isinstance(node, ast.BoolOp):
            if isinstance(node.op, ast.And):
                result: Any = True
                for value in node.values:
                    result = self._eval(value, context, budget)
                    if not result:
                        return result
                return result
            result = False
            for value in node.values:
                result = self._eval(value, context, budget)
                if result:
                    return result
            return result

        if isinstance(node, ast.Compare):
            left = self._eval(node.left, context, budget)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval(comparator, context, budget)
                if not _COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if self._eval(node.test, context, budget):
                return self._eval(node.body, context, budget)
            return self._eval(node.orelse, context, budget)

        if isinstance(node, ast.Subscript):
            container = self._eval(node.value, context, budget)
            key = self._eval(node.slice, context, budget)
            if not isinstance(container, (Mapping, np.ndarray, tuple, list)):
                raise StrategyExecutionError("subscripts are only allowed on params, bars and arrays")
            return container[key]

        if isinstance(node, ast.Slice):
            lower = self._eval(node.lower, context, budget) if node.lower else None
            upper = self._eval(node.upper, context, budget) if node.upper else None
            step = self._eval(node.step, context, budget) if node.step else None
            return slice(lower, upper, step)

        if isinstance(node, ast.Call):
            func = HELPERS[node.func.id]
            args = [self._eval(arg, context, budget) for arg in node.args]
            return func(*args)

        if isinstance(node, ast.Tuple):
            return tuple(self._eval(elt, context, budget) for elt in node.elts)

        if isinstance(node, ast.List):
            return [self._eval(elt, context, budget) for elt in node.elts]

        raise StrategyExecutionError(f"'{type(node).__name__}' is not allowed")


def _is_number(value: Any) -> bool:
    return isinstance(value, (Number, np.number)) and not isinstance(value, (str, bytes))


def compile_expression(source: str) -> ExpressionEvaluator:
    """Parse and validate an expression, raising InvalidStrategyError if rejected."""
    if not isinstance(source, str) or not source.strip():
        raise InvalidStrategyError("custom code", "expression must be a non-empty string")
    return ExpressionEvaluator(source)
