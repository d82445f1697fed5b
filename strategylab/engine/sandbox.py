"""
Strategy dispatch and error containment.

``run_strategy`` turns any strategy definition into a per-bar signal in
{-1, 0, 1}. Failures inside custom code (exceptions, timeouts, unusable
return values) are logged and treated as hold; they never reach the
simulator.
"""

import logging
import math
import threading
from numbers import Number
from typing import Any, Callable, Iterable, Optional, Set

import numpy as np
import pandas as pd

from strategylab.engine.conditions import evaluate_conditions
from strategylab.engine.constants import Signal, StrategyType
from strategylab.engine.exceptions import StrategyExecutionError, StrategyTimeoutError
from strategylab.engine.registry import RegisteredStrategy, get_strategy, is_registered
from strategylab.engine.strategy_loader import Strategy
from strategylab.indicators.series import SeriesBundle

logger = logging.getLogger(__name__)


def coerce_signal(value: Any) -> int:
    """
    Coerce a strategy return value to a signal.

    Booleans, non-numeric values and NaN become hold; other numbers map to
    their sign.
    """
    if isinstance(value, (bool, np.bool_)):
        return Signal.HOLD
    if not isinstance(value, (Number, np.number)):
        return Signal.HOLD
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return Signal.HOLD
    if math.isnan(number):
        return Signal.HOLD
    if number > 0:
        return Signal.BUY
    if number < 0:
        return Signal.SELL
    return Signal.HOLD


CALL_THREAD_NAME = "strategy-call"


def _call_with_timeout(func: Callable[..., Any], args: tuple, timeout: float) -> Any:
    """
    Run ``func(*args)`` on a daemon thread and wait at most ``timeout`` seconds.

    A call that overruns is abandoned. Python threads cannot be killed, so it
    keeps running in the background, but as a daemon it never holds the
    interpreter open at exit.
    """
    outcome = {}

    def call() -> None:
        try:
            outcome["value"] = func(*args)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=call, name=CALL_THREAD_NAME, daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        raise StrategyTimeoutError(f"{timeout * 1000:g} ms")
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


def _run_registered(
    registered: RegisteredStrategy,
    strategy: Strategy,
    bars: pd.DataFrame,
    index: int,
    bundle: SeriesBundle,
) -> Any:
    params = registered.merged_params(strategy.params())
    args = (bars, index, bundle, params)
    if registered.timeout is None:
        return registered.func(*args)
    return _call_with_timeout(registered.func, args, registered.timeout)


def _dispatch(strategy: Strategy, bars: pd.DataFrame, index: int, bundle: SeriesBundle) -> Any:
    if strategy.is_condition_based:
        return evaluate_conditions(strategy.conditions, index, bundle)

    if strategy.type == StrategyType.CUSTOM:
        if strategy.expression is not None:
            context = strategy.expression.build_context(bars, index, bundle, strategy.params())
            return strategy.expression.evaluate(context)
        if strategy.function:
            return _run_registered(get_strategy(strategy.function), strategy, bars, index, bundle)

    # Malformed or unknown shape
    return Signal.HOLD


def _registered_function(strategy: Strategy) -> Optional[str]:
    if strategy.type == StrategyType.CUSTOM and strategy.expression is None and strategy.function:
        return strategy.function
    return None


def run_strategy(
    strategy: Strategy,
    bars: pd.DataFrame,
    index: int,
    bundle: SeriesBundle,
    timed_out: Optional[Set[str]] = None,
) -> int:
    """
    Compute the signal of ``strategy`` at bar ``index``.

    Args:
        strategy: Strategy definition.
        bars: OHLCV DataFrame being simulated.
        index: Current bar position.
        bundle: Indicator series for ``bars``.
        timed_out: Registered function names that already overran their time
            budget in this run. They are not called again and yield hold; a
            function that times out now is added. A simulation passes one set
            per run so a runaway function leaves at most one abandoned thread.

    Returns:
        Signal.BUY, Signal.SELL or Signal.HOLD. Errors are logged at WARNING
        and yield Signal.HOLD.
    """
    function = _registered_function(strategy)
    if function is not None and timed_out is not None and function in timed_out:
        return Signal.HOLD

    try:
        raw = _dispatch(strategy, bars, index, bundle)
    except StrategyTimeoutError as e:
        error = StrategyTimeoutError(e.budget, strategy.name, index)
        logger.warning("%s", error)
        if function is not None and timed_out is not None:
            timed_out.add(function)
            logger.warning("Skipping '%s' for the remaining bars of this run", function)
        return Signal.HOLD
    except Exception as e:
        error = StrategyExecutionError(f"{type(e).__name__}: {e}", strategy.name, index, e)
        logger.warning("%s", error)
        return Signal.HOLD

    return coerce_signal(raw)


def required_indicators(strategy: Strategy) -> Set[str]:
    """
    Indicator groups to precompute for ``strategy``.

    Includes the requirements declared by a registered function. An
    unregistered function name requires nothing here; it fails per bar
    and is treated as hold.
    """
    groups = set(strategy.required_indicators())
    function = _registered_function(strategy)
    if function is not None and is_registered(function):
        groups.update(get_strategy(function).requires)
    return groups


def precompute_indicators(bundle: SeriesBundle, groups: Iterable[str]) -> None:
    """
    Compute indicator groups up front so short data fails before simulation.

    Raises:
        InsufficientDataError: If the bars are too short for a group.
    """
    for group in sorted(groups):
        if group == "rsi":
            bundle.rsi()
        elif group == "macd":
            bundle.macd()
        elif group == "bollinger":
            bundle.bollinger()
        elif group == "fibonacci":
            bundle.fibonacci()
        elif group == "volume":
            bundle.volume_metrics()
