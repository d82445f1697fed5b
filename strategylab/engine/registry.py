"""
Registered strategy functions.

Custom strategies can name a function registered here instead of carrying
expression code::

    @register_strategy("breakout", requires=("bollinger",))
    def breakout(bars, index, bundle, params):
        ...
        return 1  # buy

Functions are called as ``fn(bars, index, bundle, params)`` and return a
number coerced to a signal by the sandbox. Each call runs under a time
budget unless the function is registered with ``timeout=None``.

The built-in ``rsi``, ``macd``, ``bollinger`` and ``fibonacci`` strategies
are registered at import time.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from strategylab.engine.constants import FUNCTION_TIME_BUDGET, INDICATOR_GROUPS, Signal
from strategylab.engine.exceptions import InvalidParameterError, UnknownStrategyError
from strategylab.indicators.fibonacci import DEFAULT_TOLERANCE
from strategylab.indicators.series import SeriesBundle

StrategyFunction = Callable[[pd.DataFrame, int, SeriesBundle, Mapping[str, Any]], Any]


@dataclass(frozen=True)
class RegisteredStrategy:
    """A strategy function with its declared requirements."""

    name: str
    func: StrategyFunction
    requires: Tuple[str, ...] = ()
    timeout: Optional[float] = FUNCTION_TIME_BUDGET
    defaults: Mapping[str, Any] = field(default_factory=dict)

    def merged_params(self, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Defaults overridden by the strategy's own parameters."""
        merged = dict(self.defaults)
        merged.update(params or {})
        return merged


_STRATEGY_REGISTRY: Dict[str, RegisteredStrategy] = {}


def register_strategy(
    name: str,
    requires: Sequence[str] = (),
    timeout: Optional[float] = FUNCTION_TIME_BUDGET,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Callable[[StrategyFunction], StrategyFunction]:
    """
    Decorator registering a strategy function under ``name``.

    Args:
        name: Registry key used by ``Strategy.function`` and config names.
        requires: Indicator groups to precompute before simulation
            (rsi, macd, bollinger, fibonacci, volume).
        timeout: Per-call wall-clock budget in seconds, or None to call
            the function directly.
        defaults: Default parameter values.

    Raises:
        InvalidParameterError: If ``requires`` names an unknown indicator group.
    """
    unknown = sorted(set(requires) - set(INDICATOR_GROUPS))
    if unknown:
        raise InvalidParameterError(
            "requires", unknown, f"must be among: {', '.join(INDICATOR_GROUPS)}"
        )

    def _wrap(func: StrategyFunction) -> StrategyFunction:
        _STRATEGY_REGISTRY[name.lower()] = RegisteredStrategy(
            name=name.lower(),
            func=func,
            requires=tuple(requires),
            timeout=timeout,
            defaults=dict(defaults or {}),
        )
        return func

    return _wrap


def unregister_strategy(name: str) -> None:
    """Remove a registered strategy if present."""
    _STRATEGY_REGISTRY.pop(name.lower(), None)


def get_strategy(name: str) -> RegisteredStrategy:
    """
    Look up a registered strategy.

    Raises:
        UnknownStrategyError: If nothing is registered under ``name``.
    """
    try:
        return _STRATEGY_REGISTRY[name.lower()]
    except KeyError:
        raise UnknownStrategyError(name) from None


def is_registered(name: str) -> bool:
    return name.lower() in _STRATEGY_REGISTRY


def list_strategies() -> List[str]:
    """Names of all registered strategies."""
    return sorted(_STRATEGY_REGISTRY)


# =============================================================================
# Built-in strategies
# =============================================================================


@register_strategy(
    "rsi", requires=("rsi",), timeout=None, defaults={"oversold": 30, "overbought": 70}
)
def rsi_strategy(bars, index, bundle, params):
    """Buy when RSI is oversold, sell when overbought."""
    value = bundle.rsi().iloc[index]
    if value < float(params["oversold"]):
        return Signal.BUY
    if value > float(params["overbought"]):
        return Signal.SELL
    return Signal.HOLD


@register_strategy("macd", requires=("macd",), timeout=None)
def macd_strategy(bars, index, bundle, params):
    """Buy when the MACD line crosses above its signal line, sell on the cross below."""
    if index < 1:
        return Signal.HOLD
    macd = bundle.macd()
    line, signal = macd.macd_line, macd.signal_line
    if line.iloc[index] > signal.iloc[index] and line.iloc[index - 1] <= signal.iloc[index - 1]:
        return Signal.BUY
    if line.iloc[index] < signal.iloc[index] and line.iloc[index - 1] >= signal.iloc[index - 1]:
        return Signal.SELL
    return Signal.HOLD


@register_strategy("bollinger", requires=("bollinger",), timeout=None)
def bollinger_strategy(bars, index, bundle, params):
    """Buy below the lower band, sell above the upper band."""
    price = bundle.close.iloc[index]
    bands = bundle.bollinger()
    if price < bands.lower.iloc[index]:
        return Signal.BUY
    if price > bands.upper.iloc[index]:
        return Signal.SELL
    return Signal.HOLD


@register_strategy(
    "fibonacci",
    requires=("fibonacci",),
    timeout=None,
    defaults={"tolerance": DEFAULT_TOLERANCE, "lookback": None},
)
def fibonacci_strategy(bars, index, bundle, params):
    """
    Buy at the 38.2% / 61.8% retracements, sell at the swing extremes.

    Levels come from the whole series unless a ``lookback`` parameter is
    given, in which case they come from the trailing window ending at the
    current bar.
    """
    lookback = params.get("lookback")
    if lookback is None:
        levels = bundle.fibonacci()
    else:
        lookback = int(lookback)
        if index + 1 < lookback:
            return Signal.HOLD
        levels = bundle.fibonacci(index=index, lookback=lookback)

    level = levels.match_level(float(bundle.close.iloc[index]), float(params["tolerance"]))
    if level in (38.2, 61.8):
        return Signal.BUY
    if level in (0.0, 100.0):
        return Signal.SELL
    return Signal.HOLD
