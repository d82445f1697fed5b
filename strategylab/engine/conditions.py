"""
Condition evaluation for predefined and combined strategies.

Conditions are evaluated in list order and the FIRST condition whose
predicate holds decides the signal. This is a first-match-wins policy, not
an all-conditions-AND policy.
"""

import logging
import math
from typing import Optional, Sequence

from strategylab.engine.constants import (
    EQUAL_TOLERANCE,
    Action,
    IndicatorKey,
    Operator,
    Signal,
)
from strategylab.engine.strategy_loader import Condition
from strategylab.indicators.series import SeriesBundle

logger = logging.getLogger(__name__)


def indicator_value(
    key: str, index: int, bundle: SeriesBundle, operator: Optional[str] = None
) -> float:
    """
    Value of an indicator key at a bar index.

    - ``rsi``: RSI value.
    - ``macd``: MACD line minus signal line.
    - ``bollinger``: percentage distance from the band the operator looks
      at. For ``greater``/``cross-above`` this is ``close / upper * 100 - 100``
      (positive above the upper band); otherwise ``lower / close * 100 - 100``
      (positive below the lower band).
    - ``price`` / ``volume``: the bar's close / volume.
    - Any other key: 0.0.

    Returns NaN for a negative index or while an indicator warms up.
    """
    if index < 0:
        return math.nan

    if key == IndicatorKey.RSI:
        return float(bundle.rsi().iloc[index])

    if key == IndicatorKey.MACD:
        macd = bundle.macd()
        return float(macd.macd_line.iloc[index] - macd.signal_line.iloc[index])

    if key == IndicatorKey.BOLLINGER:
        price = float(bundle.close.iloc[index])
        bands = bundle.bollinger()
        if operator in (Operator.GREATER, Operator.CROSS_ABOVE):
            upper = float(bands.upper.iloc[index])
            return price / upper * 100 - 100 if upper else math.nan
        lower = float(bands.lower.iloc[index])
        return lower / price * 100 - 100

    if key == IndicatorKey.PRICE:
        return float(bundle.close.iloc[index])

    if key == IndicatorKey.VOLUME:
        return float(bundle.volume.iloc[index])

    return 0.0


def condition_met(condition: Condition, index: int, bundle: SeriesBundle) -> bool:
    """Whether a single condition's predicate holds at ``index``. NaN never matches."""
    op = condition.operator
    threshold = condition.value
    current = indicator_value(condition.indicator, index, bundle, op)

    if math.isnan(current):
        return False

    if op == Operator.GREATER:
        return current > threshold
    if op == Operator.LESS:
        return current < threshold
    if op == Operator.EQUAL:
        return abs(current - threshold) < EQUAL_TOLERANCE

    if op in (Operator.CROSS_ABOVE, Operator.CROSS_BELOW):
        if index <= 0:
            return False
        previous = indicator_value(condition.indicator, index - 1, bundle, op)
        if math.isnan(previous):
            return False
        if op == Operator.CROSS_ABOVE:
            return previous <= threshold and current > threshold
        return previous >= threshold and current < threshold

    return False


def evaluate_conditions(
    conditions: Sequence[Condition], index: int, bundle: SeriesBundle
) -> int:
    """
    Evaluate conditions first-match-wins.

    Returns:
        Signal.BUY or Signal.SELL for the first matching condition's action,
        Signal.HOLD when none match (or the list is empty).
    """
    for condition in conditions:
        if condition_met(condition, index, bundle):
            logger.debug("Bar %d matched %s", index, condition)
            return Signal.BUY if condition.action == Action.BUY else Signal.SELL
    return Signal.HOLD
