"""
Backtest simulation module.

Walks the bar series bar by bar with a single long-only position:

    Flat --buy--> Long --sell--> Flat

- BUY while flat: invest all cash at the close (quantity = cash / close).
- SELL while long: sell the whole position at the close.
- BUY while long and SELL while flat are ignored.

A position still open at the last bar is NOT closed; its value is marked to
the last close in the final balance and its trade stays an open stub.
No fees, slippage or partial fills are modeled.
"""

import logging
import warnings
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Set

import pandas as pd

from strategylab.engine.constants import DEFAULT_WARMUP, KNOWN_INDICATOR_KEYS, Signal
from strategylab.engine.exceptions import InsufficientRangeError
from strategylab.engine.sandbox import precompute_indicators, required_indicators, run_strategy
from strategylab.engine.strategy_loader import Strategy
from strategylab.indicators.series import IndicatorCache, IndicatorSettings, SeriesBundle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trade:
    """
    A round trip (or, while ``exit_date`` is empty, an open stub).

    ``profit = quantity * exit_price - quantity * entry_price`` and
    ``profit_percentage`` is relative to the entry cost.
    """

    entry_price: float
    entry_date: str
    quantity: float
    entry_index: int
    exit_price: float = 0.0
    exit_date: str = ""
    exit_index: Optional[int] = None
    profit: float = 0.0
    profit_percentage: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.exit_date == ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert trade to dictionary."""
        return {
            "entry_date": self.entry_date,
            "entry_price": self.entry_price,
            "exit_date": self.exit_date,
            "exit_price": self.exit_price,
            "quantity": self.quantity,
            "profit": self.profit,
            "profit_percentage": self.profit_percentage,
            "is_open": self.is_open,
        }


@dataclass
class PortfolioState:
    """Cash and position quantity during a run."""

    cash: float
    quantity: float = 0.0

    @property
    def is_long(self) -> bool:
        return self.quantity > 0

    def get_total_value(self, price: float) -> float:
        """Mark-to-market value at ``price``."""
        return self.cash + self.quantity * price


@dataclass
class SimulationResult:
    """Raw output of one simulation pass."""

    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[float] = field(default_factory=list)
    equity_dates: List[str] = field(default_factory=list)
    max_drawdown: float = 0.0
    final_cash: float = 0.0
    final_quantity: float = 0.0
    last_price: float = 0.0
    bars_processed: int = 0
    cancelled: bool = False

    @property
    def final_balance(self) -> float:
        """Cash plus the open position marked to the last processed close."""
        return self.final_cash + self.final_quantity * self.last_price


def format_date(value: Any) -> str:
    """ISO representation used for trade and equity dates."""
    return pd.Timestamp(value).isoformat()


def _warn_on_unknown_indicators(strategy: Strategy) -> None:
    unknown = sorted(
        {c.indicator for c in strategy.conditions if c.indicator not in KNOWN_INDICATOR_KEYS}
    )
    if unknown:
        warnings.warn(
            f"Strategy '{strategy.name}' uses unknown indicator(s) {', '.join(unknown)}; "
            f"they evaluate to 0",
            UserWarning,
        )


def simulate(
    bars: pd.DataFrame,
    strategy: Strategy,
    initial_balance: float,
    warmup: int = DEFAULT_WARMUP,
    bundle: Optional[SeriesBundle] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    cache: Optional[IndicatorCache] = None,
) -> SimulationResult:
    """
    Simulate a strategy over already date-filtered bars.

    Args:
        bars: Validated OHLCV DataFrame (not modified).
        strategy: Strategy definition.
        initial_balance: Starting cash.
        warmup: Number of leading bars skipped before signals are used.
        bundle: Indicator series for ``bars``; built from the strategy's
            parameters when omitted.
        should_cancel: Optional callable checked at the top of every bar;
            returning True stops the loop and marks the result cancelled.
        cache: Memoization table used when ``bundle`` is omitted.

    Returns:
        SimulationResult. ``equity_curve[0]`` is the initial balance and
        the curve holds one more entry than the bars processed.

    Raises:
        InsufficientRangeError: If there are no bars after the warm-up.
        InsufficientDataError: If the bars are too short for an indicator
            the strategy uses.
    """
    total = len(bars)
    if total <= warmup:
        raise InsufficientRangeError(total, warmup)

    if bundle is None:
        settings = IndicatorSettings.from_params(strategy.params())
        bundle = SeriesBundle(bars, settings, cache)

    precompute_indicators(bundle, required_indicators(strategy))
    _warn_on_unknown_indicators(strategy)

    closes = bars["Close"].to_numpy(dtype=float)
    dates = [format_date(d) for d in bars["Date"]]

    state = PortfolioState(cash=float(initial_balance))
    trades: List[Trade] = []
    equity_curve = [state.cash]
    equity_dates = [dates[warmup - 1] if warmup > 0 else dates[0]]
    peak_equity = state.cash
    max_drawdown = 0.0
    last_price = closes[warmup - 1] if warmup > 0 else closes[0]
    cancelled = False
    timed_out: Set[str] = set()

    logger.info(
        "Simulating '%s' over %d bars (warm-up %d) with balance %.2f",
        strategy.name, total - warmup, warmup, initial_balance,
    )

    for i in range(warmup, total):
        if should_cancel is not None and should_cancel():
            logger.info("Simulation cancelled at bar %d", i)
            cancelled = True
            break

        price = float(closes[i])
        signal = run_strategy(strategy, bars, i, bundle, timed_out)

        if signal == Signal.BUY and not state.is_long and state.cash > 0:
            state.quantity = state.cash / price
            state.cash = 0.0
            trades.append(
                Trade(
                    entry_price=price,
                    entry_date=dates[i],
                    quantity=state.quantity,
                    entry_index=i,
                )
            )
            logger.debug("BUY %.6f @ %.4f on %s", state.quantity, price, dates[i])

        elif signal == Signal.SELL and state.is_long:
            exit_value = state.quantity * price
            open_trade = trades[-1]
            cost = state.quantity * open_trade.entry_price
            profit = exit_value - cost
            trades[-1] = replace(
                open_trade,
                exit_price=price,
                exit_date=dates[i],
                exit_index=i,
                profit=profit,
                profit_percentage=profit / cost * 100 if cost else 0.0,
            )
            state.cash = exit_value
            state.quantity = 0.0
            logger.debug("SELL @ %.4f on %s, profit %.2f", price, dates[i], profit)

        equity = state.get_total_value(price)
        equity_curve.append(equity)
        equity_dates.append(dates[i])
        peak_equity = max(peak_equity, equity)
        if peak_equity > 0:
            max_drawdown = max(max_drawdown, (peak_equity - equity) / peak_equity)
        last_price = price

    result = SimulationResult(
        trades=trades,
        equity_curve=equity_curve,
        equity_dates=equity_dates,
        max_drawdown=max_drawdown,
        final_cash=state.cash,
        final_quantity=state.quantity,
        last_price=float(last_price),
        bars_processed=len(equity_curve) - 1,
        cancelled=cancelled,
    )

    logger.info(
        "Simulation finished: %d trades, final balance %.2f, max drawdown %.2f%%",
        len(trades), result.final_balance, max_drawdown * 100,
    )
    return result


def position_history(bars: pd.DataFrame, result: SimulationResult, warmup: int) -> pd.DataFrame:
    """
    Per-bar cash and quantity reconstructed from the trade log.

    Returns:
        DataFrame with columns Date, Close, Cash, Quantity, Equity for each
        processed bar.
    """
    closes = bars["Close"].to_numpy(dtype=float)
    processed = range(warmup, warmup + result.bars_processed)
    entries = {t.entry_index: t for t in result.trades}
    exits = {t.exit_index: t for t in result.trades if not t.is_open}

    cash = result.equity_curve[0]
    quantity = 0.0
    rows = []
    for i in processed:
        if i in entries:
            quantity = entries[i].quantity
            cash = 0.0
        elif i in exits:
            cash = exits[i].quantity * exits[i].exit_price
            quantity = 0.0
        rows.append(
            {
                "Date": result.equity_dates[i - warmup + 1],
                "Close": closes[i],
                "Cash": cash,
                "Quantity": quantity,
                "Equity": cash + quantity * closes[i],
            }
        )
    return pd.DataFrame(rows, columns=["Date", "Close", "Cash", "Quantity", "Equity"])
