"""Portfolio accounting for lump-sum and dollar-cost-averaging strategies.

Every function here is a pure recomputation from the price series, so the
metrics at any frame can be derived in isolation (scrubbing, seeking, or
capturing at a speed unrelated to playback).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd

from .config import Granularity, Strategy
from .errors import ComputationDegenerate, ConfigurationError
from .prices import PriceSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameMetrics:
    invested_to_date: float
    shares_held: float
    portfolio_value: float

    @property
    def return_pct(self) -> float:
        try:
            return _return_pct(self.portfolio_value, self.invested_to_date)
        except ComputationDegenerate:
            return 0.0


@dataclass(frozen=True)
class SummaryMetrics:
    total_invested: float
    final_value: float
    total_return_pct: float
    cagr_pct: float
    years: float
    max_drawdown_pct: float


def _return_pct(value: float, invested: float) -> float:
    if invested == 0:
        raise ComputationDegenerate("return is undefined with nothing invested")
    return (value - invested) / invested * 100.0


def _check_amount(amount: float) -> None:
    if amount < 0:
        raise ConfigurationError(f"amount must not be negative, got {amount}")


def contribution_counts(series: PriceSeries) -> np.ndarray:
    """Number of monthly contributions landing on each period.

    The first period of every calendar month in the series contributes, up to
    the number of months in the requested range. A weekly grid can stop short
    of the range's last month (e.g. a range ending on the 3rd); that month's
    contribution then lands on the final period, the last one on or before
    the range end.
    """
    counts = np.zeros(len(series), dtype=np.int64)
    seen = 0
    previous = None
    for point in series.points:
        month = (point.date.year, point.date.month)
        if month != previous:
            if seen >= series.total_months:
                break
            counts[point.index] = 1
            seen += 1
            previous = month
    if len(series) and series.granularity is Granularity.WEEKLY and seen < series.total_months:
        last = series.points[-1]
        end_month = (series.end.year, series.end.month)
        if (last.date.year, last.date.month) != end_month and (series.end - last.date).days < 7:
            counts[last.index] += 1
    return counts


def contribution_schedule(series: PriceSeries) -> np.ndarray:
    """Boolean mask of the periods on which a monthly contribution lands."""
    return contribution_counts(series) > 0


def _cumulative(
    series: PriceSeries,
    strategy: Strategy,
    amount: float,
    lump_sum_matches_dca: bool,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (invested, shares, mask) arrays aligned with the series frames."""
    _check_amount(amount)
    prices = series.prices
    n = len(prices)
    if n == 0:
        raise ConfigurationError(f"price series for {series.ticker} is empty")

    if Strategy(strategy) is Strategy.LUMP_SUM:
        total = amount * series.total_months if lump_sum_matches_dca else amount
        mask = np.zeros(n, dtype=bool)
        mask[0] = True
        invested = np.full(n, float(total))
        shares = np.full(n, total / prices[0])
        return invested, shares, mask

    counts = contribution_counts(series)
    invested = np.cumsum(counts * amount)
    shares = np.cumsum(counts * (amount / prices))
    return invested.astype(np.float64), shares, counts > 0


def metrics_at_frame(
    series: PriceSeries,
    strategy: Strategy,
    amount: float,
    frame_index: int,
    lump_sum_matches_dca: bool = False,
) -> FrameMetrics:
    """Portfolio state after the prices of ``frame_index`` are known."""
    if not 0 <= frame_index < len(series):
        raise IndexError(f"frame {frame_index} outside 0..{series.last_frame}")
    invested, shares, _ = _cumulative(series, strategy, amount, lump_sum_matches_dca)
    price = series.points[frame_index].price
    held = float(shares[frame_index])
    return FrameMetrics(
        invested_to_date=float(invested[frame_index]),
        shares_held=held,
        portfolio_value=held * price,
    )


def portfolio_path(
    series: PriceSeries,
    strategy: Strategy,
    amount: float,
    lump_sum_matches_dca: bool = False,
) -> pd.DataFrame:
    """Per-frame metrics for the whole series.

    Columns: ``Close``, ``Contribution``, ``Invested``, ``Shares``, ``Value``.
    """
    invested, shares, mask = _cumulative(series, strategy, amount, lump_sum_matches_dca)
    df = series.to_frame()
    df["Contribution"] = mask
    df["Invested"] = invested
    df["Shares"] = shares
    df["Value"] = shares * df["Close"].to_numpy()
    return df


def max_drawdown_pct(values: np.ndarray) -> float:
    """Largest peak-to-trough decline, in percent of the running peak."""
    if len(values) == 0:
        return 0.0
    running_max = np.maximum.accumulate(values)
    valid = running_max > 0
    if not valid.any():
        return 0.0
    drawdown = (running_max[valid] - values[valid]) / running_max[valid]
    return float(np.clip(drawdown.max(), 0.0, 1.0) * 100.0)


def summarize(
    series: PriceSeries,
    strategy: Strategy,
    amount: float,
    lump_sum_matches_dca: bool = False,
) -> SummaryMetrics:
    path = portfolio_path(series, strategy, amount, lump_sum_matches_dca)
    final = metrics_at_frame(series, strategy, amount, series.last_frame, lump_sum_matches_dca)
    invested = final.invested_to_date
    value = final.portfolio_value

    try:
        total_return = _return_pct(value, invested)
    except ComputationDegenerate as exc:
        logger.debug("%s: %s, reporting 0%%", series.ticker, exc)
        total_return = 0.0

    years = len(series) / series.granularity.periods_per_year
    if years <= 0 or invested <= 0:
        cagr = 0.0
    else:
        cagr = ((value / invested) ** (1.0 / years) - 1.0) * 100.0

    return SummaryMetrics(
        total_invested=invested,
        final_value=value,
        total_return_pct=total_return,
        cagr_pct=cagr,
        years=years,
        max_drawdown_pct=max_drawdown_pct(path["Value"].to_numpy()),
    )
