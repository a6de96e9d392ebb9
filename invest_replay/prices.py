"""Synthetic price series generation."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Protocol, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import Granularity, months_spanned
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Monthly drift by ticker.
GROWTH_RATES: Dict[str, float] = {
    "NVDA": 0.035,
    "AAPL": 0.018,
    "MSFT": 0.020,
    "GOOGL": 0.015,
    "TSLA": 0.025,
    "SPY": 0.012,
    "AMD": 0.022,
    "QQQ": 0.015,
}
DEFAULT_GROWTH = 0.015


class RandomSource(Protocol):
    def random(self) -> float:
        """Return a uniform variate in ``[0, 1)``."""


class NumpyRandomSource:
    """Uniform draws from ``numpy.random.default_rng``."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def random(self) -> float:
        return float(self._rng.random())


class SequenceRandomSource:
    """Replays a fixed list of variates, cycling when exhausted."""

    def __init__(self, values: Sequence[float]):
        if not values:
            raise ValueError("values must not be empty")
        self._values = list(values)
        self._pos = 0

    def random(self) -> float:
        value = self._values[self._pos % len(self._values)]
        self._pos += 1
        return value


@dataclass
class GeneratorConfig:
    """Random walk parameters, expressed per calendar month."""
    initial_low: float = 100.0
    initial_high: float = 200.0
    volatility: float = 0.08
    floor: float = 10.0
    shock_probability: float = 0.05
    shock_factor: float = 0.92
    growth_rates: Dict[str, float] = field(default_factory=lambda: dict(GROWTH_RATES))
    default_growth: float = DEFAULT_GROWTH

    def drift_for(self, ticker: str, granularity: Granularity) -> float:
        monthly = self.growth_rates.get(ticker.upper(), self.default_growth)
        return monthly * 12 / granularity.periods_per_year

    def volatility_for(self, granularity: Granularity) -> float:
        return self.volatility * math.sqrt(12 / granularity.periods_per_year)


@dataclass(frozen=True)
class PricePoint:
    date: date
    price: float
    index: int


@dataclass(frozen=True)
class PriceSeries:
    """Immutable ordered price points for one ticker."""
    ticker: str
    points: Tuple[PricePoint, ...]
    start: date
    end: date
    granularity: Granularity = Granularity.MONTHLY
    seed: Optional[int] = None

    def __len__(self) -> int:
        return len(self.points)

    @property
    def last_frame(self) -> int:
        return len(self.points) - 1

    @property
    def prices(self) -> np.ndarray:
        return np.array([p.price for p in self.points], dtype=np.float64)

    @property
    def dates(self) -> Tuple[date, ...]:
        return tuple(p.date for p in self.points)

    @property
    def total_months(self) -> int:
        return months_spanned(self.start, self.end)

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {"index": [p.index for p in self.points], "Close": self.prices},
            index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in self.points], name="Date"),
        )
        return df

    @classmethod
    def from_prices(
        cls,
        ticker: str,
        start: date,
        prices: Sequence[float],
        granularity: Granularity = Granularity.MONTHLY,
        end: Optional[date] = None,
    ) -> "PriceSeries":
        """Build a series from explicit prices laid out on the period grid."""
        dates = period_dates(start, len(prices), granularity)
        points = tuple(PricePoint(d, float(p), i) for i, (d, p) in enumerate(zip(dates, prices)))
        if any(p.price <= 0 for p in points):
            raise ConfigurationError("prices must be positive")
        return cls(ticker, points, start, end or dates[-1], granularity)


def period_count(start: date, end: date, granularity: Granularity) -> int:
    if start > end:
        raise ConfigurationError(f"start {start} is after end {end}")
    if granularity is Granularity.MONTHLY:
        return months_spanned(start, end)
    return (end - start).days // 7 + 1


def period_dates(start: date, periods: int, granularity: Granularity) -> Tuple[date, ...]:
    if granularity is Granularity.MONTHLY:
        offsets = [pd.Timestamp(start) + pd.DateOffset(months=i) for i in range(periods)]
    else:
        offsets = list(pd.date_range(start=start, periods=periods, freq="7D"))
    return tuple(ts.date() for ts in offsets)


def generate_series(
    ticker: str,
    start: date,
    end: date,
    granularity: Granularity = Granularity.MONTHLY,
    random_source: Optional[RandomSource] = None,
    config: Optional[GeneratorConfig] = None,
) -> PriceSeries:
    """Generate a random walk with drift for ``ticker`` over ``start..end``.

    Each step applies ``price + price*drift + price*volatility*(u - 0.5)``,
    clamped at ``config.floor``. With ``shock_probability`` an extra draw
    knocks the price down by ``shock_factor``.
    """
    if not ticker or not ticker.strip():
        raise ConfigurationError("ticker must be a non-empty string")
    granularity = Granularity(granularity)
    cfg = config or GeneratorConfig()
    rng = random_source if random_source is not None else NumpyRandomSource()

    n = period_count(start, end, granularity)
    dates = period_dates(start, n, granularity)
    drift = cfg.drift_for(ticker, granularity)
    vol = cfg.volatility_for(granularity)

    price = cfg.initial_low + rng.random() * (cfg.initial_high - cfg.initial_low)
    price = max(cfg.floor, price)
    prices = [price]
    for _ in range(1, n):
        walk = price * vol * (rng.random() - 0.5)
        price = max(cfg.floor, price + price * drift + walk)
        if rng.random() < cfg.shock_probability:
            price = max(cfg.floor, price * cfg.shock_factor)
        prices.append(price)

    points = tuple(PricePoint(d, p, i) for i, (d, p) in enumerate(zip(dates, prices)))
    logger.debug("Generated %d %s points for %s (drift=%.4f)", n, granularity.value, ticker, drift)
    return PriceSeries(
        ticker=ticker,
        points=points,
        start=start,
        end=end,
        granularity=granularity,
        seed=getattr(rng, "seed", None),
    )
