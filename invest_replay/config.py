"""Simulation configuration and shared enumerations."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from .errors import ConfigurationError

MAX_TICKERS = 3


class Strategy(str, Enum):
    LUMP_SUM = "lump"
    DOLLAR_COST_AVERAGE = "dca"


class Granularity(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        return 52 if self is Granularity.WEEKLY else 12


def months_spanned(start: date, end: date) -> int:
    """Number of calendar months touched by ``start..end``, both inclusive."""
    return (end.year - start.year) * 12 + end.month - start.month + 1


@dataclass(frozen=True)
class SimulationConfig:
    """Everything needed to build a :class:`~invest_replay.simulation.SimulationRun`.

    Parameters
    ----------
    tickers : tuple of str
        One to three distinct instrument symbols.
    start, end : date
        Inclusive date range, ``start <= end``.
    granularity : Granularity
        Spacing of the generated price points.
    strategy : Strategy
        Lump sum or monthly dollar-cost averaging.
    amount : float
        Contribution per month (DCA) or the committed sum (lump sum).
    seed : int, optional
        Seed for the default random source; ``None`` draws fresh entropy.
    lump_sum_matches_dca : bool
        When set, a lump sum commits ``amount`` once for every month in the
        range so that both strategies invest the same total.
    """

    tickers: Tuple[str, ...]
    start: date
    end: date
    granularity: Granularity = Granularity.MONTHLY
    strategy: Strategy = Strategy.DOLLAR_COST_AVERAGE
    amount: float = 100.0
    seed: Optional[int] = None
    lump_sum_matches_dca: bool = False

    def __post_init__(self) -> None:
        # normalise list input so the config stays hashable
        object.__setattr__(self, "tickers", tuple(self.tickers))
        object.__setattr__(self, "granularity", Granularity(self.granularity))
        object.__setattr__(self, "strategy", Strategy(self.strategy))

    @property
    def total_months(self) -> int:
        return months_spanned(self.start, self.end)

    def validate(self) -> "SimulationConfig":
        if not self.tickers:
            raise ConfigurationError("at least one ticker is required")
        if len(self.tickers) > MAX_TICKERS:
            raise ConfigurationError(f"at most {MAX_TICKERS} tickers can be compared, got {len(self.tickers)}")
        if any(not str(t).strip() for t in self.tickers):
            raise ConfigurationError("tickers must be non-empty strings")
        if len(set(self.tickers)) != len(self.tickers):
            raise ConfigurationError(f"duplicate tickers in {list(self.tickers)}")
        if not self.amount > 0:
            raise ConfigurationError(f"amount must be positive, got {self.amount}")
        if self.start > self.end:
            raise ConfigurationError(f"start {self.start} is after end {self.end}")
        return self
