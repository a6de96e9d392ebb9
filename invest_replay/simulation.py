"""Build a simulation run for every requested ticker."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .accounting import FrameMetrics, SummaryMetrics, metrics_at_frame, summarize
from .config import SimulationConfig
from .prices import GeneratorConfig, NumpyRandomSource, PriceSeries, RandomSource, generate_series

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickerRun:
    ticker: str
    series: PriceSeries
    summary: SummaryMetrics


@dataclass(frozen=True)
class SimulationRun:
    """One or more ticker runs sharing a strategy, amount and date range."""
    config: SimulationConfig
    runs: Tuple[TickerRun, ...]

    def __iter__(self) -> Iterator[TickerRun]:
        return iter(self.runs)

    def __len__(self) -> int:
        return len(self.runs)

    @property
    def frame_count(self) -> int:
        return min(len(r.series) for r in self.runs)

    @property
    def last_frame(self) -> int:
        return self.frame_count - 1

    def metrics_at_frame(self, run: TickerRun, frame_index: int) -> FrameMetrics:
        cfg = self.config
        return metrics_at_frame(run.series, cfg.strategy, cfg.amount, frame_index, cfg.lump_sum_matches_dca)

    def totals_at_frame(self, frame_index: int) -> FrameMetrics:
        """Combined invested amount, shares and value across every ticker."""
        per_run = [self.metrics_at_frame(r, frame_index) for r in self.runs]
        return FrameMetrics(
            invested_to_date=sum(m.invested_to_date for m in per_run),
            shares_held=sum(m.shares_held for m in per_run),
            portfolio_value=sum(m.portfolio_value for m in per_run),
        )


def run_simulation(
    config: SimulationConfig,
    random_source: Optional[RandomSource] = None,
    generator_config: Optional[GeneratorConfig] = None,
) -> SimulationRun:
    """Validate ``config`` and simulate each of its tickers.

    All tickers draw from the same random source, in ticker order, so a seeded
    configuration reproduces the whole run.
    """
    config.validate()
    rng = random_source if random_source is not None else NumpyRandomSource(config.seed)
    runs = []
    for ticker in config.tickers:
        series = generate_series(ticker, config.start, config.end, config.granularity, rng, generator_config)
        summary = summarize(series, config.strategy, config.amount, config.lump_sum_matches_dca)
        logger.info(
            "%s: invested %.2f -> %.2f (%+.1f%%, CAGR %.1f%%, max DD %.1f%%)",
            ticker,
            summary.total_invested,
            summary.final_value,
            summary.total_return_pct,
            summary.cagr_pct,
            summary.max_drawdown_pct,
        )
        runs.append(TickerRun(ticker, series, summary))
    return SimulationRun(config, tuple(runs))
