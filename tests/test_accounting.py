from datetime import date

import numpy as np
import pytest

from invest_replay.accounting import (
    contribution_counts,
    contribution_schedule,
    max_drawdown_pct,
    metrics_at_frame,
    portfolio_path,
    summarize,
)
from invest_replay.config import Granularity, Strategy
from invest_replay.errors import ConfigurationError
from invest_replay.prices import PriceSeries

LUMP = Strategy.LUMP_SUM
DCA = Strategy.DOLLAR_COST_AVERAGE


def monthly(prices, start=date(2020, 1, 1), **kwargs):
    return PriceSeries.from_prices("TEST", start, prices, Granularity.MONTHLY, **kwargs)


def test_dca_constant_prices():
    series = monthly([100.0] * 12)
    m = metrics_at_frame(series, DCA, 100, 11)
    assert m.invested_to_date == pytest.approx(1200)
    assert m.shares_held == pytest.approx(12)
    assert m.portfolio_value == pytest.approx(1200)
    assert summarize(series, DCA, 100).total_return_pct == pytest.approx(0)


def test_lump_sum_linear_growth():
    series = monthly(np.linspace(100, 1200, 12))
    m = metrics_at_frame(series, LUMP, 1200, 11)
    assert m.shares_held == pytest.approx(12)
    s = summarize(series, LUMP, 1200)
    assert s.final_value == pytest.approx(14400)
    assert s.total_invested == pytest.approx(1200)
    assert s.total_return_pct == pytest.approx(1100)
    assert s.max_drawdown_pct == 0


def test_lump_sum_shares_do_not_change_across_frames():
    series = monthly([100, 80, 120, 90, 150])
    shares = {metrics_at_frame(series, LUMP, 500, i).shares_held for i in range(len(series))}
    assert shares == {5.0}
    values = [metrics_at_frame(series, LUMP, 500, i).portfolio_value for i in range(len(series))]
    assert values == pytest.approx([5 * p for p in series.prices])


def test_lump_sum_can_commit_the_dca_total():
    series = monthly([100.0] * 12)
    m = metrics_at_frame(series, LUMP, 100, 0, lump_sum_matches_dca=True)
    assert m.invested_to_date == pytest.approx(1200)
    assert m.shares_held == pytest.approx(12)


def test_weekly_dca_contributes_once_per_month():
    series = PriceSeries.from_prices("TEST", date(2020, 1, 1), [10.0] * 13, Granularity.WEEKLY)
    mask = contribution_schedule(series)
    assert list(np.flatnonzero(mask)) == [0, 5, 9]
    invested = [metrics_at_frame(series, DCA, 50, i).invested_to_date for i in range(len(series))]
    assert invested == sorted(invested)
    assert invested[4] == 50 and invested[5] == 100 and invested[-1] == 150
    changes = [i for i in range(1, len(invested)) if invested[i] != invested[i - 1]]
    assert changes == [5, 9]


def test_weekly_dca_covers_a_last_month_the_grid_misses():
    # 2020-01-01..2020-02-03: the fifth week lands on Jan 29, before February
    series = PriceSeries.from_prices("TEST", date(2020, 1, 1), [10.0] * 5, Granularity.WEEKLY, end=date(2020, 2, 3))
    assert series.total_months == 2
    assert list(contribution_counts(series)) == [1, 0, 0, 0, 1]
    last = metrics_at_frame(series, DCA, 100, 4)
    assert last.invested_to_date == pytest.approx(200)
    assert last.shares_held == pytest.approx(20)
    assert summarize(series, DCA, 100).total_invested == pytest.approx(200)


def test_dca_is_capped_at_months_in_range():
    series = monthly([100.0] * 5, end=date(2020, 3, 1))
    assert contribution_schedule(series).sum() == 3
    assert metrics_at_frame(series, DCA, 100, 4).invested_to_date == pytest.approx(300)


def test_dca_shares_sum_contribution_prices():
    series = monthly([100, 50, 200])
    m = metrics_at_frame(series, DCA, 100, 2)
    assert m.shares_held == pytest.approx(1 + 2 + 0.5)
    assert m.portfolio_value == pytest.approx(3.5 * 200)


def test_metrics_at_frame_is_pure():
    series = monthly([100, 120, 90, 130])
    assert metrics_at_frame(series, DCA, 10, 2) == metrics_at_frame(series, DCA, 10, 2)


def test_portfolio_path_matches_metrics_at_frame():
    series = monthly([100, 120, 90, 130])
    path = portfolio_path(series, DCA, 10)
    for i in range(len(series)):
        m = metrics_at_frame(series, DCA, 10, i)
        assert path["Value"].iloc[i] == pytest.approx(m.portfolio_value)
        assert path["Invested"].iloc[i] == pytest.approx(m.invested_to_date)


def test_max_drawdown():
    series = monthly([100, 200, 100, 150])
    assert summarize(series, LUMP, 100).max_drawdown_pct == pytest.approx(50)
    assert max_drawdown_pct(np.array([0.0, 0.0])) == 0
    assert max_drawdown_pct(np.array([1.0, 2.0, 3.0])) == 0


def test_cagr_over_one_year():
    series = monthly([100.0] * 11 + [200.0])
    s = summarize(series, LUMP, 100)
    assert s.years == pytest.approx(1)
    assert s.cagr_pct == pytest.approx(100)


def test_zero_amount_reports_zero_returns():
    series = monthly([100, 110, 120])
    s = summarize(series, DCA, 0)
    assert s.total_return_pct == 0
    assert s.cagr_pct == 0
    assert metrics_at_frame(series, DCA, 0, 2).return_pct == 0


def test_frame_out_of_range():
    series = monthly([100, 110])
    with pytest.raises(IndexError):
        metrics_at_frame(series, DCA, 10, 2)
    with pytest.raises(IndexError):
        metrics_at_frame(series, DCA, 10, -1)


def test_negative_amount_rejected():
    with pytest.raises(ConfigurationError):
        metrics_at_frame(monthly([100]), DCA, -1, 0)
