from datetime import date

import pytest

from invest_replay.config import Granularity
from invest_replay.errors import ConfigurationError
from invest_replay.prices import (
    GeneratorConfig,
    NumpyRandomSource,
    PriceSeries,
    SequenceRandomSource,
    generate_series,
    period_count,
)


def test_monthly_period_count_is_inclusive_of_both_months():
    assert period_count(date(2020, 1, 15), date(2020, 12, 1), Granularity.MONTHLY) == 12
    assert period_count(date(2020, 3, 1), date(2020, 3, 31), Granularity.MONTHLY) == 1


def test_weekly_period_count_uses_seven_day_steps():
    assert period_count(date(2020, 1, 1), date(2020, 1, 29), Granularity.WEEKLY) == 5
    assert period_count(date(2020, 1, 1), date(2020, 1, 28), Granularity.WEEKLY) == 4


def test_generated_series_is_contiguous_and_ordered():
    series = generate_series("AAPL", date(2015, 1, 1), date(2020, 12, 31), random_source=NumpyRandomSource(7))
    assert len(series) == 72
    assert [p.index for p in series.points] == list(range(72))
    dates = series.dates
    assert all(a < b for a, b in zip(dates, dates[1:]))
    assert dates[0] == date(2015, 1, 1)
    assert dates[-1] == date(2020, 12, 1)


def test_prices_follow_drift_when_walk_is_neutral():
    # 0.5 gives a zero walk and never triggers a shock
    series = generate_series("ZZZ", date(2020, 1, 1), date(2020, 6, 1), random_source=SequenceRandomSource([0.5]))
    prices = series.prices
    assert prices[0] == pytest.approx(150.0)
    for a, b in zip(prices, prices[1:]):
        assert b / a == pytest.approx(1.015)


def test_known_ticker_uses_its_growth_rate():
    series = generate_series("NVDA", date(2020, 1, 1), date(2020, 3, 1), random_source=SequenceRandomSource([0.5]))
    assert series.prices[1] / series.prices[0] == pytest.approx(1.035)


def test_weekly_drift_is_scaled_to_the_period():
    series = generate_series(
        "ZZZ", date(2020, 1, 1), date(2020, 2, 1), Granularity.WEEKLY, random_source=SequenceRandomSource([0.5])
    )
    assert series.prices[1] / series.prices[0] == pytest.approx(1 + 0.015 * 12 / 52)


def test_floor_keeps_prices_positive():
    cfg = GeneratorConfig(volatility=5.0, floor=10.0)
    series = generate_series("ZZZ", date(2020, 1, 1), date(2021, 1, 1), random_source=SequenceRandomSource([0.0]), config=cfg)
    assert (series.prices >= 10.0).all()
    assert series.prices[-1] == pytest.approx(10.0)


def test_shock_knocks_price_down():
    # initial draw, walk 0.5 (neutral), shock draw 0.01 (< 0.05)
    rng = SequenceRandomSource([0.5, 0.5, 0.01])
    series = generate_series("ZZZ", date(2020, 1, 1), date(2020, 2, 1), random_source=rng)
    assert series.prices[1] == pytest.approx(150.0 * 1.015 * 0.92)


def test_seeded_sources_reproduce_the_series():
    a = generate_series("TSLA", date(2018, 1, 1), date(2020, 1, 1), random_source=NumpyRandomSource(3))
    b = generate_series("TSLA", date(2018, 1, 1), date(2020, 1, 1), random_source=NumpyRandomSource(3))
    assert a == b
    assert a.seed == 3


@pytest.mark.parametrize(
    "ticker,start,end",
    [("", date(2020, 1, 1), date(2020, 2, 1)), ("SPY", date(2020, 2, 1), date(2020, 1, 1))],
)
def test_invalid_inputs_are_rejected(ticker, start, end):
    with pytest.raises(ConfigurationError):
        generate_series(ticker, start, end, random_source=SequenceRandomSource([0.5]))


def test_to_frame_is_indexed_by_date():
    series = PriceSeries.from_prices("X", date(2020, 1, 1), [1.0, 2.0, 3.0])
    df = series.to_frame()
    assert list(df["Close"]) == [1.0, 2.0, 3.0]
    assert df.index[-1].month == 3
