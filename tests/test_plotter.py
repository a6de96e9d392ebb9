from datetime import date

import numpy as np
import pytest

from invest_replay.accounting import summarize
from invest_replay.config import Strategy
from invest_replay.plotter import RenderConfig, render_frame
from invest_replay.prices import PriceSeries
from invest_replay.simulation import TickerRun

SMALL = RenderConfig(width=320, height=180, dpi=40)


def make_runs(n=2):
    runs = []
    for i, ticker in enumerate(["AAA", "BBB", "CCC"][:n]):
        series = PriceSeries.from_prices(ticker, date(2019, 1, 1), [100 + 10 * i + k for k in range(24)])
        runs.append(TickerRun(ticker, series, summarize(series, Strategy.DOLLAR_COST_AVERAGE, 100)))
    return runs


def test_render_frame_returns_rgba_pixels():
    image = render_frame(make_runs(), 10, Strategy.DOLLAR_COST_AVERAGE, 100, config=SMALL)
    assert image.pixels.dtype == np.uint8
    assert image.pixels.shape == (180, 320, 4)
    assert (image.width, image.height) == (320, 180)


def test_render_frame_is_deterministic():
    runs = make_runs(3)
    a = render_frame(runs, 5, Strategy.LUMP_SUM, 1000, config=SMALL)
    b = render_frame(runs, 5, Strategy.LUMP_SUM, 1000, config=SMALL)
    assert np.array_equal(a.pixels, b.pixels)


def test_frames_differ_as_the_replay_advances():
    runs = make_runs(1)
    a = render_frame(runs, 2, Strategy.DOLLAR_COST_AVERAGE, 100, config=SMALL)
    b = render_frame(runs, 20, Strategy.DOLLAR_COST_AVERAGE, 100, config=SMALL)
    assert not np.array_equal(a.pixels, b.pixels)


def test_first_frame_and_watermark_render():
    watermark = np.ones((10, 20, 4), dtype=np.float32)
    image = render_frame(make_runs(1), 0, Strategy.DOLLAR_COST_AVERAGE, 100, watermark=watermark, config=SMALL)
    assert image.frame_index == 0


def test_render_frame_rejects_bad_input():
    with pytest.raises(IndexError):
        render_frame(make_runs(1), 24, Strategy.LUMP_SUM, 100, config=SMALL)
    with pytest.raises(ValueError):
        render_frame([], 0, Strategy.LUMP_SUM, 100, config=SMALL)
