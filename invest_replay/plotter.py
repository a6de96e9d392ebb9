"""Matplotlib frame rendering."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.ticker import FuncFormatter

from .accounting import portfolio_path
from .config import Strategy
from .simulation import TickerRun

SERIES_COLORS = ("#00C853", "#7C3AED", "#F59E0B")


@dataclass
class RenderConfig:
    width: int = 1280
    height: int = 720
    dpi: int = 100
    colors: Tuple[str, ...] = SERIES_COLORS
    background: str = "#F0FDF4"
    grid_color: str = "#E0E7E9"
    text_color: str = "#64748B"
    contribution_color: str = "#94A3B8"
    loss_color: str = "#EF4444"
    headroom: float = 1.15
    watermark_alpha: float = 0.08
    max_year_labels: int = 6


@dataclass(frozen=True)
class RenderedImage:
    frame_index: int
    width: int
    height: int
    pixels: np.ndarray  # (height, width, 4) uint8 RGBA


def _kilo(value: float, decimals: int = 1) -> str:
    return f"${value / 1000:.{decimals}f}K"


def _year_ticks(dates: pd.DatetimeIndex, max_labels: int) -> Tuple[List[int], List[str]]:
    n = len(dates)
    count = max(1, min(max_labels, n))
    positions = sorted({int(round(p)) for p in np.linspace(0, n - 1, count)})
    return positions, [str(dates[p].year) for p in positions]


def render_frame(
    runs: Sequence[TickerRun],
    frame_index: int,
    strategy: Strategy,
    amount: float,
    watermark: Optional[np.ndarray] = None,
    config: Optional[RenderConfig] = None,
    lump_sum_matches_dca: bool = False,
) -> RenderedImage:
    """Draw the portfolio lines of every run up to ``frame_index``.

    Output depends only on the arguments; ``watermark`` is an optional image
    array drawn faintly behind the chart.
    """
    cfg = config or RenderConfig()
    if not runs:
        raise ValueError("nothing to render: no runs given")
    paths = [portfolio_path(r.series, strategy, amount, lump_sum_matches_dca) for r in runs]
    n = min(len(p) for p in paths)
    if not 0 <= frame_index < n:
        raise IndexError(f"frame {frame_index} outside 0..{n - 1}")

    fig = Figure(figsize=(cfg.width / cfg.dpi, cfg.height / cfg.dpi), dpi=cfg.dpi, facecolor=cfg.background)
    canvas = FigureCanvasAgg(fig)
    ax = fig.add_axes([0.08, 0.12, 0.86, 0.72])
    ax.set_zorder(1)
    ax.patch.set_alpha(0.0)

    if watermark is not None:
        wm_ax = fig.add_axes([0.4, 0.35, 0.2, 0.3])
        wm_ax.set_zorder(0)
        wm_ax.imshow(watermark, alpha=cfg.watermark_alpha)
        wm_ax.axis("off")

    window = [p.iloc[: frame_index + 1] for p in paths]
    top = max(max(w["Value"].iloc[-1], w["Invested"].iloc[-1]) for w in window) if frame_index > 0 else 0.0
    ymax = top * cfg.headroom if top > 0 else 1.0

    ax.set_xlim(0, max(n - 1, 1))
    ax.set_ylim(0, ymax)
    ax.set_yticks(np.linspace(0, ymax, 6))
    ax.yaxis.set_major_formatter(FuncFormatter(lambda v, _: _kilo(v)))
    ax.grid(axis="y", color=cfg.grid_color, linewidth=1)
    positions, labels = _year_ticks(paths[0].index[:n], cfg.max_year_labels)
    ax.set_xticks(positions)
    ax.set_xticklabels(labels)
    ax.tick_params(colors=cfg.text_color, labelsize=12)
    for spine in ax.spines.values():
        spine.set_visible(False)

    x = np.arange(frame_index + 1)
    if frame_index > 0:
        invested = window[0]["Invested"].to_numpy()
        ax.plot(x, invested, color=cfg.contribution_color, linewidth=2, linestyle=(0, (5, 5)))
        ax.annotate(
            f"Contributed\n{_kilo(invested[-1], 2)}",
            xy=(frame_index, invested[-1]),
            xytext=(-10, 8),
            textcoords="offset points",
            ha="right",
            color=cfg.text_color,
            fontsize=10,
        )

    for idx, (run, w) in enumerate(zip(runs, window)):
        color = cfg.colors[idx % len(cfg.colors)]
        ax.plot(x, w["Value"].to_numpy(), color=color, linewidth=3, label=run.ticker)

    if frame_index > 0:
        for idx, (run, w) in enumerate(zip(runs, window)):
            fig.text(
                0.93,
                0.84 - idx * 0.1,
                f"{run.ticker}\n{_kilo(w['Value'].iloc[-1], 2)}",
                ha="right",
                va="top",
                color=cfg.colors[idx % len(cfg.colors)],
                fontsize=14,
                fontweight="bold",
                bbox=dict(facecolor="white", alpha=0.95, edgecolor="none"),
            )

        total_invested = sum(w["Invested"].iloc[-1] for w in window)
        total_value = sum(w["Value"].iloc[-1] for w in window)
        gain = (total_value - total_invested) / total_invested * 100 if total_invested else 0.0
        fig.text(0.08, 0.95, "Total Contributed", color=cfg.text_color, fontsize=12, va="top")
        fig.text(0.08, 0.91, _kilo(total_invested), color=cfg.colors[0], fontsize=22, fontweight="bold", va="top")
        fig.text(
            0.08,
            0.855,
            f"{'+' if gain >= 0 else ''}{gain:.1f}% Growth",
            color=cfg.colors[0] if gain >= 0 else cfg.loss_color,
            fontsize=13,
            fontweight="bold",
            va="top",
        )

    canvas.draw()
    pixels = np.asarray(canvas.buffer_rgba()).copy()
    height, width = pixels.shape[:2]
    return RenderedImage(frame_index=frame_index, width=width, height=height, pixels=pixels)
