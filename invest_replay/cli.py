"""Command line interface."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import matplotlib.image as mpimg
import typer

from .capture import CaptureConfig, RenderCapturePipeline
from .config import Granularity, SimulationConfig, Strategy
from .errors import InvestReplayError
from .io_utils import export_metrics_csv, load_watermark, sink_for
from .plotter import RenderConfig
from .simulation import SimulationRun, run_simulation

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output")) -> None:
    """Replay hypothetical investments and export them as video."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s  %(name)s  %(message)s",
    )


def _simulate(
    tickers: List[str],
    start: datetime,
    end: datetime,
    granularity: Granularity,
    strategy: Strategy,
    amount: float,
    seed: Optional[int],
    lump_sum_matches_dca: bool,
) -> SimulationRun:
    cfg = SimulationConfig(
        tickers=tuple(t.upper() for t in tickers),
        start=start.date(),
        end=end.date(),
        granularity=granularity,
        strategy=strategy,
        amount=amount,
        seed=seed,
        lump_sum_matches_dca=lump_sum_matches_dca,
    )
    try:
        return run_simulation(cfg)
    except InvestReplayError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


@app.command()
def simulate(
    tickers: List[str] = typer.Argument(..., help="One to three ticker symbols"),
    start: datetime = typer.Option(..., formats=["%Y-%m-%d"]),
    end: datetime = typer.Option(..., formats=["%Y-%m-%d"]),
    granularity: Granularity = Granularity.MONTHLY,
    strategy: Strategy = Strategy.DOLLAR_COST_AVERAGE,
    amount: float = 100.0,
    seed: Optional[int] = None,
    lump_sum_matches_dca: bool = False,
    csv_out: Optional[Path] = typer.Option(None, help="Write per-frame metrics to CSV"),
) -> None:
    """Print summary metrics for each ticker."""
    run = _simulate(tickers, start, end, granularity, strategy, amount, seed, lump_sum_matches_dca)
    for r in run:
        s = r.summary
        typer.echo(
            f"{r.ticker}: invested ${s.total_invested:,.2f} -> ${s.final_value:,.2f} "
            f"({s.total_return_pct:+.1f}%), CAGR {s.cagr_pct:.1f}% over {s.years:.1f}y, "
            f"max drawdown {s.max_drawdown_pct:.1f}%"
        )
    if csv_out:
        export_metrics_csv(run, csv_out)
        typer.echo(f"Saved {csv_out}")


@app.command()
def frame(
    tickers: List[str] = typer.Argument(..., help="One to three ticker symbols"),
    start: datetime = typer.Option(..., formats=["%Y-%m-%d"]),
    end: datetime = typer.Option(..., formats=["%Y-%m-%d"]),
    index: int = typer.Option(-1, help="Frame to render; negative counts from the end"),
    granularity: Granularity = Granularity.MONTHLY,
    strategy: Strategy = Strategy.DOLLAR_COST_AVERAGE,
    amount: float = 100.0,
    seed: Optional[int] = None,
    lump_sum_matches_dca: bool = False,
    watermark: Optional[Path] = None,
    out: Path = Path("frame.png"),
) -> None:
    """Render a single frame to PNG."""
    run = _simulate(tickers, start, end, granularity, strategy, amount, seed, lump_sum_matches_dca)
    pipeline = RenderCapturePipeline(run, watermark=load_watermark(watermark))
    frame_index = index if index >= 0 else run.frame_count + index
    if not 0 <= frame_index < run.frame_count:
        typer.echo(f"Error: frame {index} outside 0..{run.last_frame}", err=True)
        raise typer.Exit(code=1)
    image = pipeline.render(frame_index)
    mpimg.imsave(out, image.pixels)
    typer.echo(f"Saved {out}")


@app.command()
def export(
    tickers: List[str] = typer.Argument(..., help="One to three ticker symbols"),
    start: datetime = typer.Option(..., formats=["%Y-%m-%d"]),
    end: datetime = typer.Option(..., formats=["%Y-%m-%d"]),
    granularity: Granularity = Granularity.MONTHLY,
    strategy: Strategy = Strategy.DOLLAR_COST_AVERAGE,
    amount: float = 100.0,
    seed: Optional[int] = None,
    lump_sum_matches_dca: bool = False,
    speed: float = typer.Option(1.0, help="Capture speed, 0.5 to 8; faster makes a shorter video"),
    fps: int = 30,
    width: int = 1280,
    height: int = 720,
    watermark: Optional[Path] = None,
    out: Path = typer.Option(Path("replay.mp4"), help=".mp4/.webm for video, anything else is a PNG directory"),
) -> None:
    """Capture every frame and encode the replay."""
    run = _simulate(tickers, start, end, granularity, strategy, amount, seed, lump_sum_matches_dca)
    pipeline = RenderCapturePipeline(
        run,
        watermark=load_watermark(watermark),
        render_config=RenderConfig(width=width, height=height),
        capture_config=CaptureConfig(fps=fps),
    )
    try:
        session = asyncio.run(pipeline.record(sink_for(out), speed_multiplier=speed))
    except (InvestReplayError, RuntimeError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Saved {out} ({session.frames_emitted} frames)")


if __name__ == "__main__":
    app()
