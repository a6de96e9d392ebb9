"""Input/Output utilities: watermark loading, frame sinks and CSV export."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Protocol, Union

import matplotlib
import matplotlib.image as mpimg
from matplotlib.animation import FFMpegWriter
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
import numpy as np
import pandas as pd

from .accounting import portfolio_path
from .simulation import SimulationRun

if TYPE_CHECKING:  # pragma: no cover
    from .plotter import RenderedImage

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CODECS = {".mp4": "libx264", ".webm": "libvpx-vp9"}


def load_watermark(path: Optional[PathLike]) -> Optional[np.ndarray]:
    """Read an image to draw behind each frame; ``None`` if it can't be read."""
    if path is None:
        return None
    try:
        return mpimg.imread(str(path))
    except (OSError, ValueError, SyntaxError) as exc:
        logger.warning("Watermark %s could not be loaded, rendering without it: %s", path, exc)
        return None


class VideoSink(Protocol):
    def open(self, width: int, height: int, fps: int, bitrate: int) -> None: ...

    def write(self, image: "RenderedImage", repeat: int = 1) -> None: ...

    def close(self) -> None: ...

    def abort(self) -> None: ...


class PngSequenceSink:
    """Writes every output slot as ``frame_00000.png`` inside ``directory``."""

    def __init__(self, directory: PathLike):
        self.directory = Path(directory)
        self.written: List[Path] = []
        self.fps: Optional[int] = None

    def open(self, width: int, height: int, fps: int, bitrate: int) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.fps = fps
        self.written = []

    def write(self, image: "RenderedImage", repeat: int = 1) -> None:
        for _ in range(repeat):
            path = self.directory / f"frame_{len(self.written):05d}.png"
            mpimg.imsave(path, image.pixels)
            self.written.append(path)

    def close(self) -> None:
        logger.info("Saved %d frames to %s", len(self.written), self.directory)

    def abort(self) -> None:
        for path in self.written:
            path.unlink(missing_ok=True)
        self.written = []


class FFMpegSink:
    """Encodes frames with matplotlib's ``FFMpegWriter``.

    Each image is pasted onto a bare figure of the same pixel size and grabbed
    once per output slot.
    """

    dpi = 100

    def __init__(self, path: PathLike, ffmpeg_path: Optional[str] = None):
        self.path = Path(path)
        self.ffmpeg_path = ffmpeg_path or matplotlib.rcParams["animation.ffmpeg_path"]
        self._writer: Optional[FFMpegWriter] = None
        self._image = None

    def open(self, width: int, height: int, fps: int, bitrate: int) -> None:
        if shutil.which(self.ffmpeg_path) is None:
            raise RuntimeError(
                f"ffmpeg not found ({self.ffmpeg_path!r}). Install it or export a PNG sequence instead."
            )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fig = Figure(figsize=(width / self.dpi, height / self.dpi), dpi=self.dpi)
        FigureCanvasAgg(fig)
        self._image = fig.figimage(np.zeros((height, width, 4), dtype=np.uint8))
        writer = FFMpegWriter(
            fps=fps,
            codec=CODECS.get(self.path.suffix.lower(), "libx264"),
            bitrate=max(1, bitrate // 1000),
            extra_args=["-pix_fmt", "yuv420p"],
        )
        with matplotlib.rc_context({"animation.ffmpeg_path": self.ffmpeg_path}):
            writer.setup(fig, str(self.path), dpi=self.dpi)
        self._writer = writer

    def write(self, image: "RenderedImage", repeat: int = 1) -> None:
        if self._writer is None:
            raise RuntimeError("sink is not open")
        self._image.set_data(image.pixels)
        for _ in range(repeat):
            self._writer.grab_frame()

    def close(self) -> None:
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        writer.finish()
        logger.info("Saved %s", self.path)

    def abort(self) -> None:
        if self._writer is not None:
            writer, self._writer = self._writer, None
            try:
                writer.finish()
            except Exception as exc:
                logger.debug("ffmpeg did not finish cleanly while aborting: %s", exc)
        self.path.unlink(missing_ok=True)


def sink_for(out: PathLike) -> VideoSink:
    """Pick a sink from the output path: video suffixes go to ffmpeg."""
    path = Path(out)
    if path.suffix.lower() in CODECS:
        return FFMpegSink(path)
    return PngSequenceSink(path)


def export_metrics_csv(run: SimulationRun, path: PathLike) -> pd.DataFrame:
    """Write per-frame metrics of every ticker to ``path`` and return them."""
    cfg = run.config
    frames = []
    for ticker_run in run:
        df = portfolio_path(ticker_run.series, cfg.strategy, cfg.amount, cfg.lump_sum_matches_dca)
        df.insert(0, "Ticker", ticker_run.ticker)
        frames.append(df)
    out = pd.concat(frames)
    out.to_csv(path, index_label="Date")
    return out
