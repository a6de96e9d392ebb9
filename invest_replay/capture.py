"""Frame-by-frame capture of a simulation run into a video sink."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import AlreadyCapturing, ConfigurationError
from .io_utils import VideoSink
from .playback import PlaybackClock, PlaybackState
from .plotter import RenderConfig, RenderedImage, render_frame
from .simulation import SimulationRun

logger = logging.getLogger(__name__)


@dataclass
class CaptureConfig:
    """Output settings for captured video.

    ``fps`` is the fixed output frame rate. At speed 1 each series frame is
    held for ``frame_hold`` output slots; ``hold_frames(speed)`` divides that,
    so a faster capture makes a shorter video without ever skipping a series
    frame. Speeds above ``frame_hold`` all collapse to one slot per frame.
    """
    fps: int = 30
    bitrate: int = 5_000_000
    frame_hold: int = 8
    base_interval_ms: float = 50.0
    pace_ms: float = 0.0

    @property
    def max_speed(self) -> float:
        return float(self.frame_hold)

    def hold_frames(self, speed_multiplier: float) -> int:
        if not speed_multiplier > 0:
            raise ConfigurationError(f"speed multiplier must be positive, got {speed_multiplier}")
        if speed_multiplier > self.max_speed:
            logger.warning(
                "Speed %gx exceeds %gx; the video will play at %gx",
                speed_multiplier,
                self.max_speed,
                self.max_speed,
            )
        return max(1, round(self.frame_hold / speed_multiplier))


class CaptureSession:
    """Lazy, finite iterator over the rendered frames of one capture.

    The session watches the clock: once the clock leaves ``CAPTURING`` for
    any reason other than reaching the last frame, the session ends as
    cancelled and the pipeline is free for a new capture.
    """

    def __init__(self, pipeline: "RenderCapturePipeline", speed_multiplier: float, hold_frames: int):
        self._pipeline = pipeline
        self.speed_multiplier = speed_multiplier
        self.hold_frames = hold_frames
        self.frames_emitted = 0
        self.completed = False
        self.cancelled = False
        self._started = False
        self._completing = False
        pipeline.clock.add_listener(self._on_clock)

    @property
    def active(self) -> bool:
        return not (self.completed or self.cancelled)

    def __iter__(self) -> "CaptureSession":
        return self

    def __next__(self) -> RenderedImage:
        if not self.active:
            raise StopIteration
        clock = self._pipeline.clock
        if self._started:
            self._completing = clock.state.frame_index >= clock.last_frame
            if not clock.advance_capture():
                self._finish(completed=True)
                raise StopIteration
        self._started = True
        try:
            image = self._pipeline.render(clock.state.frame_index)
        except Exception:
            self.cancel()
            raise
        self.frames_emitted += 1
        return image

    def _on_clock(self, state: PlaybackState) -> None:
        if self.active and not state.is_capturing and not self._completing:
            # reset or cancelled from outside the session
            self._finish(cancelled=True)

    def cancel(self) -> None:
        if not self.active:
            return
        self._finish(cancelled=True)
        self._pipeline.clock.cancel_capture()

    def _finish(self, completed: bool = False, cancelled: bool = False) -> None:
        self.completed = completed
        self.cancelled = cancelled
        self._pipeline.clock.remove_listener(self._on_clock)
        self._pipeline._release(self)
        logger.info(
            "Capture %s after %d frames",
            "completed" if completed else "cancelled",
            self.frames_emitted,
        )

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()


class RenderCapturePipeline:
    """Renders frames of a :class:`SimulationRun` and captures them in order.

    At most one capture runs per pipeline; playback ticking on the shared
    clock is suspended while it does.
    """

    def __init__(
        self,
        run: SimulationRun,
        clock: Optional[PlaybackClock] = None,
        watermark: Optional[np.ndarray] = None,
        render_config: Optional[RenderConfig] = None,
        capture_config: Optional[CaptureConfig] = None,
    ):
        self.run = run
        self.capture_config = capture_config or CaptureConfig()
        self.render_config = render_config or RenderConfig()
        self.clock = clock or PlaybackClock(run.frame_count, base_interval_ms=self.capture_config.base_interval_ms)
        self.watermark = watermark
        self._session: Optional[CaptureSession] = None

    @property
    def is_capturing(self) -> bool:
        return self._session is not None

    def render(self, frame_index: Optional[int] = None) -> RenderedImage:
        cfg = self.run.config
        frame = self.clock.state.frame_index if frame_index is None else frame_index
        return render_frame(
            self.run.runs,
            frame,
            cfg.strategy,
            cfg.amount,
            watermark=self.watermark,
            config=self.render_config,
            lump_sum_matches_dca=cfg.lump_sum_matches_dca,
        )

    def capture(self, speed_multiplier: float = 1.0) -> CaptureSession:
        if self._session is not None:
            raise AlreadyCapturing("this pipeline is already capturing")
        hold = self.capture_config.hold_frames(speed_multiplier)
        self.clock.start_capture()
        self._session = CaptureSession(self, speed_multiplier, hold)
        logger.info(
            "Capturing %d frames at %d fps, %d slot(s) per frame",
            self.run.frame_count,
            self.capture_config.fps,
            hold,
        )
        return self._session

    def cancel_capture(self) -> None:
        if self._session is not None:
            self._session.cancel()

    def _release(self, session: CaptureSession) -> None:
        if self._session is session:
            self._session = None

    async def record(self, sink: VideoSink, speed_multiplier: float = 1.0) -> CaptureSession:
        """Capture every frame into ``sink``, yielding to the loop in between.

        A cancelled capture aborts the sink so no partial file is kept.
        """
        session = self.capture(speed_multiplier)
        cfg = self.capture_config
        opened = False
        try:
            for image in session:
                if not opened:
                    sink.open(image.width, image.height, cfg.fps, cfg.bitrate)
                    opened = True
                sink.write(image, repeat=session.hold_frames)
                await asyncio.sleep(cfg.pace_ms / 1000.0)
        except BaseException:
            session.cancel()
            if opened:
                sink.abort()
            raise
        if session.cancelled:
            if opened:
                sink.abort()
        elif opened:
            sink.close()
        return session
