"""Frame clock driving animation playback and capture.

The clock owns the current frame index. While playing it re-arms a timed
callback on a cooperative scheduler (the running asyncio loop unless one is
injected); while capturing it does not tick at all and the frame only moves
when the capture loop asks for the next one.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

from .errors import AlreadyCapturing, ConfigurationError, InvalidTransition

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 50.0


class Mode(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"
    CAPTURING = "capturing"


@dataclass(frozen=True)
class PlaybackState:
    frame_index: int
    mode: Mode
    speed_multiplier: float

    @property
    def is_playing(self) -> bool:
        return self.mode is Mode.PLAYING

    @property
    def is_capturing(self) -> bool:
        return self.mode is Mode.CAPTURING


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


Listener = Callable[[PlaybackState], None]


class PlaybackClock:
    """State machine over ``STOPPED``, ``PLAYING``, ``PAUSED`` and ``CAPTURING``.

    Parameters
    ----------
    frame_count : int
        Number of frames in the series being played.
    base_interval_ms : float
        Tick interval at ``speed_multiplier == 1``.
    speed_multiplier : float
        Playback speed; the tick interval is ``base_interval_ms / speed``.
    scheduler : Scheduler, optional
        Object with ``call_later(delay_seconds, callback, *args)``. Defaults to
        the running asyncio event loop, looked up when a tick is scheduled.
    """

    def __init__(
        self,
        frame_count: int,
        base_interval_ms: float = DEFAULT_INTERVAL_MS,
        speed_multiplier: float = 1.0,
        scheduler: Optional[Scheduler] = None,
    ):
        if frame_count < 1:
            raise ConfigurationError(f"frame_count must be at least 1, got {frame_count}")
        if base_interval_ms <= 0:
            raise ConfigurationError(f"base_interval_ms must be positive, got {base_interval_ms}")
        self.frame_count = frame_count
        self.base_interval_ms = base_interval_ms
        self._speed = 1.0
        self.set_speed(speed_multiplier)
        self._scheduler = scheduler
        self._frame = 0
        self._mode = Mode.STOPPED
        self._resume_mode = Mode.PAUSED
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._listeners: List[Listener] = []
        self._capture_listeners: List[Listener] = []

    # -- observation -------------------------------------------------------
    @property
    def last_frame(self) -> int:
        return self.frame_count - 1

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(self._frame, self._mode, self._speed)

    @property
    def interval_seconds(self) -> float:
        return self.base_interval_ms / self._speed / 1000.0

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def on_capture_complete(self, listener: Listener) -> None:
        self._capture_listeners.append(listener)

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    # -- timer plumbing ----------------------------------------------------
    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _resolve_scheduler(self) -> Scheduler:
        # raises RuntimeError when no scheduler was injected and no loop runs
        return self._scheduler or asyncio.get_running_loop()

    def _schedule(self) -> None:
        scheduler = self._resolve_scheduler()
        self._cancel_pending()
        self._handle = scheduler.call_later(self.interval_seconds, self._on_timer, self._generation)

    def _on_timer(self, generation: int) -> None:
        if generation != self._generation or self._mode is not Mode.PLAYING:
            # stale callback from before a reset/pause/capture
            return
        self._handle = None
        self.tick()

    # -- transitions -------------------------------------------------------
    def set_speed(self, multiplier: float) -> None:
        if not multiplier > 0:
            raise ConfigurationError(f"speed multiplier must be positive, got {multiplier}")
        self._speed = float(multiplier)

    def reset(self) -> None:
        if self._mode is Mode.CAPTURING:
            logger.info("Capture cancelled by reset at frame %d", self._frame)
        self._cancel_pending()
        self._frame = 0
        self._mode = Mode.STOPPED
        self._notify()

    def seek(self, frame: int) -> None:
        if self._mode is Mode.CAPTURING:
            raise InvalidTransition("cannot seek while capturing")
        self._frame = max(0, min(int(frame), self.last_frame))
        if self._mode is Mode.STOPPED and self._frame > 0:
            self._mode = Mode.PAUSED
        elif self._mode is Mode.PLAYING and self._frame >= self.last_frame:
            self._cancel_pending()
            self._mode = Mode.PAUSED
        self._notify()

    def play(self) -> None:
        if self._mode is Mode.CAPTURING:
            raise InvalidTransition("cannot play while capturing")
        if self._mode is Mode.PLAYING:
            return
        if self._frame >= self.last_frame:
            self._frame = self.last_frame
            self._mode = Mode.PAUSED
        else:
            self._resolve_scheduler()
            self._mode = Mode.PLAYING
            self._schedule()
        self._notify()

    def pause(self) -> None:
        if self._mode is not Mode.PLAYING:
            return
        self._cancel_pending()
        self._mode = Mode.PAUSED
        self._notify()

    def tick(self) -> None:
        """Advance one frame while playing and re-arm the timer."""
        if self._mode is not Mode.PLAYING:
            return
        self._frame = min(self._frame + 1, self.last_frame)
        if self._frame >= self.last_frame:
            self._cancel_pending()
            self._mode = Mode.PAUSED
        else:
            self._schedule()
        self._notify()

    def start_capture(self) -> None:
        if self._mode is Mode.CAPTURING:
            raise AlreadyCapturing("a capture is already in progress")
        self._cancel_pending()
        self._resume_mode = Mode.PLAYING if self._mode is Mode.PLAYING else Mode.PAUSED
        self._mode = Mode.CAPTURING
        self._frame = 0
        logger.debug("Capture started, will resume as %s", self._resume_mode.value)
        self._notify()

    def advance_capture(self) -> bool:
        """Move the capture to its next frame.

        Returns ``False`` once the last frame has already been emitted, in
        which case the capture is complete and the clock has left
        ``CAPTURING``.
        """
        if self._mode is not Mode.CAPTURING:
            raise InvalidTransition("no capture in progress")
        if self._frame >= self.last_frame:
            self._complete_capture()
            return False
        self._frame += 1
        self._notify()
        return True

    def _complete_capture(self) -> None:
        self._mode = Mode.PAUSED
        if self._resume_mode is Mode.PLAYING:
            # at the last frame play() settles straight into PAUSED
            self.play()
        else:
            self._notify()
        snapshot = self.state
        for listener in list(self._capture_listeners):
            listener(snapshot)

    def cancel_capture(self) -> None:
        if self._mode is not Mode.CAPTURING:
            return
        self._cancel_pending()
        self._mode = Mode.PAUSED
        logger.info("Capture cancelled at frame %d", self._frame)
        self._notify()
