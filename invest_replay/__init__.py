"""Synthetic investment replay: price generation, accounting, playback and capture.
"""

from .accounting import metrics_at_frame, summarize, FrameMetrics, SummaryMetrics
from .config import Granularity, SimulationConfig, Strategy
from .prices import generate_series, PriceSeries, NumpyRandomSource
from .simulation import run_simulation, SimulationRun
from .playback import PlaybackClock
from .capture import RenderCapturePipeline, CaptureConfig
