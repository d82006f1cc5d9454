"""
Pause Analyzer - Silence/pause statistics from a live amplitude stream.

Each monitoring tick reads one frame from an AudioFrameSource, computes its
RMS and classifies it as speech or silence. Silences of at least
PAUSE_THRESHOLD_MS count as pauses; shorter ones are dropped.

The capture device is injected (AudioFrameSource) so the analyzer can be
driven by a microphone or by synthetic frames.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Protocol

import numpy as np
from pydantic import BaseModel, Field, model_validator

from .errors import DeviceUnavailable
from .helper.env import env_float, env_int, load_repo_dotenv

load_repo_dotenv()

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------

SILENCE_RMS_THRESHOLD = env_float("PAUSE_SILENCE_RMS_THRESHOLD", 0.02)  # amplitude approx < 2%
PAUSE_THRESHOLD_MS = env_int("PAUSE_THRESHOLD_MS", 500)
TICK_INTERVAL_S = env_float("PAUSE_TICK_INTERVAL_S", 1 / 60)  # ~ one animation frame

SAMPLE_RATE = 16000
FRAME_SAMPLES = 256


# -----------------------------------------------------------------------------
# Types
# -----------------------------------------------------------------------------

class PauseStats(BaseModel):
    pause_count: int = Field(default=0, ge=0)
    total_pause_duration_ms: int = Field(default=0, ge=0)
    longest_pause_ms: int = Field(default=0, ge=0)
    avg_pause_duration_ms: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_invariants(self) -> "PauseStats":
        if self.avg_pause_duration_ms != average_ms(self.total_pause_duration_ms, self.pause_count):
            raise ValueError("avg_pause_duration_ms must equal total / count (0 when no pauses)")
        if self.longest_pause_ms > self.total_pause_duration_ms:
            raise ValueError("longest_pause_ms cannot exceed total_pause_duration_ms")
        return self

    @classmethod
    def from_totals(cls, count: int, total_ms: int, longest_ms: int) -> "PauseStats":
        return cls(
            pause_count=count,
            total_pause_duration_ms=total_ms,
            longest_pause_ms=longest_ms,
            avg_pause_duration_ms=average_ms(total_ms, count),
        )


def average_ms(total_ms: int, count: int) -> int:
    """Rounded mean, half up. 0 when count is 0."""
    if count <= 0:
        return 0
    return (total_ms + count // 2) // count


def frame_rms(frame: Any) -> Optional[float]:
    """
    Root-mean-square amplitude of one frame, with samples mapped to [-1, 1].

    uint8 frames are treated as centred on 128 (browser analyser byte data),
    int16 frames are scaled by 32768, float frames are used as-is.
    Returns None for an empty frame.
    """
    arr = np.asarray(frame)
    if arr.size == 0:
        return None

    if arr.dtype == np.uint8:
        samples = (arr.astype(np.float64) - 128.0) / 128.0
    elif arr.dtype == np.int16:
        samples = arr.astype(np.float64) / 32768.0
    else:
        samples = arr.astype(np.float64)

    return float(np.sqrt(np.mean(samples * samples)))


# -----------------------------------------------------------------------------
# Frame sources
# -----------------------------------------------------------------------------

class AudioFrameSource(Protocol):
    """Capability the analyzer reads frames from."""

    def open(self) -> Any:
        """Acquire the device. Returns a stream handle. Raises on failure."""
        ...

    def read_frame(self) -> Any:
        """Return the current frame buffer (array-like of samples)."""
        ...

    def close(self) -> None:
        """Release the device. Must be safe to call more than once."""
        ...


class SyntheticFrameSource:
    """
    Replays prepared frames, one per read. The last frame repeats once the
    list is exhausted, like a held analyser buffer.
    """

    def __init__(self, frames: Iterable[Any]):
        self._frames: List[Any] = list(frames)
        self._idx = 0
        self.opened = False
        self.closed = False

    def open(self) -> "SyntheticFrameSource":
        self.opened = True
        self.closed = False
        self._idx = 0
        return self

    def read_frame(self) -> Any:
        if not self._frames:
            return np.zeros(0, dtype=np.float32)
        frame = self._frames[min(self._idx, len(self._frames) - 1)]
        self._idx += 1
        return frame

    def close(self) -> None:
        self.closed = True


class MicrophoneFrameSource:
    """
    Default input device via PyAudio, 16 kHz mono int16.

    Note:
        Requires pyaudio to be installed (pip install 'speaking[audio]').
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE, frame_samples: int = FRAME_SAMPLES):
        self.sample_rate = sample_rate
        self.frame_samples = frame_samples
        self._pa = None
        self._stream = None

    def open(self) -> Any:
        try:
            import pyaudio
        except ImportError:
            raise ImportError("pyaudio not installed. Run 'pip install pyaudio'")

        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.frame_samples,
            )
        except Exception:
            pa.terminate()
            raise

        self._pa = pa
        self._stream = stream
        return stream

    def read_frame(self) -> Any:
        if self._stream is None:
            return np.zeros(0, dtype=np.int16)
        chunk = self._stream.read(self.frame_samples, exception_on_overflow=False)
        return np.frombuffer(chunk, dtype=np.int16)

    def close(self) -> None:
        stream, pa = self._stream, self._pa
        self._stream = None
        self._pa = None
        try:
            if stream is not None:
                stream.stop_stream()
                stream.close()
        finally:
            if pa is not None:
                pa.terminate()


# -----------------------------------------------------------------------------
# Analyzer
# -----------------------------------------------------------------------------

def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class PauseAnalyzer:
    """
    Stateful pause detector for one recording.

    Usage:
        analyzer = PauseAnalyzer(MicrophoneFrameSource())
        analyzer.start()
        ...
        stats = analyzer.stop()

    or as a context manager, which releases the device on every exit path:

        with PauseAnalyzer(source) as analyzer:
            ...
        stats = analyzer.last_stats
    """

    def __init__(
        self,
        source: AudioFrameSource,
        *,
        silence_threshold: float = SILENCE_RMS_THRESHOLD,
        pause_threshold_ms: int = PAUSE_THRESHOLD_MS,
        tick_interval: float = TICK_INTERVAL_S,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            source: Frame source (microphone or synthetic).
            silence_threshold: RMS below this is silence.
            pause_threshold_ms: Minimum silence that counts as a pause.
            tick_interval: Seconds between monitoring ticks in the background loop.
            clock: Millisecond clock; defaults to time.monotonic.
        """
        self.source = source
        self.silence_threshold = silence_threshold
        self.pause_threshold_ms = pause_threshold_ms
        self.tick_interval = tick_interval
        self._clock = clock or _monotonic_ms

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._handle: Any = None

        self.is_recording = False
        self.started_at: Optional[float] = None
        self.last_stats: Optional[PauseStats] = None

        self._pause_count = 0
        self._total_pause_ms = 0
        self._longest_pause_ms = 0
        self._pause_start: Optional[float] = None

    # -- lifecycle -----------------------------------------------------------

    def start(self, monitor: bool = True) -> Any:
        """
        Acquire the device and begin monitoring.

        Args:
            monitor: Run ticks on a background loop. Pass False to drive
                tick() manually (synthetic signals, tests).

        Returns:
            The stream handle from the frame source.

        Raises:
            DeviceUnavailable: the device could not be acquired. No analyzer
                state is changed in that case.
        """
        with self._lock:
            if self.is_recording:
                raise RuntimeError("PauseAnalyzer is already recording")

            try:
                handle = self.source.open()
            except Exception as e:
                raise DeviceUnavailable(f"Could not acquire audio device: {e}") from e

            self._handle = handle
            self._pause_count = 0
            self._total_pause_ms = 0
            self._longest_pause_ms = 0
            self._pause_start = None
            self.last_stats = None
            self.started_at = self._clock()
            self.is_recording = True
            self._stop_event = threading.Event()

        if monitor:
            try:
                self._thread = threading.Thread(
                    target=self._monitor,
                    name="pause-analyzer",
                    daemon=True,
                )
                self._thread.start()
            except Exception:
                self._thread = None
                self.stop()
                raise

        return handle

    def stop(self) -> PauseStats:
        """
        Stop monitoring, release the device and return the final stats.

        A pause still open at this point is closed "now" and committed with the
        same threshold rule. Safe to call from the monitoring loop itself and
        safe to call more than once.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

        with self._lock:
            if self.is_recording:
                self.is_recording = False
                if self._pause_start is not None:
                    self._close_pause(self._clock())
                self._release()
            self.last_stats = self.stats()
            return self.last_stats

    def __enter__(self) -> "PauseAnalyzer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -- sampling ------------------------------------------------------------

    def tick(self) -> None:
        """One monitoring step: read a frame and update pause state."""
        with self._lock:
            if not self.is_recording:
                return

            rms = frame_rms(self.source.read_frame())
            if rms is None or not self.is_recording:
                return

            now = self._clock()
            if rms < self.silence_threshold:
                if self._pause_start is None:
                    self._pause_start = now
            elif self._pause_start is not None:
                self._close_pause(now)

    def stats(self) -> PauseStats:
        with self._lock:
            return PauseStats.from_totals(
                self._pause_count,
                self._total_pause_ms,
                self._longest_pause_ms,
            )

    @property
    def in_pause(self) -> bool:
        return self._pause_start is not None

    # -- internals -----------------------------------------------------------

    def _close_pause(self, now: float) -> None:
        start = self._pause_start
        self._pause_start = None
        if start is None:
            return

        elapsed = now - start
        if elapsed >= self.pause_threshold_ms:
            duration = int(round(elapsed))
            self._pause_count += 1
            self._total_pause_ms += duration
            self._longest_pause_ms = max(self._longest_pause_ms, duration)

    def _release(self) -> None:
        self._handle = None
        try:
            self.source.close()
        except Exception as e:
            logger.warning(f"Audio source close failed: {e}")

    def _monitor(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Pause monitoring stopped: {e}", exc_info=True)
                break
            self._stop_event.wait(self.tick_interval)
