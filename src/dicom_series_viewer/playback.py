"""Cine playback and slice navigation."""

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from .constants import DEFAULT_FPS, MAX_FPS, MIN_FPS

logger = logging.getLogger(__name__)


class PlaybackMode(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


IndexCallback = Callable[[int], None]


class PlaybackController:
    """
    Cine loop and manual navigation over a series' slice indices.

    While playing, a timer thread advances the current index every
    ``1 / fps`` seconds and wraps around at the end of the series.
    Manual navigation (next/prev/seek) works in either mode and never
    changes the mode.

    Index changes and their callbacks happen under the controller lock, so
    once stop() or pause() returns no further index change can occur.

    Parameters
    ----------
    slice_count : int
        Number of slices in the series (>= 1)
    fps : int
        Frames per second, clamped to [MIN_FPS, MAX_FPS]
    start_index : int
        Initial slice index
    on_index_changed : callable, optional
        Called with the new index after every change
    """

    def __init__(
        self,
        slice_count: int,
        *,
        fps: int = DEFAULT_FPS,
        start_index: int = 0,
        on_index_changed: Optional[IndexCallback] = None,
    ):
        if slice_count < 1:
            raise ValueError(f"slice_count must be >= 1, got {slice_count}")
        if not 0 <= start_index < slice_count:
            raise ValueError(f"start_index must be in [0, {slice_count - 1}], got {start_index}")

        self.slice_count = slice_count
        self.on_index_changed = on_index_changed

        self._lock = threading.RLock()
        self._mode = PlaybackMode.STOPPED
        self._fps = self._clamp_fps(fps)
        self._index = start_index
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return (
            f"PlaybackController(mode={self._mode.value}, fps={self._fps}, "
            f"index={self._index}/{self.slice_count})"
        )

    @staticmethod
    def _clamp_fps(fps: int) -> int:
        return max(MIN_FPS, min(MAX_FPS, int(fps)))

    @property
    def mode(self) -> PlaybackMode:
        return self._mode

    @property
    def is_playing(self) -> bool:
        return self._mode is PlaybackMode.PLAYING

    @property
    def fps(self) -> int:
        return self._fps

    @property
    def current_index(self) -> int:
        return self._index

    def set_fps(self, fps: int) -> int:
        """Change the playback rate; the next scheduled tick uses it. Returns the clamped value."""
        with self._lock:
            self._fps = self._clamp_fps(fps)
            return self._fps

    def play(self) -> bool:
        """
        Start cine playback.

        Returns:
            True if playback is running after the call. Single-slice series
            never start playing.
        """
        with self._lock:
            if self._mode is PlaybackMode.PLAYING:
                return True
            if self.slice_count <= 1:
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug("Ignoring play(): series has a single slice")
                return False

            self._mode = PlaybackMode.PLAYING
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name="cine-playback",
                daemon=True,
            )
            self._thread.start()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Playback started at {self._fps} fps")
        return True

    def stop(self) -> None:
        """Stop playback. No index change fires after this returns."""
        with self._lock:
            if self._stop_event is not None:
                self._stop_event.set()
                self._stop_event = None
            self._mode = PlaybackMode.STOPPED
            thread = self._thread
            self._thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    pause = stop

    def toggle(self) -> bool:
        """Switch between playing and stopped; returns True if now playing."""
        with self._lock:
            playing = self._mode is PlaybackMode.PLAYING
        if playing:
            self.stop()
            return False
        return self.play()

    def close(self) -> None:
        """Stop playback and drop the index callback."""
        self.stop()
        self.on_index_changed = None

    def next(self) -> int:
        """Move one slice forward, stopping at the last slice."""
        with self._lock:
            return self._set_index(min(self._index + 1, self.slice_count - 1))

    def prev(self) -> int:
        """Move one slice back, stopping at the first slice."""
        with self._lock:
            return self._set_index(max(self._index - 1, 0))

    def seek(self, index: int) -> int:
        """Jump to ``index``; raises ValueError when out of range."""
        if not 0 <= index < self.slice_count:
            raise ValueError(f"Slice index {index} out of range [0, {self.slice_count - 1}]")
        with self._lock:
            return self._set_index(index)

    def step(self) -> int:
        """Advance one slice with wraparound, as a cine tick does."""
        with self._lock:
            return self._set_index((self._index + 1) % self.slice_count)

    def _set_index(self, index: int) -> int:
        if index != self._index:
            self._index = index
            if self.on_index_changed is not None:
                self.on_index_changed(index)
        return self._index

    def _tick(self, stop_event: threading.Event) -> None:
        with self._lock:
            # A stop() that won the lock invalidates this tick
            if stop_event.is_set() or self._mode is not PlaybackMode.PLAYING:
                return
            self.step()

    def _run(self, stop_event: threading.Event) -> None:
        while True:
            with self._lock:
                interval = 1.0 / self._fps
            if stop_event.wait(interval):
                break
            self._tick(stop_event)
