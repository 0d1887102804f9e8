"""High-level API for dicom-series-viewer."""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from .constants import DEFAULT_FETCH_TIMEOUT, DEFAULT_FPS, DEFAULT_MAX_WORKERS
from .contrast import WindowLevel
from .errors import LoadCancelled, RenderError, SeriesLoadError
from .image_utils import transform
from .playback import PlaybackController
from .series import LoadProgress, Series, SeriesManager
from .viewport import ViewportController, ViewportState

logger = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Frame:
    """A rendered slice plus the viewport transform the host should apply."""

    raster: np.ndarray
    slice_index: int
    zoom: float
    pan_x: float
    pan_y: float
    source_name: str = ""


class SeriesViewer:
    """
    One viewer pane: loads a series in the background and renders its slices.

    Every call to open() starts a new generation. Results, progress events
    and frames that belong to an older generation are dropped, so a slow
    load can never overwrite the series that replaced it. close() cancels
    the in-flight load and stops playback; no callbacks fire for the closed
    series afterwards.

    Parameters
    ----------
    fetch : callable, optional
        ``fetch(SliceSource) -> bytes`` passed to each SeriesManager
    max_workers : int
        Concurrent fetch/decode tasks per series
    fetch_timeout : float
        Seconds allowed per slice fetch
    fps : int
        Initial cine rate
    on_progress : callable, optional
        Receives LoadProgress events for the current series
    on_frame : callable, optional
        Receives a Frame after every slice, window, zoom or pan change
    on_status : callable, optional
        Receives the new LoadStatus whenever it changes
    """

    def __init__(
        self,
        *,
        fetch=None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        fps: int = DEFAULT_FPS,
        on_progress: Optional[Callable[[LoadProgress], None]] = None,
        on_frame: Optional[Callable[[Frame], None]] = None,
        on_status: Optional[Callable[[LoadStatus], None]] = None,
    ):
        self.fetch = fetch
        self.max_workers = max_workers
        self.fetch_timeout = fetch_timeout
        self.fps = fps
        self.on_progress = on_progress
        self.on_frame = on_frame
        self.on_status = on_status

        self._lock = threading.RLock()
        self._generation = 0
        self._manager: Optional[SeriesManager] = None
        self._settled: Optional[threading.Event] = None

        self.status = LoadStatus.IDLE
        self.error: Optional[str] = None
        self.progress: Optional[LoadProgress] = None
        self.series: Optional[Series] = None
        self.viewport: Optional[ViewportController] = None
        self.playback: Optional[PlaybackController] = None

    def __enter__(self) -> "SeriesViewer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SeriesViewer(status={self.status.value}, generation={self._generation}, series={self.series!r})"

    @property
    def generation(self) -> int:
        return self._generation

    # Lifecycle

    def open(
        self,
        sources: Sequence,
        *,
        modality: Optional[str] = None,
        description: str = "",
    ) -> Future:
        """
        Start loading a new series, replacing whatever is open.

        Returns
        -------
        Future
            Resolves to the Series (or raises SeriesLoadError / LoadCancelled)
        """
        with self._lock:
            old_manager, old_playback = self._detach()
            self._generation += 1
            generation = self._generation
            manager = SeriesManager(
                sources,
                modality=modality,
                description=description,
                fetch=self.fetch,
                max_workers=self.max_workers,
                fetch_timeout=self.fetch_timeout,
                on_progress=lambda progress: self._handle_progress(generation, progress),
                generation=generation,
            )
            self._manager = manager
            settled = threading.Event()
            self._settled = settled
            self._set_status(LoadStatus.LOADING)

        # Released outside our lock; their callbacks take our lock
        self._release(old_manager, old_playback)

        future = manager.load_async()
        future.add_done_callback(lambda f: self._handle_result(generation, settled, f))
        return future

    def wait(self, timeout: Optional[float] = None) -> LoadStatus:
        """Block until the current load finishes (or timeout) and return the status."""
        settled = self._settled
        if settled is not None:
            settled.wait(timeout)
        with self._lock:
            return self.status

    def close(self) -> None:
        """Cancel in-flight work, stop playback and drop the open series."""
        with self._lock:
            manager, playback = self._detach()
            self._generation += 1
            if self.status is LoadStatus.LOADING:
                self._set_status(LoadStatus.CANCELLED)
            if self._settled is not None:
                self._settled.set()
        self._release(manager, playback)

    def _detach(self):
        manager, playback = self._manager, self.playback
        self._manager = None
        self.playback = None
        self.viewport = None
        self.series = None
        self.progress = None
        self.error = None
        return manager, playback

    @staticmethod
    def _release(manager: Optional[SeriesManager], playback: Optional[PlaybackController]) -> None:
        if playback is not None:
            playback.close()
        if manager is not None:
            manager.dispose()

    # Background callbacks

    def _handle_progress(self, generation: int, progress: LoadProgress) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self.progress = progress
            if self.on_progress is not None:
                self.on_progress(progress)

    def _handle_result(self, generation: int, settled: threading.Event, future: Future) -> None:
        try:
            self._apply_result(generation, future)
        finally:
            settled.set()

    def _apply_result(self, generation: int, future: Future) -> None:
        with self._lock:
            if generation != self._generation:
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(f"Discarding result of stale generation {generation}")
                return

            error = future.exception()
            if isinstance(error, LoadCancelled):
                self._set_status(LoadStatus.CANCELLED)
                return
            if isinstance(error, SeriesLoadError):
                self.error = str(error)
                logger.error(f"Series failed to load: {error}")
                self._set_status(LoadStatus.FAILED)
                return
            if error is not None:
                self.error = str(error)
                logger.error(f"Unexpected error loading series: {error!r}")
                self._set_status(LoadStatus.FAILED)
                return

            series = future.result()
            self._install(generation, series)

    def _install(self, generation: int, series: Series) -> None:
        self.series = series
        self.viewport = ViewportController(series.default_window, ViewportState())
        self.playback = PlaybackController(
            len(series),
            fps=self.fps,
            on_index_changed=lambda index: self._handle_index(generation, index),
        )
        self._set_status(LoadStatus.DEGRADED if series.is_degraded else LoadStatus.READY)
        try:
            self._emit_frame()
        except RenderError as e:
            # Runs on the loader thread, so surface it through the status
            logger.exception(f"Failed to render first slice: {e}")
            self.error = str(e)
            self._set_status(LoadStatus.FAILED)

    def _handle_index(self, generation: int, index: int) -> None:
        with self._lock:
            if generation != self._generation or self.viewport is None:
                return
            self.viewport.state.current_slice_index = index
            self._emit_frame()

    def _set_status(self, status: LoadStatus) -> None:
        self.status = status
        if self.on_status is not None:
            self.on_status(status)

    # Rendering

    def render(self) -> Frame:
        """
        Render the current slice under the current viewport.

        Raises
        ------
        RuntimeError
            If no series is loaded
        RenderError
            If the transform pipeline produces an inconsistent raster
        """
        with self._lock:
            if self.series is None or self.viewport is None:
                raise RuntimeError("No series is loaded")
            state = self.viewport.state
            image = self.series[state.current_slice_index]
            raster = transform(image, state.window_center, state.window_width)
            return Frame(
                raster=raster,
                slice_index=state.current_slice_index,
                zoom=state.zoom,
                pan_x=state.pan_x,
                pan_y=state.pan_y,
                source_name=image.source_name,
            )

    def _emit_frame(self) -> None:
        if self.on_frame is None or self.series is None:
            return
        self.on_frame(self.render())

    def refresh(self) -> None:
        """Re-render after the host changed viewport state directly."""
        with self._lock:
            self._emit_frame()

    # Interaction shortcuts that re-render

    def set_window(self, center: float, width: float) -> WindowLevel:
        with self._lock:
            window = self._require_viewport().set_window(center, width)
            self._emit_frame()
            return window

    def apply_preset(self, name: str) -> WindowLevel:
        with self._lock:
            window = self._require_viewport().apply_preset(name)
            self._emit_frame()
            return window

    def zoom_in(self) -> float:
        with self._lock:
            zoom = self._require_viewport().zoom_in()
            self._emit_frame()
            return zoom

    def zoom_out(self) -> float:
        with self._lock:
            zoom = self._require_viewport().zoom_out()
            self._emit_frame()
            return zoom

    def reset_view(self) -> None:
        with self._lock:
            self._require_viewport().reset()
            self._emit_frame()

    def _require_viewport(self) -> ViewportController:
        if self.viewport is None:
            raise RuntimeError("No series is loaded")
        return self.viewport

    # Status text

    def progress_text(self) -> str:
        """Short human-readable load status, e.g. 'loaded 3 of 4 (1 failed)'."""
        with self._lock:
            if self.status is LoadStatus.FAILED:
                return f"failed: {self.error}"
            if self.status is LoadStatus.LOADING:
                if self.progress is None:
                    return "loading"
                return f"loading {self.progress.current_index} of {self.progress.total}"
            if self.series is not None:
                text = f"loaded {len(self.series)} of {self.series.requested_count}"
                if self.series.is_degraded:
                    text += f" ({len(self.series.failures)} failed)"
                return text
            return self.status.value
