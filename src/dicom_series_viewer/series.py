"""Series assembly: fetch and decode an ordered list of slices."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import CancelledError as FuturesCancelledError
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .constants import DEFAULT_FETCH_TIMEOUT, DEFAULT_MAX_WORKERS
from .contrast import ContrastPresets, WindowLevel
from .decoder import DicomDecoder, DicomImage
from .errors import (
    DecodeError,
    FetchError,
    LoadCancelled,
    SeriesLoadError,
    ViewerError,
)
from .retriever import SliceFetcher, SliceSource, as_sources

logger = logging.getLogger(__name__)


class Modality(str, Enum):
    """Image acquisition method of a series."""

    CT = "CT"
    MRI = "MRI"
    XRAY = "X-Ray"
    ULTRASOUND = "Ultrasound"
    OTHER = "Other"


_MODALITY_ALIASES = {
    "CT": Modality.CT,
    "MR": Modality.MRI,
    "MRI": Modality.MRI,
    "CR": Modality.XRAY,
    "DX": Modality.XRAY,
    "DR": Modality.XRAY,
    "RG": Modality.XRAY,
    "XR": Modality.XRAY,
    "X-RAY": Modality.XRAY,
    "XRAY": Modality.XRAY,
    "US": Modality.ULTRASOUND,
    "ULTRASOUND": Modality.ULTRASOUND,
}


def parse_modality(value: Optional[str]) -> Modality:
    """Map a DICOM Modality code or free-text hint onto Modality (OTHER if unknown)."""
    if not value:
        return Modality.OTHER
    if isinstance(value, Modality):
        return value
    return _MODALITY_ALIASES.get(str(value).strip().upper(), Modality.OTHER)


@dataclass(frozen=True)
class LoadProgress:
    """Progress notification emitted after every slice attempt.

    ``current_index`` counts completed attempts (1-based); ``slice_index`` is
    the original position of the slice that just finished.
    """

    current_index: int
    total: int
    current_file_name: str
    slice_index: int
    succeeded: bool


@dataclass(frozen=True)
class SliceFailure:
    """A slice that was skipped, and why."""

    index: int
    name: str
    error: ViewerError


@dataclass(frozen=True, eq=False)
class Series:
    """Decoded slices in submission order, with series-level metadata."""

    slices: Tuple[DicomImage, ...]
    modality: Modality
    description: str
    default_window: WindowLevel
    requested_count: int
    failures: Tuple[SliceFailure, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.slices)

    def __getitem__(self, index: int) -> DicomImage:
        return self.slices[index]

    @property
    def is_degraded(self) -> bool:
        """True when fewer slices loaded than were requested."""
        return len(self.slices) < self.requested_count

    def __repr__(self) -> str:
        return (
            f"Series(modality={self.modality.value!r}, slices={len(self.slices)}/"
            f"{self.requested_count}, description={self.description!r})"
        )


ProgressCallback = Callable[[LoadProgress], None]


class SeriesManager:
    """Fetch and decode one series with bounded concurrency.

    Each instance handles a single submission and can be cancelled or
    disposed independently. A failed slice is recorded and skipped; the
    load only fails when no slice decodes.

    Parameters
    ----------
    sources : sequence
        Slices in display order (SliceSource, ``(name, bytes_or_url)`` pairs,
        or dicts)
    modality : str, optional
        Modality hint used when the first decoded slice carries no Modality tag
    description : str
        Free-text series description
    fetch : callable, optional
        ``fetch(SliceSource) -> bytes``; defaults to a SliceFetcher
    decoder : DicomDecoder, optional
    max_workers : int
        Upper bound on concurrent fetch/decode tasks
    fetch_timeout : float
        Seconds allowed per slice fetch before it counts as a failure
    on_progress : callable, optional
        Receives a LoadProgress after every attempt
    generation : int
        Token identifying which viewer request this manager belongs to
    """

    def __init__(
        self,
        sources: Sequence,
        *,
        modality: Optional[str] = None,
        description: str = "",
        fetch: Optional[Callable[[SliceSource], bytes]] = None,
        decoder: Optional[DicomDecoder] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        on_progress: Optional[ProgressCallback] = None,
        generation: int = 0,
    ):
        self.sources: List[SliceSource] = as_sources(sources)
        self.modality_hint = modality
        self.description = description
        self.fetch = fetch if fetch is not None else SliceFetcher(timeout=fetch_timeout)
        self.decoder = decoder if decoder is not None else DicomDecoder()
        self.max_workers = max(1, max_workers)
        self.fetch_timeout = fetch_timeout
        self.on_progress = on_progress
        self.generation = generation

        self.series: Optional[Series] = None
        self.failures: List[SliceFailure] = []

        self._lock = threading.RLock()
        self._cancelled = threading.Event()
        self._started = False
        self._pools: List[ThreadPoolExecutor] = []

    def __enter__(self) -> "SeriesManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"SeriesManager(slices={len(self.sources)}, generation={self.generation})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop pending work. No progress callback fires after this returns."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            pools = list(self._pools)

        for pool in pools:
            pool.shutdown(wait=False, cancel_futures=True)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Cancelled series load (generation {self.generation})")

    def dispose(self) -> None:
        """Cancel outstanding work and release decoded buffers."""
        self.cancel()
        with self._lock:
            self.series = None
            self.failures = []

    def load_async(self) -> "Future[Series]":
        """Run load() on a background thread and return its Future."""
        future: "Future[Series]" = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.load())
            except Exception as e:
                future.set_exception(e)

        thread = threading.Thread(
            target=run,
            name=f"series-load-{self.generation}",
            daemon=True,
        )
        thread.start()
        return future

    def load(self) -> Series:
        """
        Fetch and decode every slice, then assemble the Series.

        Returns
        -------
        Series
            Successfully decoded slices in submission order

        Raises
        ------
        SeriesLoadError
            If no slice could be decoded
        LoadCancelled
            If cancel() was called before the load finished
        """
        total = len(self.sources)
        workers = max(1, min(total, self.max_workers))

        with self._lock:
            if self._cancelled.is_set():
                raise LoadCancelled("Series load was cancelled before it started")
            if self._started:
                raise RuntimeError("SeriesManager.load() may only be called once")
            self._started = True
            load_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="slice-load")
            self._pools = [load_pool]

        if total == 0:
            self._shutdown_pools()
            raise SeriesLoadError("No slices were submitted")

        logger.info(f"Loading {total} slices with {workers} workers")

        slots: List[Optional[DicomImage]] = [None] * total
        failures: List[SliceFailure] = []
        completed = 0

        try:
            futures = {
                load_pool.submit(self._load_slice, source): index
                for index, source in enumerate(self.sources)
            }

            for future in as_completed(futures):
                if self._cancelled.is_set():
                    break
                index = futures[future]
                source = self.sources[index]
                try:
                    slots[index] = future.result()
                    succeeded = True
                except (DecodeError, FetchError) as e:
                    failures.append(SliceFailure(index=index, name=source.name, error=e))
                    logger.warning(f"Skipping slice {index} ({source.name}): {e}")
                    succeeded = False
                except (LoadCancelled, FuturesCancelledError):
                    break

                completed += 1
                self._emit(LoadProgress(
                    current_index=completed,
                    total=total,
                    current_file_name=source.name,
                    slice_index=index,
                    succeeded=succeeded,
                ))
        except RuntimeError:
            # Pools shut down by cancel() refuse new submissions
            if not self._cancelled.is_set():
                raise
        finally:
            self._shutdown_pools()

        if self._cancelled.is_set():
            raise LoadCancelled(f"Series load cancelled after {completed} of {total} slices")

        failures.sort(key=lambda f: f.index)
        slices = tuple(image for image in slots if image is not None)

        with self._lock:
            self.failures = failures

        if not slices:
            raise SeriesLoadError(f"None of the {total} slices could be decoded", failures)

        first = slices[0]
        series = Series(
            slices=slices,
            modality=parse_modality(first.modality or self.modality_hint),
            description=self.description,
            default_window=ContrastPresets.default_for(first),
            requested_count=total,
            failures=tuple(failures),
        )

        if series.is_degraded:
            logger.warning(f"Loaded {len(slices)} of {total} slices ({len(failures)} failed)")
        else:
            logger.info(f"Loaded {len(slices)} of {total} slices")

        with self._lock:
            if self._cancelled.is_set():
                raise LoadCancelled("Series load cancelled during assembly")
            self.series = series
        return series

    def _load_slice(self, source: SliceSource) -> DicomImage:
        """Fetch (bounded by fetch_timeout) and decode one slice."""
        if self._cancelled.is_set():
            raise LoadCancelled()

        if source.is_inline:
            data = bytes(source.bytes_or_url)
        else:
            fetch_future = self._start_fetch(source)
            try:
                data = fetch_future.result(timeout=self.fetch_timeout)
            except FuturesTimeoutError:
                raise FetchError(f"Timed out after {self.fetch_timeout}s fetching {source.name}")

        if self._cancelled.is_set():
            raise LoadCancelled()

        try:
            return self.decoder.decode(data, source.name)
        except ViewerError:
            raise
        except Exception as e:
            raise DecodeError(f"Unexpected failure decoding {source.name}: {e}") from e

    def _start_fetch(self, source: SliceSource) -> "Future[bytes]":
        """Run one fetch on its own daemon thread; the timeout starts now.

        A fetch that never returns only holds its own thread, so it cannot
        starve the fetches of later slices.
        """
        future: "Future[bytes]" = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._fetch(source))
            except Exception as e:
                future.set_exception(e)

        thread = threading.Thread(
            target=run,
            name=f"slice-fetch-{source.name}",
            daemon=True,
        )
        thread.start()
        return future

    def _fetch(self, source: SliceSource) -> bytes:
        try:
            return self.fetch(source)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"Failed to fetch {source.name}: {e}") from e

    def _emit(self, progress: LoadProgress) -> None:
        with self._lock:
            if self._cancelled.is_set() or self.on_progress is None:
                return
            self.on_progress(progress)

    def _shutdown_pools(self) -> None:
        with self._lock:
            pools = self._pools
            self._pools = []
        for pool in pools:
            pool.shutdown(wait=False, cancel_futures=True)
