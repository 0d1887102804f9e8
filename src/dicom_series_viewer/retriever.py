"""Slice byte retrieval from inline buffers, local files, S3, or HTTP."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import obstore
from obstore.store import from_url

from .constants import DEFAULT_FETCH_TIMEOUT
from .errors import FetchError

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("s3://", "http://", "https://")


@dataclass(frozen=True)
class SliceSource:
    """One entry of a series submission: a slice name plus its bytes or location."""

    name: str
    bytes_or_url: Union[bytes, bytearray, memoryview, str, Path]

    @property
    def is_inline(self) -> bool:
        return isinstance(self.bytes_or_url, (bytes, bytearray, memoryview))

    def __repr__(self) -> str:
        if self.is_inline:
            return f"SliceSource(name={self.name!r}, bytes={len(self.bytes_or_url)})"
        return f"SliceSource(name={self.name!r}, url={str(self.bytes_or_url)!r})"


def _split_location(location: str) -> Tuple[str, str]:
    """Split a URL or local path into (store root URL, object path)."""
    if location.startswith(_REMOTE_SCHEMES) or location.startswith("file://"):
        root, _, key = location.rpartition("/")
        if not key:
            raise FetchError(f"No object name in location: {location}")
        return root, key

    # Local filesystem - add file:// prefix
    path = Path(location).expanduser().resolve()
    return f"file://{path.parent}", path.name


class SliceFetcher:
    """Resolve SliceSource entries to raw bytes.

    Object stores are created lazily, one per root, and shared across
    threads.
    """

    def __init__(self, timeout: float = DEFAULT_FETCH_TIMEOUT):
        """
        Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds for remote stores
        """
        self.timeout = timeout
        self._stores: Dict[str, object] = {}
        self._lock = threading.Lock()

    def _init_store(self, root: str):
        """Initialize the appropriate object store based on root URL."""
        client_options = {"timeout": f"{max(1, int(self.timeout))}s"}

        # For S3, use anonymous access (skip signature)
        if root.startswith("s3://"):
            from obstore.store import S3Store
            return S3Store.from_url(
                root,
                config={"aws_skip_signature": "true"},
                client_options=client_options,
            )
        if root.startswith(("http://", "https://")):
            return from_url(root, client_options=client_options)
        return from_url(root)

    def _get_store(self, root: str):
        with self._lock:
            store = self._stores.get(root)
            if store is None:
                store = self._init_store(root)
                self._stores[root] = store
            return store

    def fetch(self, source: SliceSource) -> bytes:
        """
        Return the raw bytes for one slice.

        Args:
            source: Slice to retrieve

        Returns:
            Slice bytes

        Raises:
            FetchError: If the bytes cannot be retrieved
        """
        if source.is_inline:
            return bytes(source.bytes_or_url)

        location = str(source.bytes_or_url)
        root, key = _split_location(location)
        try:
            store = self._get_store(root)
            result = obstore.get(store, key)
            data = bytes(result.bytes())
        except Exception as e:
            raise FetchError(f"Failed to fetch {source.name} from {location}: {e}") from e

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Fetched {len(data)} bytes for {source.name} from {location}")
        return data

    __call__ = fetch


def as_sources(entries) -> list:
    """
    Normalize a submission to SliceSource objects.

    Accepts SliceSource instances, ``(name, bytes_or_url)`` pairs, or dicts
    with ``name`` and ``bytes_or_url`` (or ``url``/``data``) keys.
    """
    sources = []
    for entry in entries:
        if isinstance(entry, SliceSource):
            sources.append(entry)
        elif isinstance(entry, dict):
            value: Optional[object] = entry.get("bytes_or_url")
            if value is None:
                value = entry.get("url", entry.get("data"))
            if value is None:
                raise ValueError(f"Submission entry has no bytes or url: {entry!r}")
            sources.append(SliceSource(name=str(entry.get("name", "")), bytes_or_url=value))
        else:
            name, value = entry
            sources.append(SliceSource(name=str(name), bytes_or_url=value))
    return sources
