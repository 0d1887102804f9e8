"""Exception types raised by the image pipeline."""

from typing import Sequence


class ViewerError(Exception):
    """Base class for all dicom-series-viewer errors."""


class DecodeError(ViewerError):
    """Raised when a byte buffer cannot be decoded into a DicomImage.

    ``attempts`` lists the decode strategies that were tried, in order,
    with the reason each one failed.
    """

    def __init__(self, message: str, attempts: Sequence = ()):
        super().__init__(message)
        self.attempts = list(attempts)


class FetchError(ViewerError):
    """Raised when slice bytes cannot be retrieved (I/O, network, timeout)."""


class SeriesLoadError(ViewerError):
    """Raised when no slice of a series could be decoded."""

    def __init__(self, message: str, failures: Sequence = ()):
        super().__init__(message)
        self.failures = list(failures)


class RenderError(ViewerError):
    """Raised when the render pipeline produces an inconsistent raster."""


class LoadCancelled(ViewerError):
    """Raised by a series load that was cancelled before it finished."""
