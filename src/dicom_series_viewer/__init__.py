"""DICOM Series Viewer - decode, window and page through DICOM series from local files, HTTP or S3."""

from .api import Frame, LoadStatus, SeriesViewer
from .contrast import ContrastPresets, WindowLevel, parse_contrast_arg
from .decoder import DicomDecoder, DicomImage, decode
from .errors import (
    DecodeError,
    FetchError,
    LoadCancelled,
    RenderError,
    SeriesLoadError,
    ViewerError,
)
from .image_utils import save_image, to_pil_image, to_rgba, transform
from .playback import PlaybackController, PlaybackMode
from .retriever import SliceFetcher, SliceSource
from .series import LoadProgress, Modality, Series, SeriesManager, SliceFailure, parse_modality
from .slice_sorting import slice_number, sort_sources
from .viewport import ViewportController, ViewportState

__version__ = "0.1.0"
__all__ = [
    "SeriesViewer",
    "LoadStatus",
    "Frame",
    "ContrastPresets",
    "WindowLevel",
    "parse_contrast_arg",
    "DicomDecoder",
    "DicomImage",
    "decode",
    "ViewerError",
    "DecodeError",
    "FetchError",
    "SeriesLoadError",
    "RenderError",
    "LoadCancelled",
    "transform",
    "to_rgba",
    "to_pil_image",
    "save_image",
    "PlaybackController",
    "PlaybackMode",
    "SliceFetcher",
    "SliceSource",
    "SeriesManager",
    "Series",
    "Modality",
    "LoadProgress",
    "SliceFailure",
    "parse_modality",
    "slice_number",
    "sort_sources",
    "ViewportController",
    "ViewportState",
]
