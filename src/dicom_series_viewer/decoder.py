"""Decode raw DICOM byte buffers into immutable DicomImage records.

Decoding walks an explicit, ordered list of strategies. The first strategy
expects a Part-10 file (128-byte preamble followed by the ``DICM`` magic);
the second treats the buffer as a bare little-endian dataset. Every failed
strategy is recorded so callers can inspect why a buffer was rejected.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pydicom
from pydicom.multival import MultiValue

from .errors import DecodeError

logger = logging.getLogger(__name__)

PREAMBLE_LENGTH = 128
DICM_MAGIC = b"DICM"

# (BitsAllocated, PixelRepresentation) -> little-endian numpy dtype
_SAMPLE_DTYPES = {
    (8, 0): np.dtype("u1"),
    (8, 1): np.dtype("i1"),
    (16, 0): np.dtype("<u2"),
    (16, 1): np.dtype("<i2"),
}


@dataclass(frozen=True, eq=False)
class DicomImage:
    """A single decoded slice.

    ``pixel_data`` holds the stored samples as a read-only array of shape
    ``(height, width)``. ``min_pixel_value`` and ``max_pixel_value`` are in
    stored sample units and cover the whole buffer.
    """

    pixel_data: np.ndarray
    width: int
    height: int
    bits_allocated: int
    pixel_representation: int
    rescale_slope: float
    rescale_intercept: float
    window_center: Optional[float]
    window_width: Optional[float]
    min_pixel_value: int
    max_pixel_value: int
    source_name: str = ""
    modality: Optional[str] = None
    decode_strategy: str = ""

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if self.pixel_data.size != self.width * self.height:
            raise ValueError(
                f"Pixel buffer holds {self.pixel_data.size} samples, "
                f"expected {self.width * self.height}"
            )
        if self.min_pixel_value > self.max_pixel_value:
            raise ValueError("min_pixel_value must not exceed max_pixel_value")

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_allocated // 8

    def rescaled_range(self) -> Tuple[float, float]:
        """Return the (min, max) pixel range in real-world (rescaled) units."""
        a = self.min_pixel_value * self.rescale_slope + self.rescale_intercept
        b = self.max_pixel_value * self.rescale_slope + self.rescale_intercept
        return (min(a, b), max(a, b))

    def summary(self) -> dict:
        """Metadata overview, as shown in a viewer info panel."""
        return {
            "source_name": self.source_name,
            "width": self.width,
            "height": self.height,
            "bits_allocated": self.bits_allocated,
            "pixel_representation": self.pixel_representation,
            "rescale_slope": self.rescale_slope,
            "rescale_intercept": self.rescale_intercept,
            "window_center": self.window_center,
            "window_width": self.window_width,
            "min_pixel_value": self.min_pixel_value,
            "max_pixel_value": self.max_pixel_value,
            "modality": self.modality,
            "decode_strategy": self.decode_strategy,
        }


@dataclass(frozen=True)
class StrategyFailure:
    """Why one decode strategy rejected a buffer."""

    strategy: str
    reason: str


class StrategyRejected(Exception):
    """Raised by a strategy that cannot locate its structural markers."""


class Part10Strategy:
    """Parse a Part-10 file: 128-byte preamble, ``DICM`` magic, file meta."""

    name = "part10"

    def parse(self, data: bytes) -> pydicom.Dataset:
        if len(data) < PREAMBLE_LENGTH + len(DICM_MAGIC):
            raise StrategyRejected("buffer shorter than preamble and DICM magic")
        if data[PREAMBLE_LENGTH:PREAMBLE_LENGTH + len(DICM_MAGIC)] != DICM_MAGIC:
            raise StrategyRejected("DICM magic not found after 128-byte preamble")
        try:
            ds = pydicom.dcmread(BytesIO(data))
        except Exception as e:
            raise StrategyRejected(f"Part-10 parse failed: {e}") from e

        transfer_syntax = getattr(getattr(ds, "file_meta", None), "TransferSyntaxUID", None)
        if transfer_syntax is not None:
            try:
                compressed = transfer_syntax.is_compressed
                little_endian = transfer_syntax.is_little_endian
            except ValueError:
                raise DecodeError(f"Unknown transfer syntax {transfer_syntax}")
            if compressed:
                raise DecodeError(f"Compressed transfer syntax {transfer_syntax.name} is not supported")
            if not little_endian:
                raise DecodeError(f"Big-endian transfer syntax {transfer_syntax.name} is not supported")
        return ds


class BareDatasetStrategy:
    """Parse a preamble-less little-endian dataset."""

    name = "bare-dataset"

    def parse(self, data: bytes) -> pydicom.Dataset:
        try:
            ds = pydicom.dcmread(BytesIO(data), force=True)
        except Exception as e:
            raise StrategyRejected(f"bare dataset parse failed: {e}") from e

        try:
            has_pixel_data = "PixelData" in ds
        except Exception as e:
            raise StrategyRejected(f"bare dataset is unreadable: {e}") from e
        if not has_pixel_data:
            raise StrategyRejected("no PixelData element found in bare dataset")

        encoding = getattr(ds, "original_encoding", (None, None))
        if encoding and encoding[1] is False:
            raise DecodeError("Big-endian datasets are not supported")
        return ds


DEFAULT_STRATEGIES = (Part10Strategy(), BareDatasetStrategy())


def _first_value(value):
    """Return the first entry of a possibly multi-valued element, or None."""
    if value is None or value == "":
        return None
    if isinstance(value, (MultiValue, list, tuple)):
        if len(value) == 0:
            return None
        value = value[0]
    return float(value)


def _read_int(ds: pydicom.Dataset, keyword: str) -> Optional[int]:
    value = ds.get(keyword)
    if value is None or value == "":
        return None
    return int(value)


class DicomDecoder:
    """Decode byte buffers by trying each strategy in order.

    Parameters
    ----------
    strategies : sequence, optional
        Strategy objects with a ``name`` and a ``parse(bytes)`` method.
        Defaults to Part-10 first, bare dataset second.
    """

    def __init__(self, strategies: Sequence = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def decode(self, data: bytes, source_name: str = "") -> DicomImage:
        """
        Decode one DICOM object.

        Parameters
        ----------
        data : bytes
            Raw bytes of a single-frame, uncompressed, little-endian object
        source_name : str
            Name recorded on the resulting image

        Returns
        -------
        DicomImage

        Raises
        ------
        DecodeError
            If no strategy can parse the buffer or a required element is
            missing or inconsistent
        """
        data = bytes(data)
        attempts: List[StrategyFailure] = []

        for strategy in self.strategies:
            try:
                ds = strategy.parse(data)
            except StrategyRejected as e:
                attempts.append(StrategyFailure(strategy.name, str(e)))
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(f"{source_name or '<buffer>'}: strategy {strategy.name} rejected: {e}")
                continue
            except DecodeError as e:
                e.attempts = attempts + e.attempts
                raise
            except Exception as e:
                raise DecodeError(f"Malformed header in {source_name or 'buffer'}: {e}", attempts) from e

            try:
                return self._build_image(ds, source_name, strategy.name)
            except DecodeError as e:
                e.attempts = attempts + e.attempts
                raise
            except Exception as e:
                # pydicom converts element values lazily, so malformed values surface here
                raise DecodeError(f"Malformed element in {source_name or 'buffer'}: {e}", attempts) from e

        reasons = "; ".join(f"{a.strategy}: {a.reason}" for a in attempts)
        raise DecodeError(f"Not a decodable DICOM object ({reasons})", attempts)

    @staticmethod
    def _build_image(ds: pydicom.Dataset, source_name: str, strategy_name: str) -> DicomImage:
        rows = _read_int(ds, "Rows")
        columns = _read_int(ds, "Columns")
        if not rows or not columns:
            raise DecodeError(f"Rows/Columns missing or zero (rows={rows}, columns={columns})")

        samples_per_pixel = _read_int(ds, "SamplesPerPixel") or 1
        if samples_per_pixel != 1:
            raise DecodeError(f"Only single-sample (grayscale) images are supported, got {samples_per_pixel}")

        frames = _read_int(ds, "NumberOfFrames") or 1
        if frames > 1:
            raise DecodeError(f"Multi-frame objects are not supported ({frames} frames)")

        bits_allocated = _read_int(ds, "BitsAllocated") or 16
        pixel_representation = _read_int(ds, "PixelRepresentation") or 0
        dtype = _SAMPLE_DTYPES.get((bits_allocated, pixel_representation))
        if dtype is None:
            raise DecodeError(
                f"Unsupported sample format: BitsAllocated={bits_allocated}, "
                f"PixelRepresentation={pixel_representation}"
            )

        if "PixelData" not in ds:
            raise DecodeError("PixelData element is missing")
        pixel_bytes = ds.PixelData
        if not isinstance(pixel_bytes, bytes):
            pixel_bytes = bytes(pixel_bytes)

        sample_count = rows * columns
        expected = sample_count * dtype.itemsize
        # Odd-length values carry one trailing pad byte
        padded = expected + 1 if expected % 2 else expected
        if len(pixel_bytes) not in (expected, padded):
            raise DecodeError(
                f"PixelData length {len(pixel_bytes)} does not match "
                f"{rows}x{columns}x{dtype.itemsize} = {expected} bytes"
            )

        pixels = np.frombuffer(pixel_bytes, dtype=dtype, count=sample_count).reshape(rows, columns)
        pixels.flags.writeable = False

        slope = _first_value(ds.get("RescaleSlope"))
        intercept = _first_value(ds.get("RescaleIntercept"))
        modality = ds.get("Modality")

        image = DicomImage(
            pixel_data=pixels,
            width=columns,
            height=rows,
            bits_allocated=bits_allocated,
            pixel_representation=pixel_representation,
            rescale_slope=1.0 if slope is None else slope,
            rescale_intercept=0.0 if intercept is None else intercept,
            window_center=_first_value(ds.get("WindowCenter")),
            window_width=_first_value(ds.get("WindowWidth")),
            min_pixel_value=int(pixels.min()),
            max_pixel_value=int(pixels.max()),
            source_name=source_name,
            modality=str(modality) if modality else None,
            decode_strategy=strategy_name,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Decoded {source_name or '<buffer>'} via {strategy_name}: "
                f"{columns}x{rows}, {bits_allocated}-bit, range {image.min_pixel_value}..{image.max_pixel_value}"
            )
        return image


_default_decoder = DicomDecoder()


def decode(data: bytes, source_name: str = "") -> DicomImage:
    """Decode ``data`` with the default strategy order."""
    return _default_decoder.decode(data, source_name)
