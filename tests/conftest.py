"""Shared fixtures: small explicit-VR little-endian DICOM objects built in memory."""

import struct

import numpy as np
import pytest

EXPLICIT_VR_LITTLE_ENDIAN = "1.2.840.10008.1.2.1"
JPEG_BASELINE = "1.2.840.10008.1.2.4.50"
CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"

_LONG_VRS = {"OB", "OW", "OF", "SQ", "UN", "UT"}


def _element(group, element, vr, value):
    if len(value) % 2:
        value += b"\x00" if vr in ("UI", "OB", "OW") else b" "
    header = struct.pack("<HH", group, element) + vr.encode("ascii")
    if vr in _LONG_VRS:
        header += b"\x00\x00" + struct.pack("<I", len(value))
    else:
        header += struct.pack("<H", len(value))
    return header + value


def _us(group, element, value):
    return _element(group, element, "US", struct.pack("<H", value))


def _ds(group, element, value):
    if isinstance(value, (list, tuple)):
        text = "\\".join(f"{v:g}" for v in value)
    else:
        text = f"{value:g}"
    return _element(group, element, "DS", text.encode("ascii"))


def build_dicom(
    pixels,
    *,
    part10=True,
    modality="CT",
    slope=None,
    intercept=None,
    window_center=None,
    window_width=None,
    rows=None,
    columns=None,
    pixel_bytes=None,
    transfer_syntax=EXPLICIT_VR_LITTLE_ENDIAN,
):
    """Encode a 2-D integer array as a single-frame DICOM object."""
    pixels = np.asarray(pixels)
    if pixels.dtype.itemsize == 1:
        bits = 8
    else:
        bits = 16
        pixels = pixels.astype("<i2" if pixels.dtype.kind == "i" else "<u2")
    signed = 1 if pixels.dtype.kind == "i" else 0
    height, width = pixels.shape

    body = b""
    if modality is not None:
        body += _element(0x0008, 0x0060, "CS", modality.encode("ascii"))
    body += _us(0x0028, 0x0002, 1)
    body += _us(0x0028, 0x0010, height if rows is None else rows)
    body += _us(0x0028, 0x0011, width if columns is None else columns)
    body += _us(0x0028, 0x0100, bits)
    body += _us(0x0028, 0x0101, bits)
    body += _us(0x0028, 0x0102, bits - 1)
    body += _us(0x0028, 0x0103, signed)
    if window_center is not None:
        body += _ds(0x0028, 0x1050, window_center)
    if window_width is not None:
        body += _ds(0x0028, 0x1051, window_width)
    if intercept is not None:
        body += _ds(0x0028, 0x1052, intercept)
    if slope is not None:
        body += _ds(0x0028, 0x1053, slope)
    data = pixels.tobytes() if pixel_bytes is None else pixel_bytes
    body += _element(0x7FE0, 0x0010, "OB" if bits == 8 else "OW", data)

    if not part10:
        return body

    meta = _element(0x0002, 0x0001, "OB", b"\x00\x01")
    meta += _element(0x0002, 0x0002, "UI", CT_IMAGE_STORAGE.encode("ascii"))
    meta += _element(0x0002, 0x0003, "UI", b"1.2.3.4.5.6.7.8.9")
    meta += _element(0x0002, 0x0010, "UI", transfer_syntax.encode("ascii"))
    group_length = _element(0x0002, 0x0000, "UL", struct.pack("<I", len(meta)))
    return b"\x00" * 128 + b"DICM" + group_length + meta + body


@pytest.fixture
def make_dicom():
    """Factory fixture returning build_dicom."""
    return build_dicom


@pytest.fixture
def ramp_pixels():
    """A 4x8 unsigned 16-bit ramp from 0 to 3100 in steps of 100."""
    return (np.arange(32, dtype=np.uint16) * 100).reshape(4, 8)


@pytest.fixture
def ct_slice(make_dicom, ramp_pixels):
    """Part-10 CT slice with rescale and an embedded window."""
    return make_dicom(
        ramp_pixels,
        slope=1,
        intercept=-1024,
        window_center=40,
        window_width=400,
    )
