"""Tests for window/level presets, defaults and contrast argument parsing."""

import numpy as np
import pytest

from dicom_series_viewer.contrast import ContrastPresets, WindowLevel, parse_contrast_arg
from dicom_series_viewer.decoder import DicomImage


def _image(window_center=None, window_width=None, low=0, high=1000, slope=1.0, intercept=0.0):
    pixels = np.array([[low, high]], dtype=np.int16)
    return DicomImage(
        pixel_data=pixels,
        width=2,
        height=1,
        bits_allocated=16,
        pixel_representation=1,
        rescale_slope=slope,
        rescale_intercept=intercept,
        window_center=window_center,
        window_width=window_width,
        min_pixel_value=low,
        max_pixel_value=high,
    )


def test_window_level_rejects_non_positive_width():
    with pytest.raises(ValueError):
        WindowLevel(center=0, width=0)


def test_get_preset_normalizes_name():
    assert ContrastPresets.get_preset("Soft-Tissue") == WindowLevel(center=40, width=400)
    assert ContrastPresets.get_preset("unknown") is None


def test_default_prefers_embedded_window():
    image = _image(window_center=40, window_width=400)
    assert ContrastPresets.default_for(image) == WindowLevel(center=40, width=400)


def test_default_falls_back_to_rescaled_pixel_range():
    image = _image(low=0, high=2000, intercept=-1024)

    window = ContrastPresets.default_for(image)

    assert window.width == 2000
    assert window.center == -24


def test_default_ignores_zero_embedded_width():
    image = _image(window_center=40, window_width=0, low=0, high=100)
    assert ContrastPresets.default_for(image) == WindowLevel(center=50, width=100)


def test_flat_image_gets_minimum_width():
    image = _image(low=7, high=7)
    window = ContrastPresets.default_for(image)
    assert window.width == 1.0
    assert window.center == 7


@pytest.mark.parametrize(
    "text, expected",
    [
        ("lung", WindowLevel(center=-500, width=1500)),
        ("1500/500", WindowLevel(center=500, width=1500)),
        ("1500,-500", WindowLevel(center=-500, width=1500)),
        (" 400 / 40 ", WindowLevel(center=40, width=400)),
    ],
)
def test_parse_contrast_arg(text, expected):
    assert parse_contrast_arg(text) == expected


def test_parse_contrast_arg_embedded_returns_none():
    assert parse_contrast_arg("embedded") is None


@pytest.mark.parametrize("text", ["nonsense", "1/2/3", "wide/40", "0/40"])
def test_parse_contrast_arg_invalid(text):
    with pytest.raises(ValueError):
        parse_contrast_arg(text)
