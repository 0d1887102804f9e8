"""Tests for the window/level transform and raster output helpers."""

import numpy as np
import pytest
from PIL import Image

from dicom_series_viewer.decoder import DicomImage
from dicom_series_viewer.errors import RenderError
from dicom_series_viewer.image_utils import save_image, to_pil_image, to_rgba, transform


def _image(values, slope=1.0, intercept=0.0, dtype=np.uint16):
    pixels = np.asarray(values, dtype=dtype)
    if pixels.ndim == 1:
        pixels = pixels.reshape(1, -1)
    return DicomImage(
        pixel_data=pixels,
        width=pixels.shape[1],
        height=pixels.shape[0],
        bits_allocated=pixels.dtype.itemsize * 8,
        pixel_representation=1 if pixels.dtype.kind == "i" else 0,
        rescale_slope=slope,
        rescale_intercept=intercept,
        window_center=None,
        window_width=None,
        min_pixel_value=int(pixels.min()),
        max_pixel_value=int(pixels.max()),
    )


class TestTransform:
    """Tests for the linear window/level mapping."""

    def test_window_bounds_and_midpoint(self):
        image = _image([0, 2048, 4096])

        raster = transform(image, 2048, 4096)

        assert raster.dtype == np.uint8
        assert raster.shape == (1, 3)
        assert raster.tolist() == [[0, 128, 255]]

    def test_top_of_range_rounds_up_to_255(self):
        # 4095 sits just inside the window: 4095 / 4096 * 255 = 254.94
        image = _image([4095, 1, 2047])

        raster = transform(image, 2048, 4096)

        assert raster.tolist() == [[255, 0, 127]]

    def test_corrupt_buffer_raises_render_error(self):
        image = _image(np.zeros((2, 2)))
        object.__setattr__(image, "pixel_data", np.zeros(3, dtype=np.uint16))

        with pytest.raises(RenderError):
            transform(image, 0, 10)

    def test_values_beyond_window_clamp(self):
        image = _image([-2000, -200, 280, 5000], dtype=np.int16)

        raster = transform(image, 40, 400)

        assert raster.tolist() == [[0, 0, 255, 255]]

    def test_rescale_applied_before_window(self):
        # Stored 1024 with intercept -1024 is 0 HU, the window center
        image = _image([1024], slope=1.0, intercept=-1024.0)

        raster = transform(image, 0, 400)

        assert raster[0, 0] == 128

    def test_non_positive_width_treated_as_one(self):
        image = _image([99, 100, 101])

        assert transform(image, 100, 0).tolist() == transform(image, 100, 1).tolist()
        assert transform(image, 100, -50).tolist() == transform(image, 100, 1).tolist()

    def test_idempotent_and_leaves_source_untouched(self):
        image = _image(np.arange(64).reshape(8, 8) * 50)
        before = image.pixel_data.copy()

        first = transform(image, 1000, 2000)
        second = transform(image, 1000, 2000)

        np.testing.assert_array_equal(first, second)
        assert first is not second
        np.testing.assert_array_equal(image.pixel_data, before)

    def test_raster_shape_is_height_by_width(self):
        image = _image(np.zeros((3, 5)))
        assert transform(image, 0, 10).shape == (3, 5)


class TestRasterOutput:
    """Tests for RGBA expansion and PIL conversion."""

    def test_to_rgba_is_opaque_gray(self):
        raster = np.array([[0, 128], [200, 255]], dtype=np.uint8)

        rgba = to_rgba(raster)

        assert rgba.shape == (2, 2, 4)
        np.testing.assert_array_equal(rgba[..., 0], raster)
        np.testing.assert_array_equal(rgba[..., 1], raster)
        np.testing.assert_array_equal(rgba[..., 2], raster)
        assert (rgba[..., 3] == 255).all()

    def test_to_rgba_rejects_wrong_dtype(self):
        with pytest.raises(RenderError):
            to_rgba(np.zeros((2, 2), dtype=np.uint16))

    def test_to_pil_image_modes(self):
        raster = np.zeros((4, 6), dtype=np.uint8)

        assert to_pil_image(raster).mode == "L"
        assert to_pil_image(to_rgba(raster)).mode == "RGBA"
        assert to_pil_image(raster).size == (6, 4)


class TestSaveImage:
    """Tests for save_image format handling."""

    @pytest.mark.parametrize("suffix", [".png", ".webp", ".jpg"])
    def test_saves_supported_formats(self, tmp_path, suffix):
        image = Image.new("L", (8, 8), color=100)
        output = tmp_path / f"out{suffix}"

        assert save_image(image, output, quality=80)
        assert output.is_file()
        with Image.open(output) as reloaded:
            assert reloaded.size == (8, 8)

    def test_rejects_unknown_suffix(self, tmp_path):
        image = Image.new("L", (8, 8))
        assert save_image(image, tmp_path / "out.tiff") is False
