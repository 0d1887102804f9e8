"""Pixel transform pipeline and raster output helpers."""

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .decoder import DicomImage
from .errors import RenderError


logger = logging.getLogger(__name__)


def transform(image: DicomImage, window_center: float, window_width: float) -> np.ndarray:
    """
    Map stored samples to 8-bit display values under a window/level.

    Each sample is rescaled (``s * slope + intercept``) and mapped linearly
    from ``[center - width/2, center + width/2]`` onto ``[0, 255]``, with
    values at or beyond the bounds clamped to 0 or 255.

    Parameters
    ----------
    image : DicomImage
        Decoded slice; never modified
    window_center : float
        Window center in rescaled units
    window_width : float
        Window width in rescaled units. Values <= 0 are replaced by 1.

    Returns
    -------
    np.ndarray
        Newly allocated uint8 raster of shape ``(height, width)``

    Raises
    ------
    RenderError
        If the image's sample buffer does not hold width x height samples
    """
    pixels = image.pixel_data
    if pixels.size != image.width * image.height:
        raise RenderError(
            f"Pixel buffer of {image.source_name or 'image'} holds {pixels.size} samples, "
            f"expected {image.width}x{image.height}"
        )

    if window_width <= 0:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Window width {window_width} <= 0, substituting 1")
        window_width = 1.0

    real = pixels.astype(np.float64) * image.rescale_slope + image.rescale_intercept

    lower = window_center - window_width / 2
    upper = window_center + window_width / 2

    # Round half up
    scaled = np.floor((real - lower) / window_width * 255 + 0.5)
    np.clip(scaled, 0, 255, out=scaled)
    scaled[real <= lower] = 0
    scaled[real >= upper] = 255

    return scaled.astype(np.uint8).reshape(image.height, image.width)


def to_rgba(raster: np.ndarray) -> np.ndarray:
    """Expand a grayscale raster to an opaque RGBA buffer of shape (h, w, 4)."""
    if raster.ndim != 2 or raster.dtype != np.uint8:
        raise RenderError(f"Expected a 2-D uint8 raster, got shape {raster.shape} dtype {raster.dtype}")
    rgba = np.empty(raster.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = raster
    rgba[..., 1] = raster
    rgba[..., 2] = raster
    rgba[..., 3] = 255
    return rgba


def to_pil_image(raster: np.ndarray) -> Image.Image:
    """Wrap a grayscale or RGBA raster as a PIL image."""
    if raster.ndim == 2 or (raster.ndim == 3 and raster.shape[2] == 4):
        return Image.fromarray(raster)
    raise RenderError(f"Unsupported raster shape {raster.shape}")


def save_image(
    image: Image.Image,
    output_path: Union[str, Path],
    quality: int = 85,
) -> bool:
    """
    Save PIL Image to file with quality settings.

    Supports PNG, WebP and JPEG output formats.

    Parameters
    ----------
    image : PIL.Image.Image
        Image to save
    output_path : str or Path
        Output file path (.png, .webp or .jpg/.jpeg)
    quality : int, default 85
        Quality (0-100), ignored for PNG

    Returns
    -------
    bool
        True if successful, False otherwise
    """
    try:
        output_path = Path(output_path)
        suffix = output_path.suffix.lower()

        if suffix == '.webp':
            image.save(output_path, 'WEBP', quality=quality)
        elif suffix in ['.jpg', '.jpeg']:
            image.convert('L' if image.mode == 'L' else 'RGB').save(output_path, 'JPEG', quality=quality)
        elif suffix == '.png':
            image.save(output_path, 'PNG')
        else:
            logger.error(f"Unsupported format: {suffix}")
            return False

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Saved image to {output_path}")

        return True

    except OSError as e:
        logger.error(f"Failed to save image: {e}")
        return False
