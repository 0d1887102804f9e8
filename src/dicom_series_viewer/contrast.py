"""DICOM window/level (contrast) presets and defaults."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .constants import MIN_WINDOW_WIDTH
from .decoder import DicomImage


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowLevel:
    """A window center/width pair in rescaled units."""

    center: float
    width: float

    def __post_init__(self):
        if self.width <= 0:
            raise ValueError(f"window width must be > 0, got {self.width}")


class ContrastPresets:
    """Standard DICOM window/level presets for different anatomies."""

    PRESETS: Dict[str, WindowLevel] = {
        "lung": WindowLevel(center=-500, width=1500),
        "bone": WindowLevel(center=300, width=2000),
        "abdomen": WindowLevel(center=50, width=350),
        "brain": WindowLevel(center=40, width=80),
        "mediastinum": WindowLevel(center=50, width=350),
        "liver": WindowLevel(center=30, width=150),
        "soft_tissue": WindowLevel(center=40, width=400),
    }

    @classmethod
    def get_preset(cls, name: str) -> Optional[WindowLevel]:
        """
        Get a preset by name.

        Args:
            name: Preset name (e.g., 'lung', 'bone')

        Returns:
            WindowLevel, or None if not found
        """
        preset = cls.PRESETS.get(name.lower().replace("-", "_"))
        if preset and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Using '{name}' contrast preset: WW={preset.width}, WC={preset.center}")
        return preset

    @staticmethod
    def from_pixel_range(image: DicomImage) -> WindowLevel:
        """
        Derive a window spanning the image's full rescaled pixel range.

        Args:
            image: Decoded slice

        Returns:
            WindowLevel centered on the range, at least MIN_WINDOW_WIDTH wide
        """
        low, high = image.rescaled_range()
        width = max(high - low, MIN_WINDOW_WIDTH)
        center = low + (high - low) / 2

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Window from pixel range {low}..{high}: WW={width}, WC={center}")
        return WindowLevel(center=center, width=width)

    @classmethod
    def default_for(cls, image: DicomImage) -> WindowLevel:
        """Embedded WindowCenter/WindowWidth when usable, else the pixel range."""
        if image.window_center is not None and image.window_width is not None and image.window_width > 0:
            return WindowLevel(center=image.window_center, width=image.window_width)
        return cls.from_pixel_range(image)


def parse_contrast_arg(contrast_str: str) -> Optional[WindowLevel]:
    """
    Parse a contrast argument: a preset name, "embedded", or window/level values.

    Args:
        contrast_str: Contrast specification (e.g., "lung", "embedded", "1500/500", "1500,-500")

    Returns:
        - WindowLevel for presets and explicit values
        - None for "embedded" (use the image's own window)

    Raises:
        ValueError: If the format is invalid
    """
    contrast_str = contrast_str.strip()

    if contrast_str.lower() == "embedded":
        return None

    preset = ContrastPresets.get_preset(contrast_str)
    if preset:
        return preset

    for separator in ("/", ","):
        if separator in contrast_str:
            parts = contrast_str.split(separator)
            if len(parts) != 2:
                raise ValueError(
                    f"Window{separator}level format requires exactly 2 values, got {len(parts)}"
                )
            try:
                window_width = float(parts[0].strip())
                window_center = float(parts[1].strip())
            except ValueError as e:
                raise ValueError(f"Invalid window{separator}level format: {e}")
            return WindowLevel(center=window_center, width=window_width)

    preset_list = ", ".join(sorted(ContrastPresets.PRESETS))
    raise ValueError(
        f"Invalid contrast specification: '{contrast_str}'. "
        f"Must be a preset ({preset_list}), 'embedded', "
        f"or window/level format (e.g., '1500/500' or '1500,-500' for negative values)"
    )
