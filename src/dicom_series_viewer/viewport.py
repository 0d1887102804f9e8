"""Interactive viewport state: zoom, pan and window/level."""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .constants import (
    MAX_ZOOM,
    MIN_WINDOW_WIDTH,
    MIN_ZOOM,
    WHEEL_ZOOM_IN,
    WHEEL_ZOOM_OUT,
    ZOOM_STEP,
)
from .contrast import ContrastPresets, WindowLevel

logger = logging.getLogger(__name__)


@dataclass
class ViewportState:
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    window_center: float = 40.0
    window_width: float = 400.0
    current_slice_index: int = 0

    @property
    def pan(self) -> Tuple[float, float]:
        return (self.pan_x, self.pan_y)

    @property
    def window(self) -> WindowLevel:
        return WindowLevel(center=self.window_center, width=self.window_width)


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


class ViewportController:
    """
    Zoom, pan and window/level interaction for one open series.

    ``reset()`` restores the series' default window, not the last window
    the user picked.
    """

    def __init__(self, default_window: WindowLevel, state: Optional[ViewportState] = None):
        self.default_window = default_window
        self.state = state if state is not None else ViewportState()
        self.state.window_center = default_window.center
        self.state.window_width = default_window.width
        self._drag_origin: Optional[Tuple[float, float]] = None

    def __repr__(self) -> str:
        s = self.state
        return (
            f"ViewportController(zoom={s.zoom:.2f}, pan=({s.pan_x:.1f}, {s.pan_y:.1f}), "
            f"window={s.window_width:g}/{s.window_center:g})"
        )

    def snapshot(self) -> ViewportState:
        return replace(self.state)

    # Zoom

    def set_zoom(self, zoom: float) -> float:
        self.state.zoom = clamp_zoom(zoom)
        return self.state.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.state.zoom * ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self.state.zoom / ZOOM_STEP)

    def zoom_by_wheel(self, delta_y: float) -> float:
        """Scroll-wheel zoom: scrolling down (positive delta) zooms out."""
        if delta_y == 0:
            return self.state.zoom
        factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
        return self.set_zoom(self.state.zoom * factor)

    # Pan

    @property
    def is_dragging(self) -> bool:
        return self._drag_origin is not None

    def begin_pan(self, x: float, y: float) -> None:
        self._drag_origin = (x, y)

    def drag_to(self, x: float, y: float) -> Tuple[float, float]:
        """Accumulate the pointer delta since the last position while dragging."""
        if self._drag_origin is None:
            return self.state.pan
        last_x, last_y = self._drag_origin
        self.state.pan_x += x - last_x
        self.state.pan_y += y - last_y
        self._drag_origin = (x, y)
        return self.state.pan

    def end_pan(self) -> None:
        self._drag_origin = None

    # Window/level

    def set_window(self, center: float, width: float) -> WindowLevel:
        if width <= 0:
            raise ValueError(f"window width must be > 0, got {width}")
        self.state.window_center = float(center)
        self.state.window_width = float(width)
        return self.state.window

    def adjust_window(self, d_center: float, d_width: float) -> WindowLevel:
        """Shift the window by drag deltas; the width never drops below MIN_WINDOW_WIDTH."""
        width = max(MIN_WINDOW_WIDTH, self.state.window_width + d_width)
        return self.set_window(self.state.window_center + d_center, width)

    def apply_preset(self, name: str) -> WindowLevel:
        preset = ContrastPresets.get_preset(name)
        if preset is None:
            raise ValueError(f"Unknown contrast preset: {name}")
        return self.set_window(preset.center, preset.width)

    def reset(self) -> None:
        self.state.zoom = 1.0
        self.state.pan_x = 0.0
        self.state.pan_y = 0.0
        self.state.window_center = self.default_window.center
        self.state.window_width = self.default_window.width
        self._drag_origin = None
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Viewport reset: {self!r}")
