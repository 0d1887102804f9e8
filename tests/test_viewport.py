"""Tests for viewport zoom, pan and window/level interaction."""

import pytest

from dicom_series_viewer.contrast import WindowLevel
from dicom_series_viewer.viewport import ViewportController, ViewportState, clamp_zoom


@pytest.fixture
def viewport():
    return ViewportController(WindowLevel(center=300, width=1200))


def test_initial_state_uses_default_window(viewport):
    state = viewport.snapshot()
    assert (state.window_center, state.window_width) == (300, 1200)
    assert state.zoom == 1.0
    assert state.pan == (0.0, 0.0)


def test_zoom_stays_in_bounds_over_long_sequences(viewport):
    for _ in range(100):
        viewport.zoom_in()
        assert 0.1 <= viewport.state.zoom <= 5.0
    assert viewport.state.zoom == 5.0

    for _ in range(100):
        viewport.zoom_by_wheel(120)
        assert 0.1 <= viewport.state.zoom <= 5.0
    assert viewport.state.zoom == pytest.approx(0.1)


def test_zoom_steps(viewport):
    assert viewport.zoom_in() == pytest.approx(1.2)
    assert viewport.zoom_out() == pytest.approx(1.0)
    assert viewport.zoom_by_wheel(-1) == pytest.approx(1.1)
    assert viewport.zoom_by_wheel(0) == pytest.approx(1.1)


def test_clamp_zoom():
    assert clamp_zoom(0.0) == 0.1
    assert clamp_zoom(10) == 5.0
    assert clamp_zoom(2.5) == 2.5


def test_drag_accumulates_deltas(viewport):
    viewport.begin_pan(10, 10)
    viewport.drag_to(15, 12)
    viewport.drag_to(20, 5)
    viewport.end_pan()

    assert viewport.state.pan == (10.0, -5.0)
    # Moves without a drag are ignored
    viewport.drag_to(100, 100)
    assert viewport.state.pan == (10.0, -5.0)
    assert not viewport.is_dragging


def test_set_window_rejects_non_positive_width(viewport):
    with pytest.raises(ValueError):
        viewport.set_window(40, 0)
    assert viewport.state.window == WindowLevel(center=300, width=1200)


def test_adjust_window_floors_width(viewport):
    window = viewport.adjust_window(10, -5000)
    assert window == WindowLevel(center=310, width=1.0)


def test_apply_preset(viewport):
    assert viewport.apply_preset("lung") == WindowLevel(center=-500, width=1500)
    with pytest.raises(ValueError):
        viewport.apply_preset("nope")


def test_reset_restores_series_default(viewport):
    viewport.apply_preset("brain")
    viewport.zoom_in()
    viewport.begin_pan(0, 0)
    viewport.drag_to(30, 40)

    viewport.reset()

    assert viewport.snapshot() == ViewportState(
        zoom=1.0, pan_x=0.0, pan_y=0.0, window_center=300, window_width=1200
    )
    assert not viewport.is_dragging
