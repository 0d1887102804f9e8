"""Tests for cine playback timing, stop guarantees and manual navigation."""

import threading
import time

import pytest

from dicom_series_viewer.playback import PlaybackController, PlaybackMode


class TestNavigation:
    """Tests for next/prev/seek/step."""

    def test_next_and_prev_clamp_at_ends(self):
        playback = PlaybackController(3)

        assert playback.prev() == 0
        assert playback.next() == 1
        assert playback.next() == 2
        assert playback.next() == 2
        assert playback.prev() == 1

    def test_step_wraps_around(self):
        playback = PlaybackController(3, start_index=2)
        assert playback.step() == 0

    def test_seek_validates_range(self):
        playback = PlaybackController(5)

        assert playback.seek(4) == 4
        with pytest.raises(ValueError):
            playback.seek(5)
        with pytest.raises(ValueError):
            playback.seek(-1)

    def test_callback_fires_only_on_change(self):
        seen = []
        playback = PlaybackController(2, on_index_changed=seen.append)

        playback.prev()
        playback.next()
        playback.next()

        assert seen == [1]

    def test_rejects_empty_series(self):
        with pytest.raises(ValueError):
            PlaybackController(0)


class TestCine:
    """Tests for timed playback."""

    def test_fps_is_clamped(self):
        playback = PlaybackController(10, fps=100)
        assert playback.fps == 30
        assert playback.set_fps(0) == 1

    def test_set_fps_while_playing_changes_tick_rate(self):
        ticks = []
        playback = PlaybackController(100, fps=2, on_index_changed=ticks.append)

        playback.play()
        try:
            time.sleep(1.1)
            slow = len(ticks)
            assert playback.set_fps(25) == 25
            time.sleep(1.0)
            fast = len(ticks) - slow
        finally:
            playback.stop()

        # 2 fps for 1.1s gives about 2 ticks; the pending 0.5s wait then 25 fps gives 12 or more
        assert 1 <= slow <= 3
        assert fast >= 8
        assert playback.is_playing is False

    def test_single_slice_never_plays(self):
        playback = PlaybackController(1)

        assert playback.play() is False
        assert playback.mode is PlaybackMode.STOPPED

    def test_advances_at_requested_rate(self):
        ticks = []
        playback = PlaybackController(10, fps=5, on_index_changed=ticks.append)

        assert playback.play()
        time.sleep(2.0)
        playback.stop()

        # 10 ticks expected; allow for scheduler jitter
        assert 7 <= len(ticks) <= 11
        assert ticks[:3] == [1, 2, 3]

    def test_wraps_while_playing(self):
        wrapped = threading.Event()

        def on_index(index):
            if index == 0:
                wrapped.set()

        playback = PlaybackController(3, fps=30, on_index_changed=on_index)
        playback.play()
        try:
            assert wrapped.wait(2)
        finally:
            playback.stop()

    def test_no_change_after_stop_returns(self):
        ticks = []
        playback = PlaybackController(50, fps=30, on_index_changed=ticks.append)

        playback.play()
        time.sleep(0.3)
        playback.stop()
        count = len(ticks)
        index = playback.current_index
        time.sleep(0.3)

        assert len(ticks) == count
        assert playback.current_index == index
        assert not playback.is_playing

    def test_toggle(self):
        playback = PlaybackController(4, fps=10)

        assert playback.toggle() is True
        assert playback.is_playing
        assert playback.toggle() is False
        assert playback.mode is PlaybackMode.STOPPED

    def test_manual_navigation_keeps_playing(self):
        playback = PlaybackController(20, fps=1)
        playback.play()
        try:
            playback.seek(10)
            assert playback.is_playing
            assert playback.current_index == 10
        finally:
            playback.close()
        assert not playback.is_playing
