"""Tests for the timeline clock and shot locator."""

import pytest

from core.timeline import ClockEvent, ClockState, TimelineClock, locate, shot_offsets, shot_start
from models.shot import Shot


def _shots(*durations):
    return [Shot(id=i + 1, duration=d) for i, d in enumerate(durations)]


class TestLocate:
    """Tests for mapping a time onto a shot."""

    def test_half_open_intervals(self):
        """Shots [3s, 2s]: boundaries belong to the later shot."""
        shots = _shots(3.0, 2.0)

        assert locate(0.0, shots) == 1
        assert locate(2.99, shots) == 1
        assert locate(3.0, shots) == 2
        assert locate(4.0, shots) == 2

    def test_outside_timeline(self):
        """Times at or past the end, or negative, match nothing."""
        shots = _shots(3.0, 2.0)

        assert locate(5.0, shots) is None
        assert locate(7.5, shots) is None
        assert locate(-0.1, shots) is None

    def test_no_shots(self):
        """Test an empty timeline."""
        assert locate(0.0, []) is None

    def test_offsets(self):
        """Test start offsets for each shot."""
        shots = _shots(3.0, 2.0, 1.5)

        assert [start for _, start in shot_offsets(shots)] == [0.0, 3.0, 5.0]
        assert shot_start(3, shots) == 5.0
        assert shot_start(9, shots) is None


class TestTimelineClock:
    """Tests for the wall-clock driven playhead."""

    def _clock(self, wall, total=5.0):
        self.total = total
        return TimelineClock(lambda: self.total, now=wall, tick_interval=0.05, restart_epsilon=0.1)

    def test_starts_stopped_at_zero(self, wall):
        """A new clock is stopped at the start."""
        clock = self._clock(wall)

        assert clock.state == ClockState.STOPPED
        assert clock.time == 0.0
        assert clock.total_duration == 5.0

    def test_play_advances_with_wall_clock(self, wall):
        """Time follows the wall clock while playing."""
        clock = self._clock(wall)
        clock.play()

        wall.advance(1.25)
        clock.tick()

        assert clock.time == pytest.approx(1.25)
        assert clock.is_playing

    def test_tick_while_stopped_does_nothing(self, wall):
        """Test the clock is frozen while stopped."""
        clock = self._clock(wall)
        wall.advance(2.0)
        clock.tick()

        assert clock.time == 0.0

    def test_pause_and_resume(self, wall):
        """Resuming continues from the paused time."""
        clock = self._clock(wall)
        clock.play()
        wall.advance(1.0)
        clock.pause()

        wall.advance(10.0)
        clock.play()
        wall.advance(0.5)
        clock.tick()

        assert clock.time == pytest.approx(1.5)

    def test_stops_exactly_at_end(self, wall):
        """Reaching the end clamps time and stops."""
        clock = self._clock(wall)
        clock.play()

        wall.advance(7.0)
        clock.tick()

        assert clock.time == 5.0
        assert clock.state == ClockState.STOPPED

    def test_toggle_at_end_restarts(self, wall):
        """Toggling near the end plays again from zero."""
        clock = self._clock(wall)
        clock.seek(4.95)

        clock.toggle()

        assert clock.is_playing
        assert clock.time == 0.0

    def test_toggle_pauses_and_plays(self, wall):
        """Test toggling in the middle of the timeline."""
        clock = self._clock(wall)
        clock.toggle()
        assert clock.is_playing

        wall.advance(1.0)
        clock.toggle()
        assert not clock.is_playing
        assert clock.time == pytest.approx(1.0)

    def test_seek_is_clamped(self, wall):
        """Seeks outside the timeline are clamped."""
        clock = self._clock(wall)

        clock.seek(-3.0)
        assert clock.time == 0.0
        clock.seek(99.0)
        assert clock.time == 5.0

    def test_seek_while_playing_rebases(self, wall):
        """Seeking while playing keeps playing from the new time."""
        clock = self._clock(wall)
        clock.play()
        wall.advance(1.0)

        clock.seek(3.0)
        wall.advance(0.5)
        clock.tick()

        assert clock.is_playing
        assert clock.time == pytest.approx(3.5)

    def test_seek_never_changes_state(self, wall):
        """Test seeking while stopped stays stopped."""
        clock = self._clock(wall)
        clock.seek(2.0)
        assert clock.state == ClockState.STOPPED

    def test_total_duration_is_read_live(self, wall):
        """Growing the timeline lets playback continue past the old end."""
        clock = self._clock(wall)
        clock.play()
        wall.advance(4.0)
        clock.tick()

        self.total = 6.0
        clock.refresh()
        wall.advance(1.5)
        clock.tick()

        assert clock.is_playing
        assert clock.time == pytest.approx(5.5)

    def test_refresh_clamps_after_shrink(self, wall):
        """Shrinking the timeline pulls the playhead back."""
        clock = self._clock(wall)
        clock.seek(4.5)

        self.total = 3.0
        clock.refresh()

        assert clock.time == 3.0

    def test_events(self, wall):
        """Listeners are told what changed."""
        clock = self._clock(wall)
        events = []
        clock.subscribe(lambda event, c: events.append(event))

        clock.play()
        wall.advance(1.0)
        clock.tick()
        self.total = 8.0
        clock.refresh()
        clock.pause()

        assert events[0] == ClockEvent.STATE
        assert ClockEvent.TIME in events
        assert ClockEvent.TOTAL_DURATION in events
        assert events[-1] == ClockEvent.STATE

    @pytest.mark.asyncio
    async def test_run_until_end(self):
        """The sampling loop stops by itself at the end of the timeline."""
        clock = TimelineClock(lambda: 0.15, tick_interval=0.01)
        clock.play()

        await clock.run()

        assert clock.time == pytest.approx(0.15)
        assert not clock.is_playing
