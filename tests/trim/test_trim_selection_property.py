"""Property-based tests for trim range selection.

Between accepted mutations the selection always satisfies
0 <= start < end <= duration and end - start <= max_duration. Rejected
candidates leave state unchanged.
"""

import pytest
from hypothesis import assume, given, settings, strategies as st

from media_ingest.core.errors import ValidationError
from media_ingest.modules.trim.models import Handle, TrimState, check_trim_bounds
from media_ingest.modules.trim.selector import TrimRangeSelector, position_to_time


durations = st.floats(min_value=1.0, max_value=7200.0, allow_nan=False, allow_infinity=False)
max_durations = st.floats(min_value=1.0, max_value=600.0, allow_nan=False, allow_infinity=False)
fractions = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)


def loaded(duration: float, max_duration: float) -> TrimRangeSelector:
    selector = TrimRangeSelector(max_duration=max_duration)
    selector.load(duration)
    return selector


def invariant_holds(selector: TrimRangeSelector) -> bool:
    sel = selector.selection
    return (
        0 <= sel.start_time < sel.end_time <= sel.total_duration
        and sel.end_time - sel.start_time <= selector.max_duration
    )


class TestValidPairsAccepted:
    """Property: every valid (start, end) pair is accepted."""

    @given(duration=durations, max_duration=max_durations, a=fractions, b=fractions)
    @settings(max_examples=200)
    def test_valid_pair_accepted_and_invariant_holds(
        self, duration: float, max_duration: float, a: float, b: float
    ) -> None:
        """For 0 <= start < end <= duration with end - start <= max, the pair SHALL be accepted."""
        start = a * duration
        end = start + b * min(max_duration, duration - start)
        assume(start < end <= duration)
        assume(end - start <= max_duration)

        selector = loaded(duration, max_duration)

        assert selector.select(start, end) is True
        assert selector.start_time == start
        assert selector.end_time == end
        assert invariant_holds(selector)
        assert selector.length_exceeded is False

    @given(duration=durations, max_duration=max_durations)
    @settings(max_examples=100)
    def test_load_starts_with_valid_initial_range(self, duration: float, max_duration: float) -> None:
        """Loading SHALL select [0, min(duration, max_duration))."""
        selector = loaded(duration, max_duration)

        assert selector.state == TrimState.LOADED
        assert selector.start_time == 0
        assert selector.end_time == min(duration, max_duration)
        assert invariant_holds(selector)


class TestInvalidPairsRejected:
    """Property: invalid pairs are rejected and leave state untouched."""

    @given(
        duration=durations,
        max_duration=max_durations,
        start=st.floats(min_value=-100, max_value=8000, allow_nan=False),
        end=st.floats(min_value=-100, max_value=8000, allow_nan=False),
    )
    @settings(max_examples=200)
    def test_invalid_pair_rejected_idempotently(
        self, duration: float, max_duration: float, start: float, end: float
    ) -> None:
        """Invalid pairs SHALL be rejected, repeatedly, with the prior state unchanged."""
        assume(start < 0 or end <= start or end > duration or end - start > max_duration)
        selector = loaded(duration, max_duration)
        before = selector.selection

        assert selector.select(start, end) is False
        assert selector.select(start, end) is False
        assert selector.selection == before
        assert invariant_holds(selector)

    @given(duration=durations, max_duration=max_durations, candidate=st.floats(allow_nan=True))
    @settings(max_examples=200)
    def test_single_handle_moves_preserve_invariant(
        self, duration: float, max_duration: float, candidate: float
    ) -> None:
        """Any start or end candidate SHALL either be accepted validly or change nothing."""
        selector = loaded(duration, max_duration)

        before = selector.selection
        if not selector.set_start(candidate):
            assert selector.selection == before
        assert invariant_holds(selector)

        before = selector.selection
        if not selector.set_end(candidate):
            assert selector.selection == before
        assert invariant_holds(selector)

    @given(
        duration=durations,
        max_duration=max_durations,
        a=fractions,
        b=fractions,
        candidate=st.floats(min_value=-100, max_value=8000, allow_nan=False),
    )
    @settings(max_examples=200)
    def test_start_moves_after_select_preserve_invariant(
        self, duration: float, max_duration: float, a: float, b: float, candidate: float
    ) -> None:
        """Moving the start of a selected range SHALL never exceed max_duration."""
        selector = loaded(duration, max_duration)
        start = a * duration
        end = start + b * min(max_duration, duration - start)
        assume(start < end)
        assume(selector.select(start, end))
        before = selector.selection

        if selector.set_start(candidate):
            assert selector.start_time == candidate
            assert selector.end_time == before.end_time
        else:
            assert selector.selection == before
        assert invariant_holds(selector)

    def test_start_moved_back_past_max_duration_raises_length_exceeded(self) -> None:
        """duration=400, max=300, range 100-390: moving start to 50 is rejected."""
        selector = loaded(400, 300)
        assert selector.select(100, 390) is True

        assert selector.set_start(50) is False
        assert selector.start_time == 100
        assert selector.length_exceeded is True
        assert "5 minutes" in selector.message

        assert selector.set_start(95) is True
        assert selector.length_exceeded is False

    def test_end_beyond_max_duration_raises_length_exceeded(self) -> None:
        """duration=400, max=300: dragging end to 301 keeps end and flags length-exceeded."""
        selector = loaded(400, 300)
        assert selector.end_time == 300

        selector.begin_drag(Handle.END)
        accepted = selector.drag_to(pointer_x=301, track_left=0, track_width=400)

        assert accepted is False
        assert selector.end_time == 300
        assert selector.length_exceeded is True
        assert "5 minutes" in selector.message

    def test_valid_end_clears_length_exceeded(self) -> None:
        selector = loaded(400, 300)
        selector.set_end(350)
        assert selector.length_exceeded is True

        assert selector.set_end(250) is True
        assert selector.length_exceeded is False

    def test_end_rejected_for_other_reasons_does_not_flag(self) -> None:
        selector = loaded(400, 300)
        selector.set_start(100)

        assert selector.set_end(50) is False
        assert selector.set_end(500) is False
        assert selector.length_exceeded is False

    def test_start_must_stay_before_end(self) -> None:
        selector = loaded(120, 60)

        assert selector.set_start(60) is False
        assert selector.set_start(-1) is False
        assert selector.set_start(59.5) is True
        assert selector.start_time == 59.5


class TestDragging:
    """Tests for pointer-driven handle movement."""

    @given(
        pointer=st.floats(min_value=-1000, max_value=3000, allow_nan=False),
        left=st.floats(min_value=0, max_value=500, allow_nan=False),
        width=st.floats(min_value=1, max_value=2000, allow_nan=False),
        duration=durations,
    )
    @settings(max_examples=200)
    def test_position_maps_into_timeline(
        self, pointer: float, left: float, width: float, duration: float
    ) -> None:
        """Mapped times SHALL lie within [0, duration]."""
        t = position_to_time(pointer, left, width, duration)
        assert 0 <= t <= duration * (1 + 1e-9)

    def test_position_to_time_linear(self) -> None:
        assert position_to_time(150, 50, 200, 120) == 60
        assert position_to_time(0, 50, 200, 120) == 0
        assert position_to_time(999, 50, 200, 120) == 120

    def test_drag_lifecycle(self) -> None:
        selector = loaded(120, 60)

        selector.begin_drag(Handle.START)
        assert selector.state == TrimState.DRAGGING
        assert selector.drag_to(30, 0, 120) is True
        selector.release()

        assert selector.state == TrimState.LOADED
        assert selector.start_time == 30
        assert selector.drag_to(20, 0, 120) is False

    def test_begin_drag_requires_loaded_media(self) -> None:
        with pytest.raises(ValidationError):
            TrimRangeSelector(max_duration=60).begin_drag(Handle.START)

    def test_cursor_snaps_to_accepted_handles(self) -> None:
        seeks = []
        selector = TrimRangeSelector(max_duration=60, on_seek=seeks.append)
        selector.load(120)

        selector.set_start(10)
        selector.set_end(50)
        selector.set_end(100)

        assert seeks == [10, 50]
        assert selector.cursor == 50


class TestPlayback:
    def test_playback_wraps_to_start_at_end(self) -> None:
        selector = loaded(120, 60)
        selector.select(10, 50)

        assert selector.on_playback_tick(30) == 30
        assert selector.on_playback_tick(50) == 10
        assert selector.cursor == 10


class TestCompletion:
    """Tests for confirm and cancel."""

    @given(
        start=st.floats(min_value=0, max_value=59, allow_nan=False),
        length=st.floats(min_value=0.001, max_value=60, allow_nan=False),
    )
    @settings(max_examples=100)
    def test_confirm_emits_full_precision(self, start: float, length: float) -> None:
        """Confirmed values SHALL keep full precision, not their MM:SS rendering."""
        end = start + length
        assume(start < end <= 120)
        emitted = []
        selector = TrimRangeSelector(max_duration=60, on_confirm=lambda s, e: emitted.append((s, e)))
        selector.load(120)
        assume(selector.select(start, end))

        assert selector.confirm() == (start, end)
        assert emitted == [(start, end)]
        assert selector.state == TrimState.IDLE

    def test_cancel_emits_nothing(self) -> None:
        emitted = []
        selector = TrimRangeSelector(max_duration=60, on_confirm=lambda s, e: emitted.append((s, e)))
        selector.load(120)
        selector.select(10, 50)

        selector.cancel()

        assert emitted == []
        assert selector.state == TrimState.IDLE
        assert selector.selection is None

    def test_confirm_without_media_raises(self) -> None:
        with pytest.raises(ValidationError):
            TrimRangeSelector(max_duration=60).confirm()

    def test_load_rejects_unusable_duration(self) -> None:
        selector = TrimRangeSelector(max_duration=60)
        for bad in (0, -5, float("nan"), float("inf")):
            with pytest.raises(ValidationError):
                selector.load(bad)
        assert selector.state == TrimState.IDLE

    def test_text_entry_uses_same_rules(self) -> None:
        selector = loaded(400, 300)

        assert selector.set_start_text("01:30") is True
        assert selector.start_time == 90
        assert selector.set_end_text("06:35") is False
        assert selector.length_exceeded is True
        assert selector.set_end_text("06:00") is True
        assert selector.end_time == 360
        assert selector.set_end_text("garbage") is False

    def test_labels(self) -> None:
        selector = loaded(400, 300)
        selector.select(65.9, 125.2)

        assert selector.start_label == "01:05"
        assert selector.end_label == "02:05"
        assert selector.length_label == "00:59"
        assert selector.track_percentages() == (65.9 / 400 * 100, 125.2 / 400 * 100)


class TestCheckTrimBounds:
    def test_missing_bounds(self) -> None:
        with pytest.raises(ValidationError):
            check_trim_bounds(None, 10)
        with pytest.raises(ValidationError):
            check_trim_bounds(0, None)

    def test_too_long(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            check_trim_bounds(0, 301, max_duration=300)
        assert exc_info.value.details["length"] == 301

    def test_valid(self) -> None:
        check_trim_bounds(10, 50, max_duration=60, total_duration=120)
