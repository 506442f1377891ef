"""Interactive trim range selection.

The selector holds a ``TrimSelection`` that only ever changes to another
valid selection. Candidate times that would break the range are dropped
without touching state. The one exception is an end time that is too far
from the start: it is still dropped, but ``length_exceeded`` is raised so
the caller can tell the user why.
"""

import logging
import math
from typing import Callable, Optional

from media_ingest.core.config import settings
from media_ingest.core.errors import ValidationError
from media_ingest.modules.trim.models import (
    Handle,
    TrimSelection,
    TrimState,
    check_trim_bounds,
    length_exceeded_message,
)
from media_ingest.modules.trim.timecode import format_timecode, parse_timecode

logger = logging.getLogger(__name__)


def position_to_time(
    pointer_x: float,
    track_left: float,
    track_width: float,
    duration: float,
) -> float:
    """Map a pointer position on the track to a media time."""
    if track_width <= 0:
        return 0.0
    x = max(0.0, min(pointer_x - track_left, track_width))
    return x / track_width * duration


class TrimRangeSelector:
    """State machine behind the trim modal."""

    def __init__(
        self,
        max_duration: Optional[float] = None,
        on_confirm: Optional[Callable[[float, float], None]] = None,
        on_seek: Optional[Callable[[float], None]] = None,
    ):
        """Initialize selector.

        Args:
            max_duration: Longest allowed range in seconds
            on_confirm: Receives (start_time, end_time) on confirmation
            on_seek: Receives the new playback cursor whenever it snaps
        """
        self.max_duration = (
            max_duration if max_duration is not None else settings.TRIM_MAX_DURATION_SECONDS
        )
        if self.max_duration <= 0:
            raise ValueError("max_duration must be positive")
        self._on_confirm = on_confirm
        self._on_seek = on_seek
        self._reset()

    def _reset(self) -> None:
        self.state = TrimState.IDLE
        self.handle: Optional[Handle] = None
        self.selection: Optional[TrimSelection] = None
        self.cursor = 0.0
        self.message: Optional[str] = None

    # ============================================
    # Read-only view
    # ============================================
    @property
    def start_time(self) -> float:
        return self.selection.start_time if self.selection else 0.0

    @property
    def end_time(self) -> float:
        return self.selection.end_time if self.selection else 0.0

    @property
    def duration(self) -> float:
        return self.selection.total_duration if self.selection else 0.0

    @property
    def length_exceeded(self) -> bool:
        return self.message is not None

    @property
    def start_label(self) -> str:
        return format_timecode(self.start_time)

    @property
    def end_label(self) -> str:
        return format_timecode(self.end_time)

    @property
    def length_label(self) -> str:
        return format_timecode(self.end_time - self.start_time)

    def track_percentages(self) -> tuple[float, float]:
        """Start and end handle positions as percentages of the track."""
        if not self.duration:
            return 0.0, 100.0
        return (
            self.start_time / self.duration * 100,
            self.end_time / self.duration * 100,
        )

    # ============================================
    # Lifecycle
    # ============================================
    def load(self, duration: float) -> TrimSelection:
        """Enter ``LOADED`` once the media duration is known.

        Args:
            duration: Media duration in seconds

        Returns:
            The initial selection [0, min(duration, max_duration))

        Raises:
            ValidationError: If the duration is not a positive number
        """
        if not math.isfinite(duration) or duration <= 0:
            raise ValidationError("Failed to load the video duration")

        self._reset()
        self.selection = TrimSelection.initial(duration, self.max_duration)
        self.state = TrimState.LOADED
        return self.selection

    def begin_drag(self, handle: Handle) -> None:
        self._require_loaded()
        self.handle = Handle(handle)
        self.state = TrimState.DRAGGING

    def drag_to(self, pointer_x: float, track_left: float, track_width: float) -> bool:
        """Move the dragged handle to the time under the pointer.

        Returns:
            True if the candidate time was accepted
        """
        if self.state != TrimState.DRAGGING:
            return False
        candidate = self.position_to_time(pointer_x, track_left, track_width)
        if self.handle == Handle.START:
            return self.set_start(candidate)
        return self.set_end(candidate)

    def release(self) -> None:
        if self.state == TrimState.DRAGGING:
            self.state = TrimState.LOADED
            self.handle = None

    def position_to_time(self, pointer_x: float, track_left: float, track_width: float) -> float:
        return position_to_time(pointer_x, track_left, track_width, self.duration)

    # ============================================
    # Mutations
    # ============================================
    def set_start(self, candidate: float) -> bool:
        """Accept ``candidate`` as the start if it keeps the range valid.

        Moving the start back so the range grows past ``max_duration``
        raises ``length_exceeded`` and keeps the previous start.
        """
        if self.selection is None or not math.isfinite(candidate):
            return False
        sel = self.selection
        if not 0 <= candidate < sel.end_time:
            return False
        if sel.end_time - candidate > self.max_duration:
            self.message = length_exceeded_message(self.max_duration)
            return False

        self.selection = sel.with_start(candidate)
        self.message = None
        self._seek(candidate)
        return True

    def set_end(self, candidate: float) -> bool:
        """Accept ``candidate`` as the end if it keeps the range valid.

        A candidate that is only too far from the start raises
        ``length_exceeded``; the previous end is kept either way.
        """
        if self.selection is None or not math.isfinite(candidate):
            return False
        sel = self.selection
        if not sel.start_time < candidate <= sel.total_duration:
            return False
        if candidate - sel.start_time > self.max_duration:
            self.message = length_exceeded_message(self.max_duration)
            return False

        self.selection = sel.with_end(candidate)
        self.message = None
        self._seek(candidate)
        return True

    def select(self, start_time: float, end_time: float) -> bool:
        """Replace the whole range at once.

        Returns:
            True if the pair was accepted
        """
        if self.selection is None:
            return False
        if not (math.isfinite(start_time) and math.isfinite(end_time)):
            return False
        if not 0 <= start_time < end_time <= self.selection.total_duration:
            return False
        if end_time - start_time > self.max_duration:
            self.message = length_exceeded_message(self.max_duration)
            return False

        self.selection = self.selection.with_start(start_time).with_end(end_time)
        self.message = None
        self._seek(start_time)
        return True

    def set_start_text(self, text: str) -> bool:
        return self.set_start(float(parse_timecode(text)))

    def set_end_text(self, text: str) -> bool:
        return self.set_end(float(parse_timecode(text)))

    def on_playback_tick(self, position: float) -> float:
        """Keep preview playback inside the range.

        Args:
            position: Current playback position

        Returns:
            Position playback should continue from
        """
        if self.selection is None:
            return position
        if position >= self.selection.end_time:
            self._seek(self.selection.start_time)
            return self.selection.start_time
        self.cursor = position
        return position

    # ============================================
    # Completion
    # ============================================
    def confirm(self) -> tuple[float, float]:
        """Emit the selected range and close the selector.

        Returns:
            (start_time, end_time) at full precision

        Raises:
            ValidationError: If nothing is loaded or the range is invalid
        """
        self._require_loaded()
        sel = self.selection
        check_trim_bounds(sel.start_time, sel.end_time, self.max_duration, sel.total_duration)

        result = (sel.start_time, sel.end_time)
        logger.debug(f"Trim range confirmed: {format_timecode(result[0])}-{format_timecode(result[1])}")
        if self._on_confirm:
            self._on_confirm(*result)
        self._reset()
        return result

    def cancel(self) -> None:
        """Discard the selection without emitting anything."""
        self._reset()

    def _require_loaded(self) -> None:
        if self.state == TrimState.IDLE or self.selection is None:
            raise ValidationError("No video is loaded")

    def _seek(self, position: float) -> None:
        self.cursor = position
        if self._on_seek:
            self._on_seek(position)
