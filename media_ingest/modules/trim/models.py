"""Trim selection state and bounds checks."""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from media_ingest.core.errors import ValidationError


class TrimState(str, Enum):
    """Selector lifecycle."""

    IDLE = "idle"
    LOADED = "loaded"
    DRAGGING = "dragging"


class Handle(str, Enum):
    """Track handle being dragged."""

    START = "start"
    END = "end"


def length_exceeded_message(max_duration: float) -> str:
    minutes = math.floor(max_duration / 60)
    return f"Sample videos must be {minutes} minutes or shorter"


def check_trim_bounds(
    start_time: Optional[float],
    end_time: Optional[float],
    max_duration: Optional[float] = None,
    total_duration: Optional[float] = None,
) -> None:
    """Validate a trim range.

    Args:
        start_time: Range start in seconds
        end_time: Range end in seconds
        max_duration: Longest allowed range, unchecked if None
        total_duration: Media duration, unchecked if None

    Raises:
        ValidationError: If a bound is missing or the range is invalid
    """
    if start_time is None or end_time is None:
        raise ValidationError("Trim start and end times are required")
    if not (math.isfinite(start_time) and math.isfinite(end_time)):
        raise ValidationError("Trim times must be finite numbers")
    if start_time < 0:
        raise ValidationError("Start time cannot be negative")
    if end_time <= start_time:
        raise ValidationError("End time must be after the start time")
    if total_duration is not None and end_time > total_duration:
        raise ValidationError("End time cannot exceed the video duration")
    if max_duration is not None and end_time - start_time > max_duration:
        raise ValidationError(
            length_exceeded_message(max_duration),
            details={"max_duration": max_duration, "length": end_time - start_time},
        )


@dataclass(frozen=True)
class TrimSelection:
    """An accepted [start_time, end_time) range of a media timeline.

    Instances are only created for ranges satisfying
    ``0 <= start_time < end_time <= total_duration`` and
    ``end_time - start_time <= max_duration``.
    """

    start_time: float
    end_time: float
    total_duration: float
    max_duration: float

    @classmethod
    def initial(cls, total_duration: float, max_duration: float) -> "TrimSelection":
        return cls(
            start_time=0.0,
            end_time=min(total_duration, max_duration),
            total_duration=total_duration,
            max_duration=max_duration,
        )

    @property
    def length(self) -> float:
        return self.end_time - self.start_time

    def is_valid(self) -> bool:
        return (
            0 <= self.start_time < self.end_time <= self.total_duration
            and self.length <= self.max_duration
        )

    def with_start(self, start_time: float) -> "TrimSelection":
        return replace(self, start_time=start_time)

    def with_end(self, end_time: float) -> "TrimSelection":
        return replace(self, end_time=end_time)
