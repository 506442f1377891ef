"""Trim range selection module."""

from media_ingest.modules.trim.models import (
    Handle,
    TrimSelection,
    TrimState,
    check_trim_bounds,
    length_exceeded_message,
)
from media_ingest.modules.trim.selector import TrimRangeSelector, position_to_time
from media_ingest.modules.trim.timecode import format_timecode, parse_timecode

__all__ = [
    "Handle",
    "TrimSelection",
    "TrimState",
    "check_trim_bounds",
    "length_exceeded_message",
    "TrimRangeSelector",
    "position_to_time",
    "format_timecode",
    "parse_timecode",
]
