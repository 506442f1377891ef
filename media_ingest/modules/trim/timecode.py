"""MM:SS rendering of trim times."""

import math
import re

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def format_timecode(seconds: float) -> str:
    """Render seconds as zero-padded ``MM:SS``, truncating fractions.

    Minutes are not wrapped into hours, so 3725 seconds is ``62:05``.
    """
    if not math.isfinite(seconds) or seconds < 0:
        seconds = 0
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_timecode(text: str) -> int:
    """Parse ``MM:SS`` into whole seconds.

    Anything that is not two colon-separated fields parses as 0; each field
    uses its leading integer, or 0 if it has none.
    """
    parts = text.split(":")
    if len(parts) != 2:
        return 0
    return _leading_int(parts[0]) * 60 + _leading_int(parts[1])
