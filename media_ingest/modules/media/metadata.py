"""Local media inspection: duration, dimensions and their classification.

Duration feeds the trim selector; orientation becomes the hint sent with a
conversion request.
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from media_ingest.core.config import settings
from media_ingest.core.errors import ValidationError

logger = logging.getLogger(__name__)


class Orientation(str, Enum):
    """Aspect class of an image or video frame."""

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    SQUARE = "square"


class ResolutionClass(str, Enum):
    """Coarse resolution bucket of a video."""

    RES_4K = "4K"
    RES_1080P = "1080p"
    RES_720P = "720p"
    SD = "SD"


@dataclass(frozen=True)
class VideoMetadata:
    """What the pipeline needs to know about a local video."""

    width: int
    height: int
    duration: float

    @property
    def orientation(self) -> Orientation:
        return classify_orientation(self.width, self.height)

    @property
    def resolution(self) -> ResolutionClass:
        return classify_resolution(self.width, self.height)


def classify_orientation(width: int, height: int) -> Orientation:
    """Classify frame dimensions as portrait, landscape or square."""
    if width > height:
        return Orientation.LANDSCAPE
    if height > width:
        return Orientation.PORTRAIT
    return Orientation.SQUARE


def classify_resolution(width: int, height: int) -> ResolutionClass:
    """Bucket frame dimensions into a resolution class."""
    if width >= 3840 or height >= 2160:
        return ResolutionClass.RES_4K
    if width >= 1920 or height >= 1080:
        return ResolutionClass.RES_1080P
    if width >= 1280 or height >= 720:
        return ResolutionClass.RES_720P
    return ResolutionClass.SD


def parse_ffprobe_output(info: dict) -> VideoMetadata:
    """Extract dimensions and duration from ffprobe's JSON output.

    Args:
        info: Parsed ``ffprobe -show_format -show_streams`` output

    Returns:
        VideoMetadata for the first video stream

    Raises:
        ValidationError: If there is no video stream or no usable duration
    """
    video_stream = next(
        (s for s in info.get("streams", []) if s.get("codec_type") == "video"),
        None,
    )
    if video_stream is None:
        raise ValidationError("File does not contain a video stream")

    raw_duration = video_stream.get("duration") or info.get("format", {}).get("duration")
    try:
        duration = float(raw_duration)
    except (TypeError, ValueError):
        duration = 0.0
    if duration <= 0:
        raise ValidationError("Could not determine the video duration")

    return VideoMetadata(
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
        duration=duration,
    )


def probe_video(path: str, ffprobe_path: Optional[str] = None) -> VideoMetadata:
    """Read video metadata using ffprobe.

    Args:
        path: Path to a local video file
        ffprobe_path: ffprobe binary (defaults to settings)

    Returns:
        VideoMetadata

    Raises:
        ValidationError: If the file cannot be probed
    """
    cmd = [
        ffprobe_path or settings.FFPROBE_PATH,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        info = json.loads(result.stdout)
    except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as e:
        logger.warning(f"ffprobe failed for {path}: {e}")
        raise ValidationError("Failed to read the video file") from e

    return parse_ffprobe_output(info)
