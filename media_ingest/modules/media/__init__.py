"""Local media inspection module."""

from media_ingest.modules.media.metadata import (
    Orientation,
    ResolutionClass,
    VideoMetadata,
    classify_orientation,
    classify_resolution,
    parse_ffprobe_output,
    probe_video,
)

__all__ = [
    "Orientation",
    "ResolutionClass",
    "VideoMetadata",
    "classify_orientation",
    "classify_resolution",
    "parse_ffprobe_output",
    "probe_video",
]
