"""Ingestion job description and results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from media_ingest.core.errors import ValidationError
from media_ingest.modules.conversion.schemas import ConversionState
from media_ingest.modules.media.metadata import Orientation
from media_ingest.modules.upload.executor import UploadSource, source_size
from media_ingest.modules.upload.models import POST_IMAGE_KINDS, FileKind


class PipelineStep(str, Enum):
    """Pipeline steps in execution order."""

    BROKERED = "brokered"
    UPLOADED = "uploaded"
    TRIGGERED = "triggered"
    CONVERTED = "converted"


STEP_ORDER = [
    PipelineStep.BROKERED,
    PipelineStep.UPLOADED,
    PipelineStep.TRIGGERED,
    PipelineStep.CONVERTED,
]


@dataclass
class MediaFile:
    """A local file to ingest."""

    source: UploadSource
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return source_size(self.source)


@dataclass
class IngestJob:
    """Everything needed to ingest one post's media.

    The sample is either uploaded as its own file (``sample``) or cut from
    the main video by the server (``trim``), never both.
    """

    post_id: str
    main: MediaFile
    sample: Optional[MediaFile] = None
    trim: Optional[tuple[float, float]] = None
    images: dict[FileKind, MediaFile] = field(default_factory=dict)
    main_orientation: Optional[Orientation] = None
    sample_orientation: Optional[Orientation] = None

    @property
    def need_trim(self) -> bool:
        return self.trim is not None

    def validate(self) -> None:
        if not self.post_id:
            raise ValidationError("A post_id is required")
        if self.sample is not None and self.trim is not None:
            raise ValidationError("Upload a sample video or cut one out, not both")
        invalid = [k.value for k in self.images if k not in POST_IMAGE_KINDS]
        if invalid:
            raise ValidationError(f"Not a post image kind: {', '.join(invalid)}")

    def direct_files(self) -> dict[FileKind, MediaFile]:
        """Files written through per-kind descriptors (all but the main video)."""
        files = dict(self.images)
        if self.sample is not None:
            files[FileKind.SAMPLE] = self.sample
        return files


@dataclass
class IngestResult:
    post_id: str
    tmp_storage_key: str
    storage_keys: dict[FileKind, str]
    conversion_state: ConversionState
