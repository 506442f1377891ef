"""Descriptor brokering and direct-to-storage upload module."""

from media_ingest.modules.upload.models import (
    FileKind,
    UploadScope,
    KindConstraint,
    get_constraint,
)
from media_ingest.modules.upload.schemas import (
    FileSpec,
    UploadTarget,
    UploadDescriptor,
    UploadReceipt,
    MultipartUploadResult,
    PlaybackUrlResponse,
)
from media_ingest.modules.upload.broker import (
    UploadCredentialBroker,
    validate_file_spec,
    file_spec_for,
)
from media_ingest.modules.upload.progress import (
    ProgressListener,
    ProgressCell,
    UploadProgressState,
    overall_progress,
)
from media_ingest.modules.upload.executor import DirectUploadExecutor
from media_ingest.modules.upload.multipart import MultipartUploader

__all__ = [
    # Models
    "FileKind",
    "UploadScope",
    "KindConstraint",
    "get_constraint",
    # Schemas
    "FileSpec",
    "UploadTarget",
    "UploadDescriptor",
    "UploadReceipt",
    "MultipartUploadResult",
    "PlaybackUrlResponse",
    # Broker
    "UploadCredentialBroker",
    "validate_file_spec",
    "file_spec_for",
    # Progress
    "ProgressListener",
    "ProgressCell",
    "UploadProgressState",
    "overall_progress",
    # Uploaders
    "DirectUploadExecutor",
    "MultipartUploader",
]
