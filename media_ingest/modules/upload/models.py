"""File kinds, upload scopes and the content constraints attached to them."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from media_ingest.core.config import settings


class FileKind(str, Enum):
    """Semantic bucket of an uploaded file. Unique within one request."""

    AVATAR = "avatar"
    COVER = "cover"
    MAIN = "main"
    SAMPLE = "sample"
    THUMBNAIL = "thumbnail"
    OGP = "ogp"
    IMAGE_1 = "image-1"
    IMAGE_2 = "image-2"
    IMAGE_3 = "image-3"
    IMAGE_4 = "image-4"
    IMAGE_5 = "image-5"
    IMAGE_6 = "image-6"
    IMAGE_7 = "image-7"
    IMAGE_8 = "image-8"
    IMAGE_9 = "image-9"
    IMAGE_10 = "image-10"
    FRONT = "front"
    BACK = "back"
    SELFIE = "selfie"

    @classmethod
    def image(cls, index: int) -> "FileKind":
        """Kind for the ``index``-th post image (1-based)."""
        return cls(f"image-{index}")

    @property
    def is_video(self) -> bool:
        return self in VIDEO_KINDS


class UploadScope(str, Enum):
    """Which server endpoint issues descriptors, and for which kinds."""

    ACCOUNT = "account"
    POST_VIDEO = "post_video"
    POST_IMAGE = "post_image"
    IDENTITY = "identity"


VIDEO_KINDS = frozenset({FileKind.MAIN, FileKind.SAMPLE})
POST_IMAGE_KINDS = frozenset(
    {FileKind.THUMBNAIL, FileKind.OGP} | {FileKind.image(i) for i in range(1, 11)}
)

SCOPE_KINDS: dict[UploadScope, frozenset[FileKind]] = {
    UploadScope.ACCOUNT: frozenset({FileKind.AVATAR, FileKind.COVER}),
    UploadScope.POST_VIDEO: VIDEO_KINDS,
    UploadScope.POST_IMAGE: POST_IMAGE_KINDS,
    UploadScope.IDENTITY: frozenset({FileKind.FRONT, FileKind.BACK, FileKind.SELFIE}),
}

# Post scopes carry post_id and orientation on every file spec
POST_SCOPES = frozenset({UploadScope.POST_VIDEO, UploadScope.POST_IMAGE})

VIDEO_CONTENT_TYPES = frozenset(
    {"video/mp4", "video/avi", "video/mov", "video/wmv", "video/quicktime"}
)
VIDEO_EXTENSIONS = frozenset({"mp4", "avi", "mov", "wmv"})
IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})
IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png"})
DOCUMENT_CONTENT_TYPES = IMAGE_CONTENT_TYPES | {"application/pdf"}
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {"pdf"}


@dataclass(frozen=True)
class KindConstraint:
    """What a kind accepts."""

    content_types: frozenset[str]
    extensions: frozenset[str]
    max_size: Optional[int] = None


def get_constraint(kind: FileKind) -> KindConstraint:
    """Look up the content constraint for a kind.

    Args:
        kind: File kind

    Returns:
        Allowed content types, extensions and size limit
    """
    if kind == FileKind.MAIN:
        return KindConstraint(VIDEO_CONTENT_TYPES, VIDEO_EXTENSIONS, settings.MAX_VIDEO_FILE_SIZE)
    if kind == FileKind.SAMPLE:
        return KindConstraint(VIDEO_CONTENT_TYPES, VIDEO_EXTENSIONS, settings.MAX_SAMPLE_FILE_SIZE)
    if kind in SCOPE_KINDS[UploadScope.IDENTITY]:
        return KindConstraint(DOCUMENT_CONTENT_TYPES, DOCUMENT_EXTENSIONS)
    return KindConstraint(IMAGE_CONTENT_TYPES, IMAGE_EXTENSIONS)
