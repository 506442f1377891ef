"""Pydantic schemas for descriptor brokering and direct uploads."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from media_ingest.modules.media.metadata import Orientation
from media_ingest.modules.upload.models import FileKind


class FileSpec(BaseModel):
    """One file the caller wants to upload."""

    kind: FileKind
    content_type: str
    ext: str
    size: Optional[int] = Field(None, ge=0, description="Local size in bytes, never sent")
    post_id: Optional[str] = None
    orientation: Optional[Orientation] = None

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "kind": self.kind.value,
            "content_type": self.content_type,
            "ext": self.ext,
        }
        if self.post_id is not None:
            body["post_id"] = self.post_id
        if self.orientation is not None:
            body["orientation"] = self.orientation.value
        return body


class UploadTarget(BaseModel):
    """Where and how the bytes are written."""

    url: str
    method: str = "PUT"


class UploadDescriptor(BaseModel):
    """Short-lived permission to write one object to storage."""

    kind: FileKind
    storage_key: str
    target: UploadTarget
    required_headers: dict[str, str] = Field(default_factory=dict)
    expires_at: datetime

    @classmethod
    def from_wire(
        cls,
        kind: FileKind,
        data: dict[str, Any],
        issued_at: Optional[datetime] = None,
    ) -> "UploadDescriptor":
        """Build a descriptor from one entry of the broker's ``uploads`` map.

        Args:
            kind: Kind the entry was issued for
            data: ``{key, upload_url, required_headers, expires_in}``
            issued_at: Reference time for ``expires_in`` (defaults to now)

        Returns:
            UploadDescriptor
        """
        issued_at = issued_at or datetime.now(timezone.utc)
        return cls(
            kind=kind,
            storage_key=data["key"],
            target=UploadTarget(url=data["upload_url"]),
            required_headers=dict(data.get("required_headers") or {}),
            expires_at=issued_at + timedelta(seconds=int(data["expires_in"])),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


class UploadReceipt(BaseModel):
    """Proof that a kind's bytes reached storage."""

    kind: FileKind
    storage_key: str
    bytes_sent: int
    status_code: int
    etag: Optional[str] = None


# ============================================
# Multipart temporary upload
# ============================================
class MultipartInitResponse(BaseModel):
    s3_key: str
    bucket: str = ""
    upload_id: str
    expires_in: int = 0


class PartPresignUrl(BaseModel):
    part_number: int = Field(..., ge=1)
    upload_url: str


class BulkPartPresignResponse(BaseModel):
    urls: list[PartPresignUrl]


class CompletedPart(BaseModel):
    part_number: int = Field(..., ge=1)
    etag: str


class MultipartUploadResult(BaseModel):
    """Outcome of a completed multipart temporary upload."""

    storage_key: str
    upload_id: str
    parts: list[CompletedPart]
    total_bytes: int


class PlaybackUrlResponse(BaseModel):
    playback_url: str
    expires_in: int
