"""Pydantic schemas for conversion triggering and status polling."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from media_ingest.modules.media.metadata import Orientation


class ConversionState(str, Enum):
    """Conversion as observed by the client."""

    PENDING = "pending"
    CONVERTING = "converting"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ConversionState.READY, ConversionState.FAILED)


class ConversionRequest(BaseModel):
    """Body of a conversion trigger."""

    post_id: str
    tmp_storage_key: str = Field(..., min_length=1)
    need_trim: bool = False
    start_time: Optional[float] = Field(None, ge=0)
    end_time: Optional[float] = Field(None, gt=0)
    main_orientation: Optional[Orientation] = None
    sample_orientation: Optional[Orientation] = None
    content_type: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ConversionResponse(BaseModel):
    status: str
    message: str = ""
    tmp_storage_key: Optional[str] = None


class ConversionStatusResponse(BaseModel):
    is_converting: bool
    main_video_exists: bool = False
    sample_video_exists: bool = False
    message: str = ""

    def outputs_ready(self, sample_required: bool) -> bool:
        """Whether every required output exists."""
        return self.main_video_exists and (self.sample_video_exists or not sample_required)
