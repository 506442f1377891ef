"""Conversion trigger and status clients.

The trigger only enqueues work on the server's processing system and
returns at once; completion is observed by polling the status endpoint.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as SchemaError

from media_ingest.core import metrics
from media_ingest.core.config import settings
from media_ingest.core.errors import ConversionRequestError, ValidationError
from media_ingest.core.http import ApiClient, ApiResponseError
from media_ingest.core.logging import log_error, log_info
from media_ingest.core.tracing import create_span
from media_ingest.modules.conversion.schemas import (
    ConversionRequest,
    ConversionResponse,
    ConversionStatusResponse,
)
from media_ingest.modules.media.metadata import Orientation
from media_ingest.modules.trim.models import check_trim_bounds

logger = logging.getLogger(__name__)


class ConversionTrigger:
    """Asks the server to start converting an uploaded video."""

    def __init__(self, api: ApiClient, max_trim_duration: Optional[float] = None):
        self.api = api
        self.max_trim_duration = (
            max_trim_duration
            if max_trim_duration is not None
            else settings.TRIM_MAX_DURATION_SECONDS
        )

    def build_request(
        self,
        post_id: str,
        tmp_storage_key: str,
        need_trim: bool,
        trim_bounds: Optional[tuple[float, float]] = None,
        main_orientation: Optional[Orientation] = None,
        sample_orientation: Optional[Orientation] = None,
        content_type: Optional[str] = None,
    ) -> ConversionRequest:
        """Validate inputs and build the trigger body.

        Raises:
            ValidationError: If the key is empty or trim bounds are missing/invalid
        """
        if not tmp_storage_key:
            raise ValidationError("The main video has not been uploaded")

        start_time = end_time = None
        if need_trim:
            start_time, end_time = trim_bounds if trim_bounds else (None, None)
            check_trim_bounds(start_time, end_time, self.max_trim_duration)
            # The trimmed sample is cut from the main video
            sample_orientation = sample_orientation or main_orientation

        return ConversionRequest(
            post_id=post_id,
            tmp_storage_key=tmp_storage_key,
            need_trim=need_trim,
            start_time=start_time,
            end_time=end_time,
            main_orientation=main_orientation,
            sample_orientation=sample_orientation,
            content_type=content_type,
        )

    async def request_conversion(
        self,
        post_id: str,
        tmp_storage_key: str,
        need_trim: bool = False,
        trim_bounds: Optional[tuple[float, float]] = None,
        main_orientation: Optional[Orientation] = None,
        sample_orientation: Optional[Orientation] = None,
        content_type: Optional[str] = None,
    ) -> ConversionResponse:
        """Trigger conversion of an uploaded main video.

        Args:
            post_id: Post the video belongs to
            tmp_storage_key: Key of the completed temporary upload
            need_trim: Whether a sample should be cut from the main video
            trim_bounds: (start_time, end_time), required when need_trim
            main_orientation: Orientation hint for the main output
            sample_orientation: Orientation hint for the sample output
            content_type: Content type of the uploaded video

        Returns:
            ConversionResponse from the server

        Raises:
            ValidationError: If inputs are invalid (nothing is sent)
            ConversionRequestError: If the server refuses the trigger
        """
        request = self.build_request(
            post_id,
            tmp_storage_key,
            need_trim,
            trim_bounds,
            main_orientation,
            sample_orientation,
            content_type,
        )

        with create_span(
            "media_ingest.conversion.trigger",
            {"post_id": post_id, "need_trim": need_trim},
        ):
            try:
                data = await self.api.post_json(settings.CONVERSION_TRIGGER_PATH, request.to_wire())
            except ApiResponseError as e:
                metrics.CONVERSION_TRIGGERS_TOTAL.labels(outcome="rejected").inc()
                log_error(logger, "Conversion trigger rejected", status_code=e.status_code, post_id=post_id)
                raise ConversionRequestError(
                    e.server_message or f"Conversion request rejected ({e.status_code})",
                    status_code=e.status_code,
                    details=e.details,
                ) from e
            except httpx.TransportError as e:
                metrics.CONVERSION_TRIGGERS_TOTAL.labels(outcome="error").inc()
                log_error(logger, "Conversion trigger failed", exception=e, post_id=post_id)
                raise ConversionRequestError("Could not reach the server") from e

            try:
                response = ConversionResponse.model_validate(data)
            except SchemaError as e:
                metrics.CONVERSION_TRIGGERS_TOTAL.labels(outcome="error").inc()
                log_error(logger, "Conversion trigger reply malformed", post_id=post_id)
                raise ConversionRequestError("Unexpected reply to the conversion request", details=data) from e

            if response.status.lower() == "error":
                metrics.CONVERSION_TRIGGERS_TOTAL.labels(outcome="rejected").inc()
                raise ConversionRequestError(
                    response.message or "Conversion request rejected",
                    details=data,
                )

        metrics.CONVERSION_TRIGGERS_TOTAL.labels(outcome="accepted").inc()
        log_info(logger, "Conversion triggered", post_id=post_id, need_trim=need_trim)
        return response


class ConversionStatusClient:
    """Reads conversion status for a post."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_status(self, post_id: str) -> ConversionStatusResponse:
        """Fetch the current conversion status of a post.

        Raises:
            ApiResponseError: If the request fails or the reply does not
                match the status schema
            httpx.TransportError: If the server could not be reached
        """
        path = settings.CONVERSION_STATUS_PATH.format(post_id=quote(post_id, safe=""))
        data = await self.api.get_json(path)
        try:
            return ConversionStatusResponse.model_validate(data)
        except SchemaError as e:
            raise ApiResponseError(
                f"GET {path} returned an unexpected status body",
                status_code=200,
                details=data,
            ) from e
