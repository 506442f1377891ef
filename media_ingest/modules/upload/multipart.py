"""Multipart temporary upload of a main video.

Large main videos are split into fixed-size parts that are written
concurrently to per-part presigned URLs and then stitched together by the
server. The resulting storage key is what a conversion request refers to.
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as SchemaError

from media_ingest.core import metrics
from media_ingest.core.config import settings
from media_ingest.core.errors import CredentialError, UploadError
from media_ingest.core.http import ApiClient, ApiResponseError
from media_ingest.core.logging import log_error, log_info
from media_ingest.core.retry import RetryConfig, get_retry_config, retry_async
from media_ingest.core.tracing import create_span
from media_ingest.modules.upload.executor import UploadSource, source_size
from media_ingest.modules.upload.progress import ProgressCell
from media_ingest.modules.upload.schemas import (
    BulkPartPresignResponse,
    CompletedPart,
    MultipartInitResponse,
    MultipartUploadResult,
    PlaybackUrlResponse,
)

logger = logging.getLogger(__name__)


def plan_parts(total_size: int, part_size: int) -> list[tuple[int, int, int]]:
    """Split ``total_size`` bytes into parts.

    Args:
        total_size: Size of the whole file
        part_size: Size of every part but the last

    Returns:
        List of (part_number, start, end) with 1-based part numbers
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    count = max(1, math.ceil(total_size / part_size))
    return [
        (n + 1, n * part_size, min(total_size, (n + 1) * part_size))
        for n in range(count)
    ]


async def iter_range(
    source: UploadSource, start: int, end: int, chunk_size: int
) -> AsyncIterator[bytes]:
    """Yield bytes [start, end) of the source in chunks."""
    if isinstance(source, Path):
        with source.open("rb") as fh:
            fh.seek(start)
            remaining = end - start
            while remaining > 0:
                chunk = await asyncio.to_thread(fh.read, min(chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk
        return

    view = memoryview(source)
    for offset in range(start, end, chunk_size):
        yield bytes(view[offset:min(end, offset + chunk_size)])


class MultipartUploader:
    """Uploads a main video to temporary storage in concurrent parts."""

    def __init__(
        self,
        api: ApiClient,
        cell: ProgressCell,
        storage_client: Optional[httpx.AsyncClient] = None,
        part_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        chunk_size: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep=None,
    ):
        self.api = api
        self.cell = cell
        self.storage_client = storage_client
        self.part_size = part_size or settings.MULTIPART_PART_SIZE
        self.concurrency = concurrency or settings.MULTIPART_CONCURRENCY
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE
        self.retry_config = retry_config or get_retry_config("multipart_part")
        self._sleep = sleep
        self._part_progress: dict[int, int] = {}
        self._total = 0

    async def upload(
        self,
        filename: str,
        content_type: str,
        source: UploadSource,
    ) -> MultipartUploadResult:
        """Run the init, presign, part upload and complete sequence.

        Args:
            filename: Original filename, sent to the server
            content_type: Video content type
            source: Raw bytes or a path to the local file

        Returns:
            MultipartUploadResult with the temporary storage key

        Raises:
            CredentialError: If init or part presigning is refused
            UploadError: If a part or the completion call fails
        """
        self._total = source_size(source)
        parts = plan_parts(self._total, self.part_size)
        self._part_progress = {number: 0 for number, _, _ in parts}
        self.cell.reset()

        with create_span(
            "media_ingest.upload.multipart",
            {"bytes": self._total, "parts": len(parts)},
        ):
            init = await self._init(filename, content_type)
            urls = await self._presign_parts(init, [number for number, _, _ in parts])

            semaphore = asyncio.Semaphore(self.concurrency)

            async def run_part(number: int, start: int, end: int) -> CompletedPart:
                async with semaphore:
                    etag = await retry_async(
                        lambda: self._put_part(urls[number], number, source, start, end),
                        self.retry_config,
                        sleep=self._sleep,
                    )
                    return CompletedPart(part_number=number, etag=etag)

            tasks = [
                asyncio.ensure_future(run_part(number, start, end))
                for number, start, end in parts
            ]
            try:
                completed = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                self.cell.reset()
                metrics.UPLOADS_TOTAL.labels(kind=self.cell.kind.value, outcome="failed").inc()
                raise

            completed = sorted(completed, key=lambda p: p.part_number)
            await self._complete(init, completed)

        self.cell.mark_uploaded()
        metrics.UPLOADS_TOTAL.labels(kind=self.cell.kind.value, outcome="success").inc()
        metrics.UPLOADED_BYTES_TOTAL.labels(kind=self.cell.kind.value).inc(self._total)
        log_info(logger, f"Multipart upload complete ({len(completed)} parts)", storage_key=init.s3_key)

        return MultipartUploadResult(
            storage_key=init.s3_key,
            upload_id=init.upload_id,
            parts=completed,
            total_bytes=self._total,
        )

    async def get_playback_url(self, storage_key: str) -> PlaybackUrlResponse:
        """Get a short-lived URL for previewing the temporary upload.

        Raises:
            CredentialError: If the server refuses or the reply is malformed
        """
        path = settings.TEMP_PLAYBACK_URL_PATH.format(key=quote(storage_key, safe=""))
        try:
            data = await self.api.get_json(path)
            return PlaybackUrlResponse.model_validate(data)
        except ApiResponseError as e:
            raise CredentialError(
                e.server_message or f"Playback URL rejected ({e.status_code})",
                status_code=e.status_code,
                details=e.details,
            ) from e
        except httpx.TransportError as e:
            raise CredentialError("Could not reach the server") from e
        except SchemaError as e:
            raise CredentialError("Unexpected reply to the playback URL request") from e

    async def _init(self, filename: str, content_type: str) -> MultipartInitResponse:
        try:
            data = await self.api.post_form(
                settings.TEMP_UPLOAD_INIT_PATH,
                {"filename": filename, "content_type": content_type or "video/mp4"},
            )
        except ApiResponseError as e:
            log_error(logger, "Multipart init rejected", status_code=e.status_code)
            raise CredentialError(
                e.server_message or f"Upload init rejected ({e.status_code})",
                status_code=e.status_code,
                details=e.details,
            ) from e
        except httpx.TransportError as e:
            raise CredentialError("Could not reach the server") from e

        try:
            return MultipartInitResponse.model_validate(data)
        except SchemaError as e:
            log_error(logger, "Multipart init reply malformed")
            raise CredentialError("Unexpected reply to the upload init request", details=data) from e

    async def _presign_parts(
        self, init: MultipartInitResponse, part_numbers: list[int]
    ) -> dict[int, str]:
        try:
            data = await self.api.post_json(
                settings.TEMP_UPLOAD_BULK_PRESIGN_PATH,
                {"s3_key": init.s3_key, "upload_id": init.upload_id, "part_numbers": part_numbers},
            )
        except ApiResponseError as e:
            raise CredentialError(
                e.server_message or f"Part presign rejected ({e.status_code})",
                status_code=e.status_code,
                details=e.details,
            ) from e
        except httpx.TransportError as e:
            raise CredentialError("Could not reach the server") from e

        try:
            presigned = BulkPartPresignResponse.model_validate(data)
        except SchemaError as e:
            raise CredentialError("Unexpected reply to the part presign request", details=data) from e

        urls = {u.part_number: u.upload_url for u in presigned.urls}
        missing = [n for n in part_numbers if n not in urls]
        if missing:
            raise CredentialError(
                f"No presigned URL for parts: {', '.join(map(str, missing))}",
                details={"missing": missing},
            )
        return urls

    async def _put_part(
        self,
        url: str,
        number: int,
        source: UploadSource,
        start: int,
        end: int,
    ) -> str:
        size = end - start
        self._set_part_progress(number, 0, size)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in iter_range(source, start, end, self.chunk_size):
                yield chunk
                sent += len(chunk)
                self._set_part_progress(number, sent, size)

        headers = {"Content-Length": str(size)}
        try:
            if self.storage_client is not None:
                response = await self.storage_client.put(url, content=body(), headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.UPLOAD_TIMEOUT_SECONDS) as client:
                    response = await client.put(url, content=body(), headers=headers)
        except httpx.TransportError as e:
            raise UploadError.from_status(None) from e

        if not response.is_success:
            raise UploadError.from_status(response.status_code, response.text)

        etag = response.headers.get("etag")
        if not etag:
            raise UploadError(
                f"Part {number} response carried no ETag",
                status=response.status_code,
                retryable=True,
            )
        return etag

    async def _complete(self, init: MultipartInitResponse, parts: list[CompletedPart]) -> None:
        try:
            await self.api.post_json(
                settings.TEMP_UPLOAD_COMPLETE_PATH,
                {
                    "s3_key": init.s3_key,
                    "upload_id": init.upload_id,
                    "parts": [p.model_dump() for p in parts],
                },
            )
        except ApiResponseError as e:
            raise UploadError.from_status(e.status_code, str(e.details)) from e
        except httpx.TransportError as e:
            raise UploadError.from_status(None) from e

    def _set_part_progress(self, number: int, sent: int, size: int) -> None:
        self._part_progress[number] = sent
        if self._total == 0:
            return
        # Capped below 100 until the server acknowledges completion
        uploaded = sum(self._part_progress.values())
        self.cell.report(min(99, uploaded * 100 / self._total))
