"""Direct-to-storage upload executor.

Streams bytes to a descriptor's target with the descriptor's headers
attached unmodified. There is no retry loop here: failures are classified
into ``UploadError`` and the caller decides (see ``core.retry``).
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Union

import httpx

from media_ingest.core import metrics
from media_ingest.core.config import settings
from media_ingest.core.errors import DescriptorExpiredError, UploadError
from media_ingest.core.logging import log_info, log_warning
from media_ingest.core.tracing import create_span
from media_ingest.modules.upload.progress import ProgressCell
from media_ingest.modules.upload.schemas import UploadDescriptor, UploadReceipt

logger = logging.getLogger(__name__)

UploadSource = Union[bytes, bytearray, memoryview, Path]


def source_size(source: UploadSource) -> int:
    if isinstance(source, Path):
        return source.stat().st_size
    return len(source)


async def iter_source(source: UploadSource, chunk_size: int) -> AsyncIterator[bytes]:
    """Yield the source in chunks, reading files lazily."""
    if isinstance(source, Path):
        with source.open("rb") as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        return

    view = memoryview(source)
    for offset in range(0, len(view), chunk_size):
        yield bytes(view[offset:offset + chunk_size])


def has_header(headers: dict[str, str], name: str) -> bool:
    return any(key.lower() == name.lower() for key in headers)


class DirectUploadExecutor:
    """Uploads one kind's bytes to storage and tracks that kind's progress."""

    def __init__(
        self,
        cell: ProgressCell,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize executor.

        Args:
            cell: Progress cell of the kind this executor uploads
            client: Storage HTTP client; a private one is opened per upload if None
            chunk_size: Bytes per streamed chunk
            timeout: Upload timeout in seconds
        """
        self.cell = cell
        self.client = client
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE
        self.timeout = timeout if timeout is not None else settings.UPLOAD_TIMEOUT_SECONDS

    @property
    def kind(self):
        return self.cell.kind

    async def upload(
        self,
        descriptor: UploadDescriptor,
        source: UploadSource,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> UploadReceipt:
        """Write ``source`` to the descriptor's target.

        Args:
            descriptor: Descriptor issued for this executor's kind
            source: Raw bytes or a path to a local file
            on_progress: Called with each new, non-decreasing percentage

        Returns:
            UploadReceipt on any 2xx response

        Raises:
            DescriptorExpiredError: If the descriptor expired before the upload began
            UploadError: On rejection (not retryable) or network/5xx (retryable)
        """
        if descriptor.kind != self.kind:
            raise ValueError(
                f"Executor for '{self.kind.value}' cannot use a '{descriptor.kind.value}' descriptor"
            )
        if descriptor.is_expired():
            metrics.UPLOADS_TOTAL.labels(kind=self.kind.value, outcome="expired").inc()
            raise DescriptorExpiredError(self.kind.value)

        self.cell.reset()
        total = source_size(source)
        started = time.monotonic()

        with create_span(
            "media_ingest.upload",
            {"kind": self.kind.value, "storage_key": descriptor.storage_key, "bytes": total},
        ):
            try:
                response = await self._send(descriptor, source, total, on_progress)
            except asyncio.CancelledError:
                self.cell.reset()
                metrics.UPLOADS_TOTAL.labels(kind=self.kind.value, outcome="cancelled").inc()
                log_warning(logger, f"Upload of '{self.kind.value}' cancelled")
                raise
            except httpx.TransportError as e:
                self.cell.reset()
                metrics.UPLOADS_TOTAL.labels(kind=self.kind.value, outcome="network_error").inc()
                log_warning(logger, f"Upload of '{self.kind.value}' failed: {e}")
                raise UploadError.from_status(None) from e

            if not response.is_success:
                self.cell.reset()
                metrics.UPLOADS_TOTAL.labels(kind=self.kind.value, outcome="rejected").inc()
                error = UploadError.from_status(response.status_code, response.text)
                log_warning(
                    logger,
                    f"Upload of '{self.kind.value}' rejected with {response.status_code}",
                    retryable=error.retryable,
                )
                raise error

        self.cell.mark_uploaded()
        metrics.UPLOADS_TOTAL.labels(kind=self.kind.value, outcome="success").inc()
        metrics.UPLOADED_BYTES_TOTAL.labels(kind=self.kind.value).inc(total)
        metrics.UPLOAD_DURATION_SECONDS.labels(kind=self.kind.value).observe(
            time.monotonic() - started
        )
        log_info(logger, f"Uploaded '{self.kind.value}' ({total} bytes)")

        return UploadReceipt(
            kind=self.kind,
            storage_key=descriptor.storage_key,
            bytes_sent=total,
            status_code=response.status_code,
            etag=response.headers.get("etag"),
        )

    async def _send(
        self,
        descriptor: UploadDescriptor,
        source: UploadSource,
        total: int,
        on_progress: Optional[Callable[[int], None]],
    ) -> httpx.Response:
        headers = dict(descriptor.required_headers)
        if not has_header(headers, "Content-Length"):
            headers["Content-Length"] = str(total)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in iter_source(source, self.chunk_size):
                yield chunk
                sent += len(chunk)
                self._report(sent * 100 / total if total else 100, on_progress)
            if total == 0:
                self._report(100, on_progress)

        if self.client is not None:
            return await self.client.request(
                descriptor.target.method,
                descriptor.target.url,
                content=body(),
                headers=headers,
                timeout=self.timeout,
            )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(
                descriptor.target.method,
                descriptor.target.url,
                content=body(),
                headers=headers,
            )

    def _report(self, percent: float, on_progress: Optional[Callable[[int], None]]) -> None:
        before = self.cell.percent
        now = self.cell.report(percent)
        if on_progress and now > before:
            on_progress(now)
