"""Upload credential broker.

Asks the application server for one short-lived write descriptor per file.
The exchange is all-or-nothing: either every requested kind comes back or
``CredentialError`` is raised and nothing is returned.
"""

import logging
import os
from collections import Counter
from datetime import datetime, timezone
from typing import Optional, Sequence

import httpx

from media_ingest.core import metrics
from media_ingest.core.config import settings
from media_ingest.core.errors import CredentialError, ValidationError
from media_ingest.core.http import ApiClient, ApiResponseError
from media_ingest.core.logging import log_error, log_info
from media_ingest.core.tracing import create_span
from media_ingest.modules.upload.models import (
    POST_SCOPES,
    SCOPE_KINDS,
    FileKind,
    UploadScope,
    get_constraint,
)
from media_ingest.modules.upload.schemas import FileSpec, UploadDescriptor

logger = logging.getLogger(__name__)


def scope_paths() -> dict[UploadScope, str]:
    """Broker endpoint per scope, from settings."""
    return {
        UploadScope.ACCOUNT: settings.ACCOUNT_PRESIGN_PATH,
        UploadScope.POST_VIDEO: settings.POST_VIDEO_PRESIGN_PATH,
        UploadScope.POST_IMAGE: settings.POST_IMAGE_PRESIGN_PATH,
        UploadScope.IDENTITY: settings.IDENTITY_PRESIGN_PATH,
    }


def validate_file_spec(spec: FileSpec, scope: UploadScope) -> None:
    """Check a file against its kind's content constraint.

    Args:
        spec: File to validate
        scope: Scope the request is made under

    Raises:
        ValidationError: If the kind, type, extension or size is not allowed
    """
    if spec.kind not in SCOPE_KINDS[scope]:
        raise ValidationError(
            f"File kind '{spec.kind.value}' cannot be uploaded in scope '{scope.value}'"
        )

    constraint = get_constraint(spec.kind)
    if spec.content_type not in constraint.content_types:
        raise ValidationError(
            f"Content type '{spec.content_type}' is not allowed for '{spec.kind.value}'"
        )

    ext = spec.ext.lower().lstrip(".")
    if ext not in constraint.extensions:
        raise ValidationError(
            f"Extension '{spec.ext}' is not allowed for '{spec.kind.value}'. "
            f"Allowed: {', '.join(sorted(constraint.extensions))}"
        )

    if spec.size is not None:
        if spec.size <= 0:
            raise ValidationError("File size must be greater than 0")
        if constraint.max_size is not None and spec.size > constraint.max_size:
            raise ValidationError(
                f"File size {spec.size} exceeds maximum allowed size of "
                f"{constraint.max_size} bytes for '{spec.kind.value}'"
            )

    if scope in POST_SCOPES and not spec.post_id:
        raise ValidationError(f"'{spec.kind.value}' requires a post_id")


def file_spec_for(
    kind: FileKind,
    filename: str,
    content_type: str,
    size: Optional[int] = None,
    **extra,
) -> FileSpec:
    """Build a FileSpec from a local filename."""
    ext = os.path.splitext(filename)[1].lower().lstrip(".")
    return FileSpec(kind=kind, content_type=content_type, ext=ext, size=size, **extra)


class UploadCredentialBroker:
    """Client for the descriptor-issuing endpoints."""

    def __init__(self, api: ApiClient, max_post_images: Optional[int] = None):
        """Initialize broker.

        Args:
            api: Application server client carrying the caller's session
            max_post_images: Limit on image kinds per request
        """
        self.api = api
        self.max_post_images = (
            max_post_images if max_post_images is not None else settings.MAX_POST_IMAGES
        )

    def _check_request(self, scope: UploadScope, files: Sequence[FileSpec]) -> None:
        if not files:
            raise ValidationError("No files to upload")

        duplicates = sorted(
            kind.value for kind, count in Counter(f.kind for f in files).items() if count > 1
        )
        if duplicates:
            raise CredentialError(
                f"Duplicate file kinds in request: {', '.join(duplicates)}",
                details={"duplicates": duplicates},
            )

        for spec in files:
            validate_file_spec(spec, scope)

        image_count = sum(1 for f in files if f.kind.value.startswith("image-"))
        if image_count > self.max_post_images:
            raise ValidationError(f"At most {self.max_post_images} images can be uploaded")

    async def request_descriptors(
        self,
        scope: UploadScope,
        files: Sequence[FileSpec],
        reissue: bool = False,
    ) -> dict[FileKind, UploadDescriptor]:
        """Request one descriptor per file.

        Args:
            scope: Which endpoint to ask
            files: Files with pairwise distinct kinds
            reissue: Replace files of an existing post. The same endpoint
                is called with PUT; only post scopes support it.

        Returns:
            Mapping of kind to its descriptor, covering every requested kind

        Raises:
            ValidationError: If a file violates its kind's constraint
            CredentialError: If kinds repeat or the server rejects the request
        """
        if reissue and scope not in POST_SCOPES:
            raise ValidationError(f"Descriptors cannot be reissued in scope '{scope.value}'")
        self._check_request(scope, files)

        requested = [f.kind for f in files]
        body = {"files": [f.to_wire() for f in files]}
        send = self.api.put_json if reissue else self.api.post_json

        with create_span(
            "media_ingest.broker.request",
            {"scope": scope.value, "kinds": ",".join(k.value for k in requested), "reissue": reissue},
        ):
            issued_at = datetime.now(timezone.utc)
            try:
                data = await send(scope_paths()[scope], body)
            except ApiResponseError as e:
                metrics.DESCRIPTOR_REQUESTS_TOTAL.labels(scope=scope.value, outcome="rejected").inc()
                log_error(logger, "Descriptor request rejected", status_code=e.status_code)
                raise CredentialError(
                    e.server_message or f"Upload request rejected ({e.status_code})",
                    status_code=e.status_code,
                    details=e.details,
                ) from e
            except httpx.TransportError as e:
                metrics.DESCRIPTOR_REQUESTS_TOTAL.labels(scope=scope.value, outcome="error").inc()
                log_error(logger, "Descriptor request failed", exception=e)
                raise CredentialError("Could not reach the server") from e

            descriptors = self._parse_uploads(data, requested, issued_at)

        metrics.DESCRIPTOR_REQUESTS_TOTAL.labels(scope=scope.value, outcome="issued").inc()
        log_info(
            logger,
            f"{'Reissued' if reissue else 'Issued'} {len(descriptors)} upload descriptors",
            scope=scope.value,
        )
        return descriptors

    def _parse_uploads(
        self,
        data: dict,
        requested: list[FileKind],
        issued_at: datetime,
    ) -> dict[FileKind, UploadDescriptor]:
        uploads = data.get("uploads")
        if not isinstance(uploads, dict):
            raise CredentialError("Malformed descriptor response", details=data)

        missing = [k.value for k in requested if k.value not in uploads]
        if missing:
            raise CredentialError(
                f"Server did not issue descriptors for: {', '.join(missing)}",
                details={"missing": missing},
            )

        try:
            return {
                kind: UploadDescriptor.from_wire(kind, uploads[kind.value], issued_at)
                for kind in requested
            }
        except (KeyError, TypeError, ValueError) as e:
            raise CredentialError("Malformed descriptor response", details=data) from e
