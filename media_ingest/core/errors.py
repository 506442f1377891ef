"""Error taxonomy for the ingestion pipeline.

Every failure that leaves a component is one of these. ``ValidationError``
is raised before any network call and never reaches the server; the others
are caught where they occur and turned into user-facing text with
``describe_error``.
"""

from typing import Optional


class MediaIngestError(Exception):
    """Base exception for ingestion pipeline errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class CredentialError(MediaIngestError):
    """Raised when the server rejects a whole descriptor request."""

    pass


class UploadError(MediaIngestError):
    """Raised when a direct upload to storage fails.

    ``retryable`` tells the caller whether the same descriptor may be used
    again. A non-retryable failure means the descriptor must be re-brokered.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retryable: bool = False,
        details: Optional[dict] = None,
    ):
        super().__init__(message, status_code=status, details=details)
        self.status = status
        self.retryable = retryable

    @classmethod
    def from_status(cls, status: Optional[int], body: str = "") -> "UploadError":
        """Classify a failed storage write.

        Args:
            status: HTTP status, or None for a network failure/timeout
            body: Response body excerpt for diagnostics

        Returns:
            UploadError with ``retryable`` set by status class
        """
        if status is None:
            return cls("Storage upload failed: network error", status=None, retryable=True)

        excerpt = body[:500]
        if status in (400, 403):
            return cls(
                f"Upload descriptor rejected by storage ({status})",
                status=status,
                retryable=False,
                details={"body": excerpt},
            )
        if status >= 500:
            return cls(
                f"Storage upload failed ({status})",
                status=status,
                retryable=True,
                details={"body": excerpt},
            )
        return cls(
            f"Storage upload failed ({status})",
            status=status,
            retryable=False,
            details={"body": excerpt},
        )


class DescriptorExpiredError(UploadError):
    """Raised when an upload is attempted with an expired descriptor."""

    def __init__(self, kind: str):
        super().__init__(
            f"Upload descriptor for '{kind}' has expired",
            status=None,
            retryable=False,
            details={"kind": kind},
        )


class ValidationError(MediaIngestError):
    """Raised for trim-bounds or file-constraint violations on the client."""

    pass


class ConversionRequestError(MediaIngestError):
    """Raised when the server refuses a conversion trigger."""

    pass


class PollingExhausted(MediaIngestError):
    """Raised when the poll budget runs out while conversion is still running.

    The absence of a success signal is not proof of failure, so this is
    presented as "still processing".
    """

    def __init__(self, post_id: str, attempts: int):
        super().__init__(
            f"Conversion of '{post_id}' still running after {attempts} polls",
            details={"post_id": post_id, "attempts": attempts},
        )
        self.post_id = post_id
        self.attempts = attempts


def describe_error(exc: Exception) -> str:
    """Convert an error into a message for the presentation layer.

    Args:
        exc: Error raised by a pipeline step

    Returns:
        Human-readable message
    """
    if isinstance(exc, DescriptorExpiredError):
        return "The upload link has expired. Please start the upload again."
    if isinstance(exc, CredentialError):
        return f"Could not prepare the upload: {exc.message}"
    if isinstance(exc, UploadError):
        if exc.retryable:
            return "The upload was interrupted. Please try again."
        return "The upload was rejected by storage. Please start the upload again."
    if isinstance(exc, ValidationError):
        return exc.message
    if isinstance(exc, ConversionRequestError):
        return f"The video could not be submitted for processing: {exc.message}"
    if isinstance(exc, PollingExhausted):
        return "Your video is still processing. Please check back later."
    return "An unexpected error occurred. Please try again later."
