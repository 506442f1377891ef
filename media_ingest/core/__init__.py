"""Core module for configuration and shared infrastructure."""

from media_ingest.core.config import settings
from media_ingest.core.errors import (
    ConversionRequestError,
    CredentialError,
    DescriptorExpiredError,
    MediaIngestError,
    PollingExhausted,
    UploadError,
    ValidationError,
    describe_error,
)
from media_ingest.core.http import ApiClient, ApiResponseError
from media_ingest.core.retry import RetryConfig, get_retry_config, retry_async
from media_ingest.core.session import SessionContext

__all__ = [
    "settings",
    "MediaIngestError",
    "CredentialError",
    "UploadError",
    "DescriptorExpiredError",
    "ValidationError",
    "ConversionRequestError",
    "PollingExhausted",
    "describe_error",
    "ApiClient",
    "ApiResponseError",
    "RetryConfig",
    "get_retry_config",
    "retry_async",
    "SessionContext",
]
