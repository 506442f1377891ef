"""Conversion triggering and status polling module."""

from media_ingest.modules.conversion.schemas import (
    ConversionState,
    ConversionRequest,
    ConversionResponse,
    ConversionStatusResponse,
)
from media_ingest.modules.conversion.client import ConversionTrigger, ConversionStatusClient
from media_ingest.modules.conversion.poller import ConversionStatusPoller

__all__ = [
    "ConversionState",
    "ConversionRequest",
    "ConversionResponse",
    "ConversionStatusResponse",
    "ConversionTrigger",
    "ConversionStatusClient",
    "ConversionStatusPoller",
]
