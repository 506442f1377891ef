"""End-to-end media ingestion module."""

from media_ingest.modules.pipeline.models import (
    PipelineStep,
    MediaFile,
    IngestJob,
    IngestResult,
)
from media_ingest.modules.pipeline.presenter import MessagePresenter, LoggingPresenter
from media_ingest.modules.pipeline.service import MediaIngestPipeline

__all__ = [
    "PipelineStep",
    "MediaFile",
    "IngestJob",
    "IngestResult",
    "MessagePresenter",
    "LoggingPresenter",
    "MediaIngestPipeline",
]
