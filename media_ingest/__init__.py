"""Media ingestion client.

Uploads post media directly to object storage, lets the user pick a
trimmed sample range, and coordinates server-side conversion.

Modules:
    - core: Configuration, logging, tracing, metrics, errors, retry, HTTP
    - modules.upload: Descriptor brokering, direct and multipart uploads
    - modules.trim: Trim range selection
    - modules.conversion: Conversion trigger and status polling
    - modules.media: Local video probing and classification
    - modules.pipeline: End-to-end ingestion of one post
"""

__version__ = "0.1.0"


def configure() -> None:
    """Set up logging and, when enabled, tracing from settings.

    Call once at application start-up.
    """
    from media_ingest.core.config import settings
    from media_ingest.core.logging import setup_logging
    from media_ingest.core.tracing import setup_tracing

    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        include_stack_trace=True,
    )
    if settings.TRACING_ENABLED:
        setup_tracing(
            service_name=settings.PROJECT_NAME,
            service_version=settings.VERSION,
        )
