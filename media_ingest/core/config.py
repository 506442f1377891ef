"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Every value has a default so the package can be imported without any
environment; components receive these as constructor defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "media-ingest"
    VERSION: str = "0.1.0"

    # Application server
    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT_SECONDS: float = 30.0

    # Direct-to-storage uploads
    UPLOAD_TIMEOUT_SECONDS: float = 600.0
    UPLOAD_CHUNK_SIZE: int = 1024 * 1024
    MULTIPART_PART_SIZE: int = 16 * 1024 * 1024
    MULTIPART_CONCURRENCY: int = 10

    # Upload retry policy (caller side)
    UPLOAD_RETRY_MAX_ATTEMPTS: int = 3
    UPLOAD_RETRY_INITIAL_DELAY: float = 2.0
    UPLOAD_RETRY_MAX_DELAY: float = 30.0

    # File constraints
    MAX_VIDEO_FILE_SIZE: int = 20 * 1024 * 1024 * 1024
    MAX_SAMPLE_FILE_SIZE: int = 500 * 1024 * 1024
    MAX_POST_IMAGES: int = 10

    # Trim selection
    TRIM_MAX_DURATION_SECONDS: float = 300.0

    # Conversion status polling
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_MAX_ATTEMPTS: int = 60

    # Server endpoints
    ACCOUNT_PRESIGN_PATH: str = "/account/presign-upload"
    POST_VIDEO_PRESIGN_PATH: str = "/media-assets/presign-video-upload"
    POST_IMAGE_PRESIGN_PATH: str = "/media-assets/presign-image-upload"
    IDENTITY_PRESIGN_PATH: str = "/identity/presign-upload"
    TEMP_UPLOAD_INIT_PATH: str = "/video-temp/temp-upload/main-video"
    TEMP_UPLOAD_BULK_PRESIGN_PATH: str = "/video-temp/temp-upload/bulk-part-presign"
    TEMP_UPLOAD_COMPLETE_PATH: str = "/video-temp/temp-upload/main-video/complete"
    TEMP_PLAYBACK_URL_PATH: str = "/video-temp/playback-url/{key}"
    CONVERSION_TRIGGER_PATH: str = "/media-assets/trigger-batch-process"
    CONVERSION_STATUS_PATH: str = "/media-assets/conversion-status/{post_id}"

    # Media probing
    FFPROBE_PATH: str = "ffprobe"

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    TRACING_ENABLED: bool = False


settings = Settings()
