# Application Configuration using Pydantic BaseSettings
import logging
from typing import List, Optional

from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    # MongoDB
    MONGO_DETAILS: str = "mongodb://mongo:27017"
    DB_NAME: str = "forms_platform_db"

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "submission-service-api"

    # Shared HTTP client
    DEFAULT_HTTP_TIMEOUT: float = 10.0

    # External AI validation workflow
    AI_VALIDATION_WEBHOOK_URL: Optional[str] = None
    AI_VALIDATION_WEBHOOK_TOKEN: Optional[str] = None
    AI_VALIDATION_CALLBACK_URL: Optional[str] = None # Where the workflow posts its result
    AI_VALIDATION_TIMEOUT_SECONDS: float = 300.0

    # Completion polling (UI responsiveness bound, not a failure timeout)
    VALIDATION_POLL_INTERVAL_SECONDS: float = 3.0
    VALIDATION_POLL_MAX_ATTEMPTS: int = 20

    # Escape hatch that moves a submission to SUBMITTED without an AI run
    ALLOW_SUBMIT_WITHOUT_AI: bool = True

    # Attachment storage (S3-compatible buckets act as named storage areas)
    S3_ENDPOINT_URL: Optional[str] = None
    S3_REGION: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    STORAGE_PUBLIC_BASE_URL: str = "http://localhost:9000"
    DEFAULT_STORAGE_AREA: str = "form-attachments"
    KNOWN_STORAGE_AREAS: List[str] = ["form-attachments", "public", "documents", "attachments", "files", "avatars"]

    # Server-side deletion procedure, preferred over client-side cleanup when set
    DELETE_SUBMISSION_RPC_URL: Optional[str] = None
    DELETE_SUBMISSION_RPC_TOKEN: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# Instantiate settings to be imported by other modules
settings = AppSettings()

logger = logging.getLogger(__name__)
logger.info("Application settings module initialized.")
