"""
Configuration settings for the embedding synchronization service.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Redis / run status settings
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SYNC_RUN_KEY_PREFIX: str = os.getenv("SYNC_RUN_KEY_PREFIX", "embeddings:sync:")
    SYNC_RUN_TTL_SECONDS: int = int(os.getenv("SYNC_RUN_TTL_SECONDS", "86400"))

    # Qdrant settings
    QDRANT_URL: str = os.getenv("QDRANT_URL", "http://localhost:6333")
    QDRANT_API_KEY: str | None = os.getenv("QDRANT_API_KEY")
    QDRANT_COLLECTION: str = os.getenv(
        "QDRANT_COLLECTION",
        "products_embeddings",
    )
    QDRANT_SCROLL_LIMIT: int = int(os.getenv("QDRANT_SCROLL_LIMIT", "256"))

    # Encoder settings
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_EMBEDDING_MODEL: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    EMBEDDING_DIMENSIONS: int = int(os.getenv("EMBEDDING_DIMENSIONS", "768"))
    EMBEDDING_VERSION: str = os.getenv("EMBEDDING_VERSION", "1.0")

    # Catalog service
    CATALOG_SERVICE_URL: str = os.getenv(
        "CATALOG_SERVICE_URL", "http://localhost:8080"
    )
    CATALOG_PAGE_SIZE: int = int(os.getenv("CATALOG_PAGE_SIZE", "100"))
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "10"))

    # Synchronization defaults
    SYNC_BATCH_SIZE: int = int(os.getenv("SYNC_BATCH_SIZE", "10"))
    SYNC_DELAY_BETWEEN_BATCHES_MS: int = int(
        os.getenv("SYNC_DELAY_BETWEEN_BATCHES_MS", "1000")
    )
    SYNC_MAX_RETRIES: int = int(os.getenv("SYNC_MAX_RETRIES", "3"))
    SYNC_RETRY_BASE_DELAY_MS: int = int(os.getenv("SYNC_RETRY_BASE_DELAY_MS", "1000"))
    SYNC_REPORT_MAX_ENTRIES: int = int(os.getenv("SYNC_REPORT_MAX_ENTRIES", "100"))

    # Entry point
    SYNC_MODE: str = os.getenv("SYNC_MODE", "initialize")
    SYNC_RECREATE_REASON: str | None = os.getenv("SYNC_RECREATE_REASON")

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    @property
    def encoder_enabled(self) -> bool:
        """Return True when an encoder client can be initialized."""
        return bool(self.OPENAI_API_KEY and self.OPENAI_EMBEDDING_MODEL)

    def __init__(self):
        self.env = os.getenv("ENV", "dev")
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        logging.basicConfig(level=self.log_level)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with env={self.env}, debug={self.debug}, "
            f"log_level={self.log_level}"
        )


# Create a global settings instance for import
settings = Settings()
