"""Configuration management for the Maestro assistant."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Ingestion Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1024"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "128"))
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

    # Generation Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4.1")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "800"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.3"))
    CHAT_MAX_STEPS: int = int(os.getenv("CHAT_MAX_STEPS", "10"))

    # Turn Decision Configuration
    DECISION_MODEL: str = os.getenv("DECISION_MODEL", "gpt-4o-mini")
    DECISION_WINDOW_SECONDS: int = int(os.getenv("DECISION_WINDOW_SECONDS", "300"))
    DECISION_MAX_MESSAGES: int = int(os.getenv("DECISION_MAX_MESSAGES", "10"))
    DECISION_QUESTION_FAST_PATH: bool = _env_flag("DECISION_QUESTION_FAST_PATH")

    # Conversation Store Configuration
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CONVERSATION_MAX_MESSAGES: int = int(os.getenv("CONVERSATION_MAX_MESSAGES", "10"))
    CONVERSATION_TTL_SECONDS: int = int(
        os.getenv("CONVERSATION_TTL_SECONDS", str(7 * 24 * 60 * 60))
    )
    CONVERSATION_KEY_PREFIX: str = os.getenv("CONVERSATION_KEY_PREFIX", "conversation:")

    # Retrieval Configuration
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "5"))
    RETRIEVAL_MAX_HITS: int = int(os.getenv("RETRIEVAL_MAX_HITS", "8"))

    # Knowledge Index Configuration
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/knowledge.db")
    )
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )
    VECTOR_RAW_TOP_K_MULTIPLIER: int = int(
        os.getenv("VECTOR_RAW_TOP_K_MULTIPLIER", "2")
    )

    # WhatsApp Cloud API Configuration
    WHATSAPP_ACCESS_TOKEN: str = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
    WHATSAPP_PHONE_NUMBER_ID: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
    WHATSAPP_VERIFY_TOKEN: str = os.getenv("WHATSAPP_VERIFY_TOKEN", "")
    WHATSAPP_API_BASE_URL: str = os.getenv(
        "WHATSAPP_API_BASE_URL", "https://graph.facebook.com/v22.0"
    )

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "MaestroAssistant/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If OPENAI_API_KEY is not set.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)

    @classmethod
    def validate_whatsapp(cls) -> None:
        """Validate the settings needed to serve the WhatsApp webhook.

        Raises:
            ValueError: If any WhatsApp credential is missing.
        """
        missing = [
            name
            for name in (
                "WHATSAPP_ACCESS_TOKEN",
                "WHATSAPP_PHONE_NUMBER_ID",
                "WHATSAPP_VERIFY_TOKEN",
            )
            if not getattr(cls, name)
        ]
        if missing:
            msg = f"Missing WhatsApp configuration: {', '.join(missing)}"
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with:
        - Console output for all levels
        - Simple, readable format
        - Configurable level via environment variable
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # Third-party client loggers share the OpenAI level
        third_party_level = getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        for name in ("openai", "httpx"):
            logging.getLogger(name).setLevel(third_party_level)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
