"""Configuration management for the kbchat knowledgebase assistant."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


def _env_bool(name: str, default: str) -> bool:
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
    OPENAI_TIMEOUT: float = float(os.getenv("OPENAI_TIMEOUT", "30"))
    OPENAI_MAX_RETRIES: int = int(os.getenv("OPENAI_MAX_RETRIES", "0"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Embedding Configuration
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_DIMENSIONS: int = int(os.getenv("EMBEDDING_DIMENSIONS", "1536"))

    # Answer Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "1500"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))

    # Query Analysis Configuration
    NLP_USE_LLM: bool = _env_bool("NLP_USE_LLM", "true")
    NLP_MODEL: str = os.getenv("NLP_MODEL", "gpt-4o-mini")
    NLP_MAX_TOKENS: int = int(os.getenv("NLP_MAX_TOKENS", "500"))
    NLP_TEMPERATURE: float = float(os.getenv("NLP_TEMPERATURE", "0.1"))

    # Document Store Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "sqlite").lower()
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/knowledgebase.db")
    )
    VECTOR_STORE_DIR: Path = Path(os.getenv("VECTOR_STORE_DIR", "data/vectors"))
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )

    # Retrieval Configuration
    SIMILARITY_THRESHOLD: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.3"))
    VECTOR_MATCH_COUNT: int = int(os.getenv("VECTOR_MATCH_COUNT", "8"))
    QUERY_AUGMENT_KEYWORDS: int = int(os.getenv("QUERY_AUGMENT_KEYWORDS", "5"))
    ENHANCED_SEARCH_LIMIT: int = int(os.getenv("ENHANCED_SEARCH_LIMIT", "8"))
    BASIC_SEARCH_LIMIT: int = int(os.getenv("BASIC_SEARCH_LIMIT", "5"))

    # Prompt and Ingestion Limits
    MAX_DOCUMENT_CONTEXT_CHARS: int = int(
        os.getenv("MAX_DOCUMENT_CONTEXT_CHARS", "15000")
    )
    EMBEDDING_CONTENT_CHARS: int = int(os.getenv("EMBEDDING_CONTENT_CHARS", "7000"))
    SUMMARY_CHARS: int = int(os.getenv("SUMMARY_CHARS", "500"))
    MIN_EXTRACTED_CHARS: int = int(os.getenv("MIN_EXTRACTED_CHARS", "50"))

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "kbchat/0.1")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If OPENAI_API_KEY is not set or the backend is unknown.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)
        if cls.VECTOR_BACKEND not in {"sqlite", "faiss"}:
            msg = f"VECTOR_BACKEND must be 'sqlite' or 'faiss', got {cls.VECTOR_BACKEND!r}"
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

        Configure logging once at process startup with console output, a
        simple format and a level taken from the environment.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # Configure third-party library log levels via environment variables
        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )

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

    @classmethod
    def openai_client_kwargs(cls, api_key: str | None = None) -> dict:
        """Keyword arguments shared by every OpenAI client the app builds.

        Returns:
            Mapping suitable for ``OpenAI(**kwargs)``.
        """
        default_headers = cls.get_api_headers()
        return {
            "api_key": api_key or cls.get_openai_api_key(),
            "base_url": cls.OPENAI_BASE_URL,
            "default_headers": default_headers or None,
            "timeout": cls.OPENAI_TIMEOUT,
            "max_retries": cls.OPENAI_MAX_RETRIES,
        }


config = Config()
