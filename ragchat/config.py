"""Configuration management for the ragchat application."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


class Config:
    """Settings for models, retrieval, memory and ingestion, read from the environment."""

    # OpenAI-compatible endpoint (OpenAI, Ollama, vLLM, ...)
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Return the key for the model endpoint, read at call time.

        Returns:
            The OPENAI_API_KEY value, or an empty string.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Ingestion Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    INGEST_MAX_WORKERS: int = int(
        os.getenv("INGEST_MAX_WORKERS", str(max(2, os.cpu_count() or 1)))
    )
    KNOWLEDGE_BASE_DIR: Path = Path(os.getenv("KNOWLEDGE_BASE_DIR", "knowledgebase"))

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4.1-nano-2025-04-14")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "500"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
    CHAT_TOP_K: int = int(os.getenv("CHAT_TOP_K", "40"))
    CHAT_TOP_P: float = float(os.getenv("CHAT_TOP_P", "0.9"))
    CHAT_REPEAT_PENALTY: float = float(os.getenv("CHAT_REPEAT_PENALTY", "1.1"))

    # Query Expansion Configuration
    EXPANSION_MAX_TOKENS: int = int(os.getenv("EXPANSION_MAX_TOKENS", "150"))
    EXPANSION_TEMPERATURE: float = float(os.getenv("EXPANSION_TEMPERATURE", "0.0"))
    EXPANSION_TOP_K: int = int(os.getenv("EXPANSION_TOP_K", "1"))
    EXPANSION_TOP_P: float = float(os.getenv("EXPANSION_TOP_P", "0.1"))
    EXPANSION_REPEAT_PENALTY: float = float(
        os.getenv("EXPANSION_REPEAT_PENALTY", "1.0")
    )

    # Retrieval Configuration
    RAG_TOP_K: int = int(os.getenv("RAG_TOP_K", "4"))
    RAG_SIMILARITY_THRESHOLD: float = float(
        os.getenv("RAG_SIMILARITY_THRESHOLD", "0.5")
    )
    RAG_SEARCH_MULTIPLIER: int = int(os.getenv("RAG_SEARCH_MULTIPLIER", "2"))
    BM25_K1: float = float(os.getenv("BM25_K1", "1.2"))
    BM25_B: float = float(os.getenv("BM25_B", "0.75"))

    # Conversation Memory Configuration
    MEMORY_MAX_MESSAGES: int = int(os.getenv("MEMORY_MAX_MESSAGES", "8"))
    CHAT_DB_PATH: Path = Path(os.getenv("CHAT_DB_PATH", "data/chats.db"))

    # Vector Store Configuration
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/vector_store.db")
    )
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "ragchat/1.0")
    API_TEST_HEADER_NAME: str | None = os.getenv("API_TEST_HEADER_NAME")
    API_TEST_HEADER_VALUE: str | None = os.getenv("API_TEST_HEADER_VALUE")

    @classmethod
    def validate(cls) -> None:
        """Fail fast on a missing key or out-of-range retrieval settings.

        Raises:
            ValueError: If OPENAI_API_KEY is not set or a retrieval/memory
                setting is out of range.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required (set it in the environment or .env)"
            )
            raise ValueError(msg)

        problems = []
        if cls.RAG_TOP_K < 1:
            problems.append("RAG_TOP_K must be positive")
        if cls.RAG_SEARCH_MULTIPLIER < 1:
            problems.append("RAG_SEARCH_MULTIPLIER must be at least 1")
        if not 0.0 <= cls.RAG_SIMILARITY_THRESHOLD <= 1.0:
            problems.append("RAG_SIMILARITY_THRESHOLD must be within [0, 1]")
        if cls.MEMORY_MAX_MESSAGES < 1:
            problems.append("MEMORY_MAX_MESSAGES must be positive")
        if cls.INGEST_MAX_WORKERS < 1:
            problems.append("INGEST_MAX_WORKERS must be positive")

        if problems:
            msg = "Invalid configuration: " + "; ".join(problems)
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Whether ENVIRONMENT names a development deployment."""  # noqa: DOC201
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Whether ENVIRONMENT names a production deployment."""  # noqa: DOC201
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Configure root logging once, at process start.

        LOG_LEVEL drives application loggers; OPENAI_LOG_LEVEL drives the
        HTTP client loggers. Unknown level names fall back to INFO and
        WARNING.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # Keep HTTP client chatter out of the application log
        for noisy in ("openai", "httpx"):
            logging.getLogger(noisy).setLevel(
                getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
            )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return the module logger for ``name``."""  # noqa: DOC201
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Headers sent with every model and embedding request.

        Returns:
            User-Agent plus the optional test header, when configured.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        if cls.API_TEST_HEADER_NAME and cls.API_TEST_HEADER_VALUE:
            headers[cls.API_TEST_HEADER_NAME] = cls.API_TEST_HEADER_VALUE

        return headers


config = Config()
