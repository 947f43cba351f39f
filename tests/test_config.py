"""Tests for the Config class."""

import logging
import os
from importlib import reload
from pathlib import Path
from unittest.mock import call, patch

import pytest

from ragchat import config as config_module
from ragchat.config import Config


@pytest.fixture(autouse=True)
def _reload_config_after_test():
    yield
    reload(config_module)


def test_get_openai_api_key_from_env():
    with patch.dict(os.environ, {"OPENAI_API_KEY": "test-api-key"}):
        assert Config.get_openai_api_key() == "test-api-key"


def test_get_openai_api_key_empty_when_not_set():
    with patch.dict(os.environ, {}, clear=True):
        assert not Config.get_openai_api_key()


def test_validate_success_with_api_key():
    with patch.object(Config, "get_openai_api_key", return_value="test-key"):
        Config.validate()


def test_validate_fails_without_api_key():
    with (
        patch.object(Config, "get_openai_api_key", return_value=""),
        pytest.raises(ValueError, match="OPENAI_API_KEY is required"),
    ):
        Config.validate()


@pytest.mark.parametrize(
    ("attr", "value", "message"),
    [
        ("RAG_TOP_K", 0, "RAG_TOP_K must be positive"),
        ("RAG_SEARCH_MULTIPLIER", 0, "RAG_SEARCH_MULTIPLIER must be at least 1"),
        ("RAG_SIMILARITY_THRESHOLD", 1.5, "RAG_SIMILARITY_THRESHOLD"),
        ("RAG_SIMILARITY_THRESHOLD", -0.1, "RAG_SIMILARITY_THRESHOLD"),
        ("MEMORY_MAX_MESSAGES", 0, "MEMORY_MAX_MESSAGES must be positive"),
        ("INGEST_MAX_WORKERS", 0, "INGEST_MAX_WORKERS must be positive"),
    ],
)
def test_validate_rejects_out_of_range_settings(attr, value, message):
    with (
        patch.object(Config, "get_openai_api_key", return_value="test-key"),
        patch.object(Config, attr, value),
        pytest.raises(ValueError, match=message),
    ):
        Config.validate()


@pytest.mark.parametrize(
    ("env_var", "default_value", "test_value", "expected_type"),
    [
        ("LOG_LEVEL", "INFO", "debug", str),
        ("OPENAI_LOG_LEVEL", "WARNING", "error", str),
        ("ENVIRONMENT", "development", "production", str),
        ("EMBEDDING_MODEL", "text-embedding-3-small", "nomic-embed-text", str),
        ("CHAT_MODEL", "gpt-4.1-nano-2025-04-14", "llama3.1", str),
        ("CHUNK_SIZE", 1000, "1500", int),
        ("CHUNK_OVERLAP", 200, "300", int),
        ("CHAT_MAX_TOKENS", 500, "1000", int),
        ("CHAT_TEMPERATURE", 0.7, "0.5", float),
        ("CHAT_TOP_K", 40, "20", int),
        ("CHAT_TOP_P", 0.9, "0.8", float),
        ("CHAT_REPEAT_PENALTY", 1.1, "1.2", float),
        ("EXPANSION_TEMPERATURE", 0.0, "0.1", float),
        ("EXPANSION_TOP_K", 1, "2", int),
        ("EXPANSION_TOP_P", 0.1, "0.2", float),
        ("EXPANSION_REPEAT_PENALTY", 1.0, "1.1", float),
        ("RAG_TOP_K", 4, "6", int),
        ("RAG_SIMILARITY_THRESHOLD", 0.5, "0.3", float),
        ("RAG_SEARCH_MULTIPLIER", 2, "3", int),
        ("BM25_K1", 1.2, "1.5", float),
        ("BM25_B", 0.75, "0.5", float),
        ("MEMORY_MAX_MESSAGES", 8, "12", int),
    ],
)
def test_config_loading_from_env(env_var, default_value, test_value, expected_type):
    with patch.dict(os.environ, {}, clear=True):
        reload(config_module)
        assert getattr(config_module.Config, env_var) == default_value

    with patch.dict(os.environ, {env_var: test_value}):
        reload(config_module)
        actual_value = getattr(config_module.Config, env_var)
        if expected_type is int:
            expected = int(test_value)
        elif expected_type is float:
            expected = float(test_value)
        elif env_var in {"LOG_LEVEL", "OPENAI_LOG_LEVEL"}:
            expected = test_value.upper()
        else:
            expected = test_value
        assert actual_value == expected


@pytest.mark.parametrize(
    ("env_var", "test_path"),
    [
        ("VECTOR_STORE_DB_PATH", "/custom/path/store.db"),
        ("FAISS_INDEX_PATH", "/custom/faiss/index.faiss"),
        ("CHAT_DB_PATH", "/custom/chats.db"),
        ("KNOWLEDGE_BASE_DIR", "/custom/knowledgebase"),
    ],
)
def test_path_config_loading(env_var, test_path):
    with patch.dict(os.environ, {}, clear=True):
        reload(config_module)
        assert isinstance(getattr(config_module.Config, env_var), Path)

    with patch.dict(os.environ, {env_var: test_path}):
        reload(config_module)
        assert getattr(config_module.Config, env_var) == Path(test_path)


def test_openai_base_url_from_env():
    with patch.dict(os.environ, {"OPENAI_BASE_URL": "http://localhost:11434/v1"}):
        reload(config_module)
        assert config_module.Config.OPENAI_BASE_URL == "http://localhost:11434/v1"


@pytest.mark.parametrize(
    ("env_value", "is_dev", "is_prod"),
    [
        ("development", True, False),
        ("DEVELOPMENT", True, False),
        ("production", False, True),
        ("staging", False, False),
    ],
)
def test_environment_detection(env_value, is_dev, is_prod):
    with patch.object(Config, "ENVIRONMENT", env_value):
        assert Config.is_development() == is_dev
        assert Config.is_production() == is_prod


@pytest.mark.parametrize(
    ("log_level", "openai_level", "expected_level", "expected_openai_level"),
    [
        ("INFO", "WARNING", logging.INFO, logging.WARNING),
        ("DEBUG", "ERROR", logging.DEBUG, logging.ERROR),
        ("INVALID", "INVALID", logging.INFO, logging.WARNING),
    ],
)
def test_setup_logging_levels(
    log_level, openai_level, expected_level, expected_openai_level
):
    """Verify logging setup respects overrides and falls back on invalid values."""
    with (
        patch.object(Config, "LOG_LEVEL", log_level),
        patch.object(Config, "OPENAI_LOG_LEVEL", openai_level),
        patch("ragchat.config.logging.basicConfig") as mock_basic,
        patch("ragchat.config.logging.getLogger") as mock_get_logger,
    ):
        mock_logger = mock_get_logger.return_value

        Config.setup_logging()

        mock_basic.assert_called_once_with(
            level=expected_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        assert mock_get_logger.call_args_list == [call("openai"), call("httpx")]
        mock_logger.setLevel.assert_called_with(expected_openai_level)


def test_get_logger():
    with patch("ragchat.config.logging.getLogger") as mock_get_logger:
        result = Config.get_logger("test.module")

        mock_get_logger.assert_called_once_with("test.module")
        assert result == mock_get_logger.return_value


def test_api_headers():
    with (
        patch.object(Config, "API_USER_AGENT", "ragchat/test"),
        patch.object(Config, "API_TEST_HEADER_NAME", "X-Test"),
        patch.object(Config, "API_TEST_HEADER_VALUE", "1"),
    ):
        assert Config.get_api_headers() == {"User-Agent": "ragchat/test", "X-Test": "1"}

    with (
        patch.object(Config, "API_USER_AGENT", ""),
        patch.object(Config, "API_TEST_HEADER_NAME", "X-Test"),
        patch.object(Config, "API_TEST_HEADER_VALUE", None),
    ):
        assert Config.get_api_headers() == {}


@pytest.mark.parametrize(
    ("env_var", "invalid_value", "error_match"),
    [
        ("CHUNK_SIZE", "not_a_number", "invalid literal for int"),
        ("RAG_SIMILARITY_THRESHOLD", "high", "could not convert string to float"),
    ],
)
def test_type_conversion_errors(env_var, invalid_value, error_match):
    with (
        patch.dict(os.environ, {env_var: invalid_value}),
        pytest.raises(ValueError, match=error_match),
    ):
        reload(config_module)


def test_no_dotenv_loading_when_missing():
    with (
        patch.object(Path, "exists", return_value=False),
        patch("ragchat.config.load_dotenv") as mock_load,
    ):
        reload(config_module)

        mock_load.assert_not_called()
