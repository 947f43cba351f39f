"""Tests for the ChatModel collaborator."""

import httpx
import pytest
from openai import APIConnectionError

from ragchat import ModelError
from ragchat.llm import default_chat_options, expansion_options
from ragchat.models import GenerationOptions

OPTIONS = GenerationOptions(temperature=0.7, top_k=40, top_p=0.9, repeat_penalty=1.1)
MESSAGES = [{"role": "user", "content": "hello"}]


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "http://test"))


def test_complete_sends_options(chat_model, chat_completion_mock_factory):
    with chat_completion_mock_factory(chat_model, "  Hi there  ") as mock_create:
        answer = chat_model.complete(MESSAGES, OPTIONS)

    assert answer == "Hi there"
    mock_create.assert_called_once_with(
        model="test-chat-model",
        messages=MESSAGES,
        max_tokens=64,
        temperature=0.7,
        top_p=0.9,
        extra_body={"top_k": 40, "repeat_penalty": 1.1},
    )


def test_complete_max_tokens_override(chat_model, chat_completion_mock_factory):
    with chat_completion_mock_factory(chat_model) as mock_create:
        chat_model.complete(MESSAGES, OPTIONS, max_tokens=10)

    assert mock_create.call_args.kwargs["max_tokens"] == 10


def test_complete_empty_content(chat_model, chat_completion_mock_factory):
    with chat_completion_mock_factory(chat_model, None):
        assert chat_model.complete(MESSAGES, OPTIONS) == ""


def test_complete_wraps_api_errors(chat_model, chat_completion_mock_factory):
    with (
        chat_completion_mock_factory(chat_model, side_effect=_connection_error()),
        pytest.raises(ModelError) as exc_info,
    ):
        chat_model.complete(MESSAGES, OPTIONS)

    assert isinstance(exc_info.value.__cause__, APIConnectionError)


def test_stream_yields_non_empty_deltas(chat_model, chat_completion_mock_factory):
    with chat_completion_mock_factory(
        chat_model, stream_tokens=["Hel", None, "lo", ""]
    ) as mock_create:
        tokens = list(chat_model.stream(MESSAGES, OPTIONS))

    assert tokens == ["Hel", "lo"]
    assert mock_create.call_args.kwargs["stream"] is True


def test_stream_wraps_api_errors(chat_model, chat_completion_mock_factory):
    with (
        chat_completion_mock_factory(chat_model, side_effect=_connection_error()),
        pytest.raises(ModelError),
    ):
        list(chat_model.stream(MESSAGES, OPTIONS))


def test_option_presets_follow_config():
    from ragchat.config import config  # noqa: PLC0415

    assert expansion_options() == GenerationOptions(
        temperature=config.EXPANSION_TEMPERATURE,
        top_k=config.EXPANSION_TOP_K,
        top_p=config.EXPANSION_TOP_P,
        repeat_penalty=config.EXPANSION_REPEAT_PENALTY,
    )
    assert default_chat_options().temperature == config.CHAT_TEMPERATURE
