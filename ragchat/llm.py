"""Generative model collaborator backed by an OpenAI-compatible chat API."""

from __future__ import annotations

from collections.abc import Iterator

from openai import OpenAI, OpenAIError

from .config import config
from .errors import ModelError
from .models import GenerationOptions

logger = config.get_logger(__name__)


def default_chat_options() -> GenerationOptions:
    """Sampling options for answering the user.

    Returns:
        Options built from the CHAT_* configuration values.
    """
    return GenerationOptions(
        temperature=config.CHAT_TEMPERATURE,
        top_k=config.CHAT_TOP_K,
        top_p=config.CHAT_TOP_P,
        repeat_penalty=config.CHAT_REPEAT_PENALTY,
    )


def expansion_options() -> GenerationOptions:
    """Near-deterministic sampling options for query expansion.

    Returns:
        Options built from the EXPANSION_* configuration values.
    """
    return GenerationOptions(
        temperature=config.EXPANSION_TEMPERATURE,
        top_k=config.EXPANSION_TOP_K,
        top_p=config.EXPANSION_TOP_P,
        repeat_penalty=config.EXPANSION_REPEAT_PENALTY,
    )


class ChatModel:
    """Blocking and streaming chat completions.

    ``top_k`` and ``repeat_penalty`` are not part of the OpenAI schema; they
    are forwarded in the request body for servers that accept them (Ollama,
    vLLM) and ignored elsewhere.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        """Initialize the chat model client.

        Args:
            api_key: API key. If None, reads from OPENAI_API_KEY.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            max_tokens: Completion token cap. If None, uses config.CHAT_MAX_TOKENS.
        """
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.CHAT_MODEL
        self.max_tokens = max_tokens or config.CHAT_MAX_TOKENS

    def _request_kwargs(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions,
        max_tokens: int | None,
    ) -> dict:
        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
            "extra_body": {
                "top_k": options.top_k,
                "repeat_penalty": options.repeat_penalty,
            },
        }

    def complete(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions,
        max_tokens: int | None = None,
    ) -> str:
        """Run a chat completion and return the stripped text.

        Raises:
            ModelError: If the API call fails.

        Returns:
            The completion text, or an empty string when the model returned none.
        """
        try:
            response = self.client.chat.completions.create(
                **self._request_kwargs(messages, options, max_tokens)
            )
        except OpenAIError as e:
            logger.exception("Chat completion failed")
            msg = "Generative model request failed"
            raise ModelError(msg) from e

        content = response.choices[0].message.content
        return content.strip() if content else ""

    def stream(
        self,
        messages: list[dict[str, str]],
        options: GenerationOptions,
        max_tokens: int | None = None,
    ) -> Iterator[str]:
        """Yield completion text chunks in generation order.

        Closing the iterator early closes the underlying HTTP stream.

        Raises:
            ModelError: If the API call fails before or during streaming.

        Yields:
            Non-empty text deltas.
        """
        try:
            response = self.client.chat.completions.create(
                stream=True, **self._request_kwargs(messages, options, max_tokens)
            )
            with response as chunks:
                for chunk in chunks:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield delta
        except OpenAIError as e:
            logger.exception("Streaming chat completion failed")
            msg = "Generative model stream failed"
            raise ModelError(msg) from e
