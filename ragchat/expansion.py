"""Query expansion stage: rewrite the question into a retrieval-friendly query."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config
from .errors import ModelError
from .llm import expansion_options
from .models import GenerationOptions, Role
from .prompts import EXPANSION_TEMPLATE

if TYPE_CHECKING:
    from .llm import ChatModel
    from .models import RequestContext

logger = config.get_logger(__name__)


class QueryExpansionStage:
    """Enrich the user's question with a near-deterministic model call.

    The stage fails open: if the model errors or returns nothing usable,
    downstream stages keep using the original question.
    """

    def __init__(
        self,
        chat_model: ChatModel,
        options: GenerationOptions | None = None,
        template: str = EXPANSION_TEMPLATE,
        max_tokens: int | None = None,
    ) -> None:
        self.chat_model = chat_model
        self.options = options or expansion_options()
        self.template = template
        self.max_tokens = max_tokens or config.EXPANSION_MAX_TOKENS

    def expand(self, question: str) -> str | None:
        """Generate an enriched query for a question.

        Returns:
            The enriched query, or None if expansion failed.
        """
        if not question or not question.strip():
            return None

        prompt = self.template.format(question=question)
        try:
            enriched = self.chat_model.complete(
                [Role.USER.message(prompt)], self.options, max_tokens=self.max_tokens
            )
        except ModelError:
            logger.warning("Query expansion failed; using the original question")
            return None

        enriched = enriched.strip()
        if not enriched:
            logger.warning("Query expansion returned nothing; using the original question")
            return None
        return enriched

    def process(self, context: RequestContext) -> RequestContext:
        """Write the enriched question and expansion ratio into the context.

        Returns:
            The updated context; unchanged apart from logging on failure.
        """
        original = context.original_question
        enriched = self.expand(original)
        if enriched is None:
            return context

        ratio = len(enriched) / len(original)
        if ratio <= 0:
            return context

        logger.info("Expanded query (ratio %.2f): %s", ratio, enriched)
        return context.with_updates(enriched_question=enriched, expansion_ratio=ratio)
