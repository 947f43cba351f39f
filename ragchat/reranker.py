"""BM25 reranking of a retrieved candidate window."""

from __future__ import annotations

import dataclasses
import math
from collections import Counter
from collections.abc import Callable, Sequence

from .config import config
from .models import Document
from .text import tokenize

logger = config.get_logger(__name__)


class BM25Reranker:
    """Rerank a fixed candidate set against a query with Okapi BM25.

    Term statistics (document frequency, average length) are computed over
    the candidate set passed to each call, never over the whole corpus, so
    scores are only comparable within one call. IDF is the raw
    ``ln((N - df + 0.5) / (df + 0.5))`` and may be negative for terms that
    occur in most candidates.
    """

    def __init__(
        self,
        k1: float | None = None,
        b: float | None = None,
        tokenizer: Callable[[str], list[str]] = tokenize,
    ) -> None:
        """Initialize the reranker.

        Args:
            k1: Term-frequency saturation. If None, uses config.BM25_K1.
            b: Length normalization. If None, uses config.BM25_B.
            tokenizer: Function turning text into scoring tokens.
        """
        self.k1 = config.BM25_K1 if k1 is None else k1
        self.b = config.BM25_B if b is None else b
        self.tokenizer = tokenizer

    def rerank(
        self,
        documents: Sequence[Document],
        query: str | None,
        top_k: int,
    ) -> list[Document]:
        """Order candidates by BM25 against the query and keep the best ``top_k``.

        Documents sharing at least one query term come before documents
        sharing none; within each group the order is descending BM25 and
        ties keep their input order. Returned documents are copies carrying
        ``rerank_score``; the inputs are left untouched.

        Returns:
            At most ``top_k`` documents drawn from ``documents``.
        """
        if top_k <= 0:
            return []
        if not documents or not query or not query.strip():
            return list(documents[:top_k])

        query_terms = list(dict.fromkeys(self.tokenizer(query)))
        if not query_terms:
            return list(documents[:top_k])

        doc_tokens = [self.tokenizer(doc.content) for doc in documents]
        total_docs = len(documents)
        avg_length = sum(len(tokens) for tokens in doc_tokens) / total_docs or 1.0

        doc_freq: Counter[str] = Counter()
        for tokens in doc_tokens:
            doc_freq.update(set(tokens))

        scored = []
        for doc, tokens in zip(documents, doc_tokens, strict=True):
            term_freq = Counter(tokens)
            score = self._score(
                query_terms, term_freq, len(tokens), total_docs, avg_length, doc_freq
            )
            matched = any(term_freq[term] for term in query_terms)
            scored.append((matched, score, doc))

        # sorted() is stable, so equal keys keep candidate order.
        ranked = sorted(scored, key=lambda item: (item[0], item[1]), reverse=True)

        logger.debug(
            "Reranked %d candidates for %d query terms", total_docs, len(query_terms)
        )
        return [
            dataclasses.replace(doc, rerank_score=score)
            for _matched, score, doc in ranked[:top_k]
        ]

    def _score(  # noqa: PLR0913,PLR0917
        self,
        query_terms: list[str],
        term_freq: Counter[str],
        doc_length: int,
        total_docs: int,
        avg_length: float,
        doc_freq: Counter[str],
    ) -> float:
        score = 0.0
        for term in query_terms:
            tf = term_freq[term]
            if tf == 0:
                continue
            df = doc_freq[term]
            if df == 0:
                continue

            idf = math.log((total_docs - df + 0.5) / (df + 0.5))
            tf_component = (tf * (self.k1 + 1)) / (
                tf + self.k1 * (1 - self.b + self.b * (doc_length / avg_length))
            )
            score += idf * tf_component
        return score
