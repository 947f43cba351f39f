"""Tests for the query expansion stage."""

import pytest

from ragchat import ModelError, QueryExpansionStage, RequestContext
from ragchat.models import GenerationOptions


@pytest.fixture
def expansion(mock_chat_model):
    return QueryExpansionStage(mock_chat_model)


def test_expansion_writes_enriched_question_and_ratio(expansion, mock_chat_model):
    mock_chat_model.complete.return_value = "database indexing B-tree hash index"
    context = RequestContext.start("chat-1", "indexing?")

    result = expansion.process(context)

    assert result.original_question == "indexing?"
    assert result.enriched_question == "database indexing B-tree hash index"
    assert result.expansion_ratio == pytest.approx(35 / 9)
    assert result.retrieval_query == "database indexing B-tree hash index"
    assert result.user_message == "indexing?"


def test_expansion_uses_near_deterministic_options(expansion, mock_chat_model):
    expansion.process(RequestContext.start("chat-1", "What is BM25?"))

    messages, options = mock_chat_model.complete.call_args.args
    assert options == GenerationOptions(
        temperature=0.0, top_k=1, top_p=0.1, repeat_penalty=1.0
    )
    assert messages[0]["role"] == "user"
    assert "What is BM25?" in messages[0]["content"]


def test_expansion_fails_open_on_model_error(expansion, mock_chat_model):
    mock_chat_model.complete.side_effect = ModelError("down")
    context = RequestContext.start("chat-1", "What is BM25?")

    result = expansion.process(context)

    assert result == context
    assert result.enriched_question is None
    assert result.expansion_ratio is None
    assert result.retrieval_query == "What is BM25?"


@pytest.mark.parametrize("answer", ["", "   \n"])
def test_expansion_fails_open_on_empty_answer(expansion, mock_chat_model, answer):
    mock_chat_model.complete.return_value = answer
    context = RequestContext.start("chat-1", "What is BM25?")

    result = expansion.process(context)

    assert result.enriched_question is None
    assert result.expansion_ratio is None
    assert result.retrieval_query == "What is BM25?"


@pytest.mark.parametrize("question", ["", "   "])
def test_blank_question_is_not_sent_to_model(expansion, mock_chat_model, question):
    result = expansion.process(RequestContext.start("chat-1", question))

    mock_chat_model.complete.assert_not_called()
    assert result.enriched_question is None


def test_expansion_keeps_extras(expansion):
    context = RequestContext.start("chat-1", "What is BM25?").with_extra("trace", "t-1")

    result = expansion.process(context)

    assert result.extras == {"trace": "t-1"}
