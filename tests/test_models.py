"""Tests for the core data models."""

import dataclasses

import pytest

from ragchat import ConversationTurn, RequestContext, Role, StreamEvent


@pytest.mark.parametrize("role", list(Role))
def test_role_round_trip_and_message(role):
    assert Role.from_value(role.value) is role
    assert role.message("text") == {"role": role.value, "content": "text"}


def test_unknown_role():
    with pytest.raises(ValueError, match="Unknown role: tool"):
        Role.from_value("tool")


def test_turn_constructors():
    user = ConversationTurn.user("hi")
    assistant = ConversationTurn.assistant("hello")

    assert user.role is Role.USER
    assert assistant.to_message() == {"role": "assistant", "content": "hello"}
    assert user.created_at.endswith("+00:00")


def test_context_start_defaults():
    context = RequestContext.start("chat-1", "question", "alice")

    assert context.user_message == "question"
    assert context.retrieval_query == "question"
    assert context.enriched_question is None
    assert context.history == ()
    assert dict(context.extras) == {}


def test_context_is_immutable():
    context = RequestContext.start("chat-1", "question")

    with pytest.raises(dataclasses.FrozenInstanceError):
        context.user_message = "changed"  # type: ignore[misc]
    with pytest.raises(TypeError):
        context.extras["key"] = "value"  # type: ignore[index]


def test_with_updates_returns_copy_and_keeps_extras():
    original = RequestContext.start("chat-1", "question").with_extra("trace", "t-1")

    updated = original.with_updates(enriched_question="better question")

    assert original.enriched_question is None
    assert updated.enriched_question == "better question"
    assert updated.retrieval_query == "better question"
    assert updated.extras["trace"] == "t-1"


def test_with_extra_does_not_leak_into_previous_context():
    first = RequestContext.start("chat-1", "question").with_extra("a", 1)
    second = first.with_extra("b", 2)

    assert dict(first.extras) == {"a": 1}
    assert dict(second.extras) == {"a": 1, "b": 2}


def test_to_messages_order():
    context = RequestContext.start("chat-1", "now?").with_updates(
        history=(ConversationTurn.user("before?"), ConversationTurn.assistant("yes")),
        user_message="CONTEXT: c\nQUESTION: now?\n",
    )

    assert context.to_messages("SYS") == [
        {"role": "system", "content": "SYS"},
        {"role": "user", "content": "before?"},
        {"role": "assistant", "content": "yes"},
        {"role": "user", "content": "CONTEXT: c\nQUESTION: now?\n"},
    ]
    assert context.to_messages()[0]["role"] == "user"


def test_stream_event_terminal():
    assert not StreamEvent("token", "x").is_terminal
    assert StreamEvent("done").is_terminal
    assert StreamEvent("error", "boom").is_terminal
