"""Tests for the single-lookup completion loop."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from chat_gateway.agent.directives import DEFAULT_HANDLERS, LookupRegistry
from chat_gateway.agent.graph import NO_RESPONSE, CompletionLoop
from chat_gateway.errors import UpstreamError
from chat_gateway.models.messages import ChatMessage, MessageRole

from conftest import ScriptedChatModel


def _counting_handlers(calls: list[str], fail: str | None = None):
    def make(name):
        async def handler(store, args):
            calls.append(name)
            if name == fail:
                raise RuntimeError(f"{name} lookup broke")
            return f"{name} result"

        return handler

    return {name: make(name) for name in DEFAULT_HANDLERS}


def _loop(llm, store, calls: list[str], fail: str | None = None) -> CompletionLoop:
    return CompletionLoop(llm, LookupRegistry(store, _counting_handlers(calls, fail)))


async def _run(loop: CompletionLoop, history=()):
    return await loop.run(
        session_id="s-1",
        user_text="How many users?",
        context="Doc: body",
        history=list(history),
    )


@pytest.mark.asyncio
async def test_plain_reply_is_single_call(store) -> None:
    llm = ScriptedChatModel("Embeddings are vectors.")
    calls: list[str] = []

    result = await _run(_loop(llm, store, calls))

    assert result.first_text == result.final_text == "Embeddings are vectors."
    assert result.directive is None
    assert len(llm.calls) == 1
    assert calls == []


@pytest.mark.asyncio
async def test_prompt_layout(store) -> None:
    llm = ScriptedChatModel("ok")
    earlier = ChatMessage(
        id="m1",
        session_id="s-1",
        role=MessageRole.USER,
        content="earlier",
        created_at="2026-01-01T00:00:00Z",
    )
    reply = earlier.model_copy(update={"id": "m2", "role": MessageRole.ASSISTANT, "content": "reply"})

    await _run(_loop(llm, store, []), history=[earlier, reply])

    sent = llm.calls[0]
    assert isinstance(sent[0], SystemMessage)
    assert "Doc: body" in sent[0].content
    assert [type(m) for m in sent[1:]] == [HumanMessage, AIMessage, HumanMessage]
    assert sent[-1].content == "How many users?"


@pytest.mark.asyncio
async def test_directive_runs_lookup_and_reprompts(store) -> None:
    llm = ScriptedChatModel("Let me check with LOOKUP_USERS", "There are 3 users.")
    calls: list[str] = []

    result = await _run(_loop(llm, store, calls))

    assert calls == ["users"]
    assert result.directive == "LOOKUP_USERS"
    assert result.first_text == "Let me check with LOOKUP_USERS"
    assert result.final_text == "There are 3 users."
    assert result.lookup_result == "users result"

    followup = llm.calls[1]
    assert followup[:-2] == llm.calls[0]
    assert followup[-2] == AIMessage(content="Let me check with LOOKUP_USERS")
    assert "users result" in followup[-1].content


@pytest.mark.asyncio
async def test_only_one_lookup_per_turn(store) -> None:
    llm = ScriptedChatModel(
        "LOOKUP_STATS and LOOKUP_USERS",
        "Still want LOOKUP_SESSIONS",
        "never sent",
    )
    calls: list[str] = []

    result = await _run(_loop(llm, store, calls))

    assert calls == ["users"]
    assert len(llm.calls) == 2
    assert result.final_text == "Still want LOOKUP_SESSIONS"


@pytest.mark.asyncio
async def test_failed_lookup_is_reported_to_model(store) -> None:
    llm = ScriptedChatModel("LOOKUP_STATS please", "Sorry, stats are unavailable.")

    result = await _run(_loop(llm, store, [], fail="stats"))

    assert result.lookup_result == "[Error: Could not retrieve database statistics]"
    assert "[Error: Could not retrieve database statistics]" in llm.calls[1][-1].content
    assert result.final_text == "Sorry, stats are unavailable."


@pytest.mark.asyncio
async def test_failed_followup_falls_back_to_first_text(store) -> None:
    llm = ScriptedChatModel("LOOKUP_STATS please", RuntimeError("model overloaded"))

    result = await _run(_loop(llm, store, []))

    assert result.first_text == "LOOKUP_STATS please"
    assert result.final_text == (
        "LOOKUP_STATS please\n\n[Error: Could not retrieve database statistics]"
    )


@pytest.mark.asyncio
async def test_empty_followup_keeps_first_text(store) -> None:
    llm = ScriptedChatModel("LOOKUP_STATS please", "")
    result = await _run(_loop(llm, store, []))
    assert result.final_text == "LOOKUP_STATS please"


@pytest.mark.asyncio
async def test_first_completion_failure_is_upstream(store) -> None:
    llm = ScriptedChatModel(RuntimeError("model down"))
    with pytest.raises(UpstreamError):
        await _run(_loop(llm, store, []))


@pytest.mark.asyncio
async def test_empty_reply_becomes_placeholder(store) -> None:
    result = await _run(_loop(ScriptedChatModel(""), store, []))
    assert result.first_text == result.final_text == NO_RESPONSE


@pytest.mark.asyncio
async def test_bare_tool_call_uses_marker_as_text(store) -> None:
    llm = ScriptedChatModel(
        AIMessage(
            content="",
            tool_calls=[{"name": "LookupSessions", "args": {"limit": 2}, "id": "call-1"}],
        ),
        "Here are your sessions.",
    )
    calls: list[str] = []

    result = await _run(_loop(llm, store, calls))

    assert calls == ["sessions"]
    assert result.first_text == "LOOKUP_SESSIONS"
    assert result.final_text == "Here are your sessions."
