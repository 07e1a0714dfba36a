"""State carried through the completion loop graph."""

from __future__ import annotations

from typing import Optional, TypedDict

from langchain_core.messages import AIMessage, BaseMessage

from chat_gateway.agent.directives import DirectiveCall


class LoopState(TypedDict, total=False):
    """Each node returns a partial update; keys are overwritten, not merged.

    ``messages`` is the first-pass prompt and is never extended in place, so
    the follow-up prompt is always built from the original one.
    """

    session_id: str
    messages: list[BaseMessage]
    reply: AIMessage
    first_text: str
    call: Optional[DirectiveCall]
    lookup_result: str
    final_text: str
