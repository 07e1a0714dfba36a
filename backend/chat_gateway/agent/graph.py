"""Single-lookup completion loop built as a LangGraph state machine.

::

    START -> prompt -> inspect --(no directive)--> END
                          |
                          +--(directive)--> dispatch -> END

``dispatch`` has no edge back to ``inspect``, so a turn costs at most two
completion calls and one store round trip no matter what the model says in
its second reply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
)
from langchain_core.runnables import Runnable
from langgraph.graph import END, START, StateGraph

from chat_gateway.agent.directives import LookupRegistry, detect_directive, reply_text
from chat_gateway.agent.prompts import build_lookup_followup, build_system_prompt
from chat_gateway.agent.state import LoopState
from chat_gateway.errors import UpstreamError
from chat_gateway.models.messages import ChatMessage, MessageRole
from chat_gateway.personality.loader import Persona

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response"


@dataclass(frozen=True)
class LoopResult:
    session_id: str
    first_text: str
    final_text: str
    directive: Optional[str] = None
    lookup_result: Optional[str] = None


def _as_ai_message(reply: Any) -> AIMessage:
    if isinstance(reply, AIMessage):
        return reply
    return AIMessage(content=getattr(reply, "content", str(reply)))


def history_to_messages(history: Iterable[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for msg in history:
        if msg.role == MessageRole.USER:
            converted.append(HumanMessage(content=msg.content))
        elif msg.role == MessageRole.ASSISTANT:
            converted.append(AIMessage(content=msg.content))
        else:
            converted.append(SystemMessage(content=msg.content))
    return converted


class CompletionLoop:
    """Prompt the model, run at most one requested lookup, re-prompt."""

    def __init__(
        self,
        llm: Runnable,
        registry: LookupRegistry,
        *,
        persona: Persona | None = None,
    ) -> None:
        self._llm = llm
        self._registry = registry
        self._persona = persona
        self._graph = self._build_graph()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_messages(
        self,
        user_text: str,
        context: str,
        history: Iterable[ChatMessage],
    ) -> list[BaseMessage]:
        """System directive, then history oldest first, then the user turn."""
        messages: list[BaseMessage] = [
            SystemMessage(content=build_system_prompt(context, self._persona))
        ]
        messages.extend(history_to_messages(history))
        messages.append(HumanMessage(content=user_text))
        return messages

    async def run(
        self,
        *,
        session_id: str,
        user_text: str,
        context: str,
        history: Iterable[ChatMessage],
    ) -> LoopResult:
        messages = self.build_messages(user_text, context, history)
        state: LoopState = await self._graph.ainvoke(
            {"session_id": session_id, "messages": messages}
        )
        call = state.get("call")
        return LoopResult(
            session_id=session_id,
            first_text=state["first_text"],
            final_text=state["final_text"],
            directive=call.directive.marker if call else None,
            lookup_result=state.get("lookup_result"),
        )

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def _build_graph(self):
        graph = StateGraph(LoopState)
        graph.add_node("prompt", self._prompt)
        graph.add_node("inspect", self._inspect)
        graph.add_node("dispatch", self._dispatch)

        graph.add_edge(START, "prompt")
        graph.add_edge("prompt", "inspect")
        graph.add_conditional_edges(
            "inspect",
            self._route,
            {"dispatch": "dispatch", END: END},
        )
        graph.add_edge("dispatch", END)
        return graph.compile()

    async def _prompt(self, state: LoopState) -> dict[str, Any]:
        messages = state["messages"]
        logger.info(
            "Requesting completion for session %s (%d messages)",
            state["session_id"],
            len(messages),
        )
        try:
            reply = await self._llm.ainvoke(messages)
        except Exception as exc:
            logger.exception("Completion failed for session %s", state["session_id"])
            raise UpstreamError(f"completion failed: {exc}") from exc

        reply = _as_ai_message(reply)
        return {"reply": reply, "first_text": reply_text(reply)}

    async def _inspect(self, state: LoopState) -> dict[str, Any]:
        call = detect_directive(state["reply"])
        first_text = state["first_text"]

        if call is None:
            logger.info("No lookup requested for session %s", state["session_id"])
            text = first_text or NO_RESPONSE
            return {"call": None, "first_text": text, "final_text": text}

        logger.info(
            "Model requested %s for session %s",
            call.directive.marker,
            state["session_id"],
        )
        # A bare tool call carries no prose; keep the marker as the reply text.
        return {"call": call, "first_text": first_text or call.directive.marker}

    @staticmethod
    def _route(state: LoopState) -> str:
        return "dispatch" if state.get("call") else END

    async def _dispatch(self, state: LoopState) -> dict[str, Any]:
        call = state["call"]
        first_text = state["first_text"]
        result = await self._registry.run(call)
        logger.debug(
            "Lookup %s returned %d chars: %s",
            call.directive.marker,
            len(result),
            result[:200],
        )

        followup = [
            *state["messages"],
            AIMessage(content=first_text),
            HumanMessage(content=build_lookup_followup(result)),
        ]
        try:
            second = await self._llm.ainvoke(followup)
        except Exception:
            logger.exception(
                "Follow-up completion failed after %s for session %s",
                call.directive.marker,
                state["session_id"],
            )
            return {
                "lookup_result": result,
                "final_text": f"{first_text}\n\n{call.directive.error_fragment}",
            }

        final_text = reply_text(_as_ai_message(second))
        return {"lookup_result": result, "final_text": final_text or first_text}
