"""Lookup directives the model may request, and their handlers.

A directive is requested either as a structured tool call or, for models
that answer in prose, by naming its marker (e.g. ``LOOKUP_SESSIONS``) in the
reply. Registry order decides which directive wins when several markers
appear in the same reply.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from langchain_core.messages import AIMessage
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from chat_gateway.errors import DispatchError

if TYPE_CHECKING:
    from chat_gateway.memory.session_store import SessionStore

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Structured call schemas (offered to the model as tools)
# ----------------------------------------------------------------------


class LookupUsers(BaseModel):
    """Find users who have chatted recently."""

    limit: int = Field(default=10, ge=1, le=50, description="Maximum users to list.")


class LookupSessions(BaseModel):
    """Get the most recently created chat sessions."""

    limit: int = Field(default=10, ge=1, le=50, description="Maximum sessions to list.")


class LookupMessages(BaseModel):
    """Get the most recent chat messages."""

    limit: int = Field(default=5, ge=1, le=20, description="Maximum messages to show.")


class LookupStats(BaseModel):
    """Get database statistics (session and message counts)."""


@dataclass(frozen=True)
class Directive:
    marker: str
    name: str
    description: str
    schema: type[BaseModel]
    pattern: re.Pattern[str] = field(compare=False, repr=False)

    @property
    def error_fragment(self) -> str:
        return f"[Error: Could not retrieve {self.description.lower()}]"


def _directive(marker: str, name: str, description: str, schema: type[BaseModel]) -> Directive:
    return Directive(
        marker=marker,
        name=name,
        description=description,
        schema=schema,
        pattern=re.compile(re.escape(marker), re.IGNORECASE),
    )


DIRECTIVES: tuple[Directive, ...] = (
    _directive("LOOKUP_USERS", "users", "Users who have chatted", LookupUsers),
    _directive("LOOKUP_SESSIONS", "sessions", "Recent chat sessions", LookupSessions),
    _directive("LOOKUP_MESSAGES", "messages", "Recent chat messages", LookupMessages),
    _directive("LOOKUP_STATS", "stats", "Database statistics", LookupStats),
)

_BY_TOOL_NAME = {d.schema.__name__: d for d in DIRECTIVES}


def lookup_tools() -> list[type[BaseModel]]:
    """Schemas to bind to a tool-calling chat model."""
    return [d.schema for d in DIRECTIVES]


@dataclass(frozen=True)
class DirectiveCall:
    directive: Directive
    args: BaseModel


def detect_directive(reply: AIMessage) -> DirectiveCall | None:
    """First directive requested by ``reply``, or ``None``.

    Structured tool calls take precedence over markers in the text; in both
    cases only one directive is returned and the rest are ignored.
    """
    for call in getattr(reply, "tool_calls", None) or []:
        directive = _BY_TOOL_NAME.get(call.get("name", ""))
        if directive is None:
            logger.warning("Model requested unknown tool %s", call.get("name"))
            continue
        try:
            args = directive.schema.model_validate(call.get("args") or {})
        except SchemaError:
            logger.warning("Invalid arguments for %s, using defaults", directive.marker)
            args = directive.schema()
        return DirectiveCall(directive, args)

    text = reply_text(reply)
    for directive in DIRECTIVES:
        if directive.pattern.search(text):
            return DirectiveCall(directive, directive.schema())
    return None


def reply_text(reply: AIMessage) -> str:
    """Plain text of a model reply, flattening content blocks."""
    content = reply.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------

Handler = Callable[["SessionStore", Any], Awaitable[str]]


async def _lookup_users(store: SessionStore, args: LookupUsers) -> str:
    users = await store.distinct_callers()
    shown = ", ".join(users[: args.limit])
    return f"Found {len(users)} unique users: {shown}"


async def _lookup_sessions(store: SessionStore, args: LookupSessions) -> str:
    sessions = await store.recent_sessions(limit=args.limit)
    if not sessions:
        return "Found 0 sessions:\nNo sessions found"
    lines = [
        f"{i}. {s.get('title') or 'Untitled'} "
        f"(User: {s['user_id']}, Created: {s['created_at'].isoformat()})"
        for i, s in enumerate(sessions, start=1)
    ]
    return f"Found {len(sessions)} sessions:\n" + "\n".join(lines)


async def _lookup_messages(store: SessionStore, args: LookupMessages) -> str:
    messages = await store.recent_messages(limit=20)
    if not messages:
        return "Found 0 recent messages:\nNo messages found"
    lines = [
        f"{i}. [{m['role']}] {m['content'][:50]}... (Session: {m['session_id']})"
        for i, m in enumerate(messages[: args.limit], start=1)
    ]
    return f"Found {len(messages)} recent messages:\n" + "\n".join(lines)


async def _lookup_stats(store: SessionStore, args: LookupStats) -> str:
    counts = await store.counts()
    return (
        "Database Statistics:\n"
        f"- Total Sessions: {counts['sessions']}\n"
        f"- Total Messages: {counts['messages']}"
    )


DEFAULT_HANDLERS: dict[str, Handler] = {
    "users": _lookup_users,
    "sessions": _lookup_sessions,
    "messages": _lookup_messages,
    "stats": _lookup_stats,
}


class LookupRegistry:
    """Fixed mapping from directive to read-only store query."""

    def __init__(
        self,
        store: SessionStore,
        handlers: dict[str, Handler] | None = None,
    ) -> None:
        self._store = store
        self._handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)
        missing = {d.name for d in DIRECTIVES} - set(self._handlers)
        if missing:
            raise ValueError(f"no handler for directives: {sorted(missing)}")

    async def _lookup(self, call: DirectiveCall) -> str:
        try:
            return await self._handlers[call.directive.name](self._store, call.args)
        except Exception as exc:
            raise DispatchError(call.directive.marker, str(exc)) from exc

    async def run(self, call: DirectiveCall) -> str:
        """Run the lookup; failures become an inline error fragment."""
        try:
            return await self._lookup(call)
        except DispatchError as error:
            logger.exception("Lookup failed: %s", error)
            return call.directive.error_fragment
