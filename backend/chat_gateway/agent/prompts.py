"""System directive and follow-up prompts for the completion loop."""

from __future__ import annotations

from chat_gateway.agent.directives import DIRECTIVES
from chat_gateway.personality.loader import Persona, default_persona


def _directive_block() -> str:
    lines = [f"- {d.marker}: {d.description}" for d in DIRECTIVES]
    return "\n".join(lines)


def build_system_prompt(context: str, persona: Persona | None = None) -> str:
    """System directive: persona, available lookups and grounding context."""
    persona = persona or default_persona()

    return f"""{persona.system_prompt}

## Database Lookups
You can read the chat database. Tables: chat_sessions (id, title, user_id,
created_at, updated_at) and chat_messages (id, session_id, role, content,
created_at).

AVAILABLE QUERIES:
{_directive_block()}

When the user asks about users, sessions, messages or statistics, request
exactly one of these queries by naming it in your reply, for example
"I'll use LOOKUP_SESSIONS to get the session data". The results will be
sent back to you.

## Context
Use the following context to answer questions:

{context}

{persona.no_context_instruction}"""


def build_lookup_followup(result: str) -> str:
    """User-role turn carrying a lookup result back to the model."""
    return (
        f"Here are the database query results:\n\n{result}\n\n"
        "Please provide a direct, helpful response with the actual data. "
        "Do not ask for additional input - just present the results clearly."
    )
