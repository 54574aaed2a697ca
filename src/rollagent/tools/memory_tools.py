"""
Memory Tools - let the model save and look up long-term memory.

Five tools share one set of backends:

    memorize_core_fact       append a fact to the core fact sheet
    recall_past_context      search the Markdown memory store
    memorize_user_fact       agree on names, or hand a fact to the memory service
    recall_user_memory       semantic search across past sessions
    recall_session_context   keyword search over the current session transcript
"""

import logging

from ..llm.base import LLMMessage
from ..memory.profile import ProfileManager
from ..memory.service import MemoryServiceClient
from ..memory.store import MemoryStore
from ..storage.base import SessionStorage
from .base import Tool, ToolContext, ToolParameter, ToolResult

logger = logging.getLogger(__name__)

FACT_TYPES = ["user_name", "agent_name", "general_memory"]
DEFAULT_RECALL_COUNT = 5


def _matches(text: str, keyword: str) -> bool:
    return keyword.lower() in text.lower()


def create_memory_tools(
    store: MemoryStore,
    profiles: ProfileManager,
    service: MemoryServiceClient | None = None,
    session_storage: SessionStorage | None = None,
) -> list[Tool]:
    """Create the memory tools bound to the given backends."""

    async def memorize_core_fact(fact: str) -> ToolResult:
        fact = fact.strip()
        if not fact:
            return ToolResult(success=False, error="fact must not be empty")
        await store.save("core", "user_profile", f"- {fact}", append=True)
        logger.info(f"Memorized core fact: {fact[:50]}")
        return ToolResult(success=True, output="Fact saved to core memory.")

    async def recall_past_context(query: str) -> ToolResult:
        previews = await store.search(query)
        if not previews:
            return ToolResult(success=True, output=f"No stored memories mention '{query}'.")
        return ToolResult(success=True, output="\n\n".join(previews))

    async def memorize_user_fact(factType: str, content: str) -> ToolResult:
        content = content.strip()
        if not content:
            return ToolResult(success=False, error="content must not be empty")

        if factType == "user_name":
            profile = profiles.get_user_profile()
            profile.name = content
            profiles.save_user_profile(profile)
        elif factType == "agent_name":
            profile = profiles.get_agent_profile()
            profile.name = content
            profiles.save_agent_profile(profile)
        elif factType == "general_memory":
            if service is None:
                await store.save("core", "user_profile", f"- {content}", append=True)
            else:
                stored = await service.store_messages([LLMMessage(role="assistant", content=content)])
                if stored is None:
                    return ToolResult(success=False, error="memory service is unavailable")
        else:
            return ToolResult(success=False, error=f"unknown factType '{factType}'")

        return ToolResult(
            success=True,
            output="Memory saved. Continue the conversation naturally without announcing it.",
        )

    async def recall_user_memory(query: str) -> ToolResult:
        if service is None:
            return ToolResult(success=False, error="memory service is not enabled")

        found = await service.search_related(query)
        if found is None or found.is_empty:
            return ToolResult(
                success=True,
                output="Nothing related was found in long-term memory. Stop searching for this topic.",
            )

        lines = ["[Long-term memories related to the query]"]
        if found.results:
            lines.append("Facts and events:")
            lines.extend(f"- {fact.memory}" for fact in found.results)
        if found.relations:
            lines.append("Related entities:")
            lines.extend(f"- {relation}" for relation in found.relations)
        return ToolResult(success=True, output="\n".join(lines))

    async def recall_session_context(
        keywords: list[str],
        retrieve_count: int = DEFAULT_RECALL_COUNT,
        context: ToolContext | None = None,
    ) -> ToolResult:
        if session_storage is None:
            return ToolResult(success=False, error="session storage is not available")
        session_id = context.session_id if context else None
        if not session_id:
            return ToolResult(success=False, error="no session is bound to this call")

        record = await session_storage.load(session_id)
        if record is None or not record.messages:
            return ToolResult(success=True, output="The current session has no history yet.")

        count = max(1, int(retrieve_count or DEFAULT_RECALL_COUNT))
        hits: dict[str, list[str]] = {}
        for keyword in keywords:
            matched = [
                f"[{index}] {message.role}: {message.content}"
                for index, message in enumerate(record.messages)
                if message.content and _matches(message.content, keyword)
            ]
            hits[keyword] = matched[-count:]

        if not any(hits.values()):
            return ToolResult(
                success=True,
                output=(
                    "The current session never mentions these topics. They may come from an "
                    "earlier session; try recall_user_memory."
                ),
            )
        return ToolResult(success=True, data=hits)

    return [
        Tool(
            name="memorize_core_fact",
            description=(
                "Save a durable fact or rule about the user to core memory. "
                "Core memory is shown to you at the start of every conversation."
            ),
            parameters=[
                ToolParameter(
                    name="fact",
                    param_type="string",
                    description="The fact, written in neutral third person",
                    required=True,
                ),
            ],
            handler=memorize_core_fact,
        ),
        Tool(
            name="recall_past_context",
            description="Search saved notes and archived conversation digests for a keyword.",
            parameters=[
                ToolParameter(
                    name="query",
                    param_type="string",
                    description="Keyword or phrase to look for",
                    required=True,
                ),
            ],
            handler=recall_past_context,
        ),
        Tool(
            name="memorize_user_fact",
            description=(
                "Remember something the user revealed. Use factType 'user_name' when the user "
                "tells you their name, 'agent_name' when the user names you, and "
                "'general_memory' for every other fact, preference or rule. General memories "
                "must be written in neutral third person, without pronouns."
            ),
            parameters=[
                ToolParameter(
                    name="factType",
                    param_type="string",
                    description="Kind of fact being saved",
                    required=True,
                    enum=FACT_TYPES,
                ),
                ToolParameter(
                    name="content",
                    param_type="string",
                    description="A bare name for name facts, otherwise an objective statement",
                    required=True,
                ),
            ],
            handler=memorize_user_fact,
        ),
        Tool(
            name="recall_user_memory",
            description=(
                "Search long-term memory across past sessions. Call recall_session_context "
                "first; use this only when the current session has nothing on the topic."
            ),
            parameters=[
                ToolParameter(
                    name="query",
                    param_type="string",
                    description="A question or phrase describing what to recall",
                    required=True,
                ),
            ],
            handler=recall_user_memory,
        ),
        Tool(
            name="recall_session_context",
            description=(
                "Look up earlier messages of the current session by keyword. "
                "Always try this before searching long-term memory."
            ),
            parameters=[
                ToolParameter(
                    name="keywords",
                    param_type="array",
                    description="Keywords to look for in the session history",
                    required=True,
                    items={"type": "string"},
                ),
                ToolParameter(
                    name="retrieve_count",
                    param_type="integer",
                    description="Maximum matches to return per keyword (default: 5)",
                    required=False,
                ),
            ],
            handler=recall_session_context,
        ),
    ]
