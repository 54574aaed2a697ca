"""
Core memory - the system message injected at the top of every assembled view.

Combines the agreed identities of user and assistant, the durable fact sheet
from the memory store, and what the semantic memory service knows about the
user.
"""

import structlog

from .profile import ProfileManager
from .service import MemoryServiceClient
from .store import MemoryStore

logger = structlog.get_logger()

CORE_CATEGORY = "core"
CORE_PROFILE_KEY = "user_profile"
PROFILE_QUERY = "What are the user's personality, occupation, preferences and core profile?"


class CoreMemoryBuilder:
    """Builds the core-memory system prompt."""

    def __init__(
        self,
        store: MemoryStore | None = None,
        profiles: ProfileManager | None = None,
        service: MemoryServiceClient | None = None,
    ):
        self.store = store
        self.profiles = profiles
        self.service = service

    def _identity_section(self) -> str:
        if self.profiles is None:
            return ""
        user_name = self.profiles.get_user_name()
        agent_name = self.profiles.get_agent_name()
        return f"""You are a professional personal assistant. Keep identities clear.
## Identities in this session
- When the user says "I", they mean {user_name}.
- When the user says "you", they mean you, {agent_name}.

## Memory rules
The external memory store has no notion of who "I" or "you" are. Whenever you call a tool that saves or searches memories, phrase arguments from a neutral third-person point of view, using the names above instead of pronouns."""

    async def build(self) -> str | None:
        """Return the core-memory prompt, or None when nothing is known."""
        parts = []

        identity = self._identity_section()
        if identity:
            parts.append(identity)

        if self.store is not None:
            try:
                facts = await self.store.get(CORE_CATEGORY, CORE_PROFILE_KEY)
            except OSError as e:
                logger.error("Failed to read core facts", error=str(e))
                facts = None
            if facts and facts.strip():
                parts.append(f"## Core facts about the user\n{facts.strip()}")

        if self.service is not None:
            found = await self.service.search_related(PROFILE_QUERY)
            if found is not None and not found.is_empty:
                lines = []
                if found.results:
                    lines.append("[Recalled facts and preferences]")
                    lines.extend(f"- {fact.memory}" for fact in found.results)
                if found.relations:
                    lines.append("[Related people and things]")
                    lines.extend(f"- {relation}" for relation in found.relations)
                parts.append("## Long-term memory\n" + "\n".join(lines))

        if not parts:
            return None
        return "\n\n".join(parts)
