"""Long-term memory for Rollagent."""

from .core_prompt import CoreMemoryBuilder
from .profile import Profile, ProfileManager
from .service import MemorySearchResult, MemoryServiceClient
from .store import MarkdownMemoryStore, MemoryStore
from .summarizer import NO_KEY_FACTS, Summarizer, is_no_key_facts

__all__ = [
    "CoreMemoryBuilder",
    "Profile",
    "ProfileManager",
    "MemorySearchResult",
    "MemoryServiceClient",
    "MarkdownMemoryStore",
    "MemoryStore",
    "NO_KEY_FACTS",
    "Summarizer",
    "is_no_key_facts",
]
