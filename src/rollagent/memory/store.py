"""
Durable memory store.

Memories are plain Markdown files grouped by category:

    <memory_dir>/core/user_profile.md      long-lived facts and rules
    <memory_dir>/daily/2026-02-26.md       archived conversation digests
    <memory_dir>/knowledge/<topic>.md      free-form reference notes

The store is deliberately simple; a vector-backed implementation can replace
it behind the same ``MemoryStore`` interface.
"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ("core", "daily", "knowledge")
SEARCH_PREVIEW_CHARS = 300


class MemoryStore(ABC):
    """Interface for category/key addressed long-term memory."""

    @abstractmethod
    async def get(self, category: str, key: str) -> str | None:
        """Return the stored content, or None if the key does not exist."""

    @abstractmethod
    async def save(self, category: str, key: str, content: str, append: bool = False) -> None:
        """Write content, replacing it unless ``append`` is set."""

    @abstractmethod
    async def search(self, query: str, category: str | None = None) -> list[str]:
        """Return previews of entries that mention ``query``."""

    @abstractmethod
    async def list_keys(self, category: str) -> list[str]:
        """List the keys stored under a category."""


class MarkdownMemoryStore(MemoryStore):
    """Memory store backed by Markdown files on disk."""

    def __init__(self, base_dir: Optional[str] = None):
        """Initialize the store.

        Args:
            base_dir: Root directory; defaults to ``$MEMORY_DIR`` or ./data/memory
        """
        self.base_dir = Path(base_dir or os.getenv("MEMORY_DIR", "./data/memory")).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, category: str, key: str) -> Path:
        return self.base_dir / category / f"{key}.md"

    async def get(self, category: str, key: str) -> str | None:
        path = self._path(category, key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    async def save(self, category: str, key: str, content: str, append: bool = False) -> None:
        """Save or append a memory entry.

        Appends to ``core`` stay terse; other categories get a timestamped
        separator so archived digests remain readable.
        """
        path = self._path(category, key)
        path.parent.mkdir(parents=True, exist_ok=True)

        if append and path.exists():
            if category == "core":
                addition = f"\n{content}"
            else:
                stamp = datetime.now().strftime("%Y-%m-%d %H:%M")
                addition = f"\n\n---\n*Updated: {stamp}*\n\n{content}"
            with path.open("a", encoding="utf-8") as handle:
                handle.write(addition)
        else:
            path.write_text(content, encoding="utf-8")

        logger.info(f"Saved memory {category}/{key} (append={append})")

    async def search(self, query: str, category: str | None = None) -> list[str]:
        """Case-insensitive substring search over Markdown files.

        Args:
            query: Text to look for
            category: Restrict the search to one category

        Returns:
            Source-tagged previews of matching files
        """
        query_lower = query.lower()
        categories = [category] if category else list(DEFAULT_CATEGORIES)
        results = []

        for cat in categories:
            cat_dir = self.base_dir / cat
            if not cat_dir.exists():
                continue
            for path in sorted(cat_dir.rglob("*.md")):
                content = path.read_text(encoding="utf-8")
                if query_lower in content.lower():
                    preview = content[:SEARCH_PREVIEW_CHARS]
                    if len(content) > SEARCH_PREVIEW_CHARS:
                        preview += "..."
                    source = path.relative_to(self.base_dir).as_posix()
                    results.append(f"[Source: {source}]\n{preview}")

        return results

    async def list_keys(self, category: str) -> list[str]:
        cat_dir = self.base_dir / category
        if not cat_dir.exists():
            return []
        return sorted(
            path.relative_to(cat_dir).with_suffix("").as_posix()
            for path in cat_dir.rglob("*.md")
        )
