"""
JSON-file session storage: one ``<session_id>.json`` per session, the id percent-encoded.
"""

import json
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import structlog

from .base import SessionRecord, SessionStorage

logger = structlog.get_logger()


class FileSessionStorage(SessionStorage):
    """Stores each session as a pretty-printed JSON document.

    Every save rewrites the whole file.
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or os.getenv("SESSIONS_DIR", "./data/sessions")).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        # Percent-encoding keeps distinct ids in distinct files and leaves no
        # path separator in the name
        if not session_id:
            raise ValueError("Session id must not be empty")
        return self.base_dir / f"{quote(session_id, safe='')}.json"

    async def load(self, session_id: str) -> SessionRecord | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return SessionRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError) as e:
            logger.error("Failed to parse session file", session_id=session_id, error=str(e))
            return None

    async def save(self, session_id: str, record: SessionRecord) -> None:
        path = self._path(session_id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(
            json.dumps(record.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        tmp_path.replace(path)

    async def delete(self, session_id: str) -> None:
        path = self._path(session_id)
        if path.exists():
            path.unlink()
            logger.info("Session file deleted", session_id=session_id)

    async def list_ids(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        return sorted(unquote(path.stem) for path in self.base_dir.glob("*.json"))
