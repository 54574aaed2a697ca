"""Session persistence for Rollagent."""

from ..config import Settings
from .base import RollingSummary, SessionRecord, SessionStorage
from .database import DatabaseSessionStorage
from .file import FileSessionStorage


async def create_session_storage(settings: Settings) -> SessionStorage:
    """Build the storage backend selected by ``settings.session_backend``."""
    if settings.session_backend == "database":
        from ..models import init_database

        session_maker = await init_database(settings.database_url)
        return DatabaseSessionStorage(session_maker)
    return FileSessionStorage(settings.sessions_dir)


__all__ = [
    "RollingSummary",
    "SessionRecord",
    "SessionStorage",
    "DatabaseSessionStorage",
    "FileSessionStorage",
    "create_session_storage",
]
