"""
Profile Manager - names the user and the assistant agreed on.

Profiles are small JSON documents under the profiles directory:
``user_<id>.json`` and ``agent_<id>.json``.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_USER = "default_user"
DEFAULT_AGENT = "default_agent"


@dataclass
class Profile:
    """A user or agent profile."""

    name: str | None = None


class ProfileManager:
    """Reads and writes user/agent profiles."""

    def __init__(self, profiles_dir: Optional[str] = None):
        """Initialize the profile manager.

        Args:
            profiles_dir: Directory holding profile JSON files
        """
        self.profiles_dir = Path(
            profiles_dir or os.getenv("PROFILES_DIR", "./data/profiles")
        ).expanduser()
        self.profiles_dir.mkdir(parents=True, exist_ok=True)

    def _read(self, path: Path) -> Profile:
        if not path.exists():
            return Profile()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Profile(name=data.get("name"))
        except (OSError, ValueError) as e:
            logger.error(f"Error parsing profile {path.name}: {e}")
            return Profile()

    def _write(self, path: Path, profile: Profile) -> None:
        path.write_text(json.dumps(asdict(profile), ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Saved profile {path.name}")

    def get_user_profile(self, user_id: str = DEFAULT_USER) -> Profile:
        return self._read(self.profiles_dir / f"user_{user_id}.json")

    def save_user_profile(self, profile: Profile, user_id: str = DEFAULT_USER) -> None:
        self._write(self.profiles_dir / f"user_{user_id}.json", profile)

    def get_agent_profile(self, agent_id: str = DEFAULT_AGENT) -> Profile:
        return self._read(self.profiles_dir / f"agent_{agent_id}.json")

    def save_agent_profile(self, profile: Profile, agent_id: str = DEFAULT_AGENT) -> None:
        self._write(self.profiles_dir / f"agent_{agent_id}.json", profile)

    def get_user_name(self) -> str:
        """The user's name, or a placeholder while it is unknown."""
        return self.get_user_profile().name or "the user (name not yet known)"

    def get_agent_name(self) -> str:
        """The assistant's name, or a placeholder while it is unknown."""
        return self.get_agent_profile().name or "the assistant (name not yet known)"
