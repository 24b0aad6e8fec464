"""
Player Identity - Stable per-device player identifier.

The identifier is generated once and persisted as JSON so the same device
keeps its identity across sessions, independent of any room.
"""

import json
import logging
import secrets
import string
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_PREFIX = "player-"
_ID_SUFFIX_LENGTH = 9


def generate_player_id() -> str:
    """Generate an opaque identifier like ``player-k3j9x0a2m``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"{_ID_PREFIX}{suffix}"


class PlayerIdentityStore:
    """Loads or creates the device's player identity."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._player_id: Optional[str] = None

    def load_or_create(self) -> str:
        """
        Return the persisted player id, creating and saving one if needed.

        A missing, unreadable or corrupt file is replaced with a new id.

        Returns:
            The player identifier
        """
        if self._player_id:
            return self._player_id

        player_id = self._load()
        if player_id is None:
            player_id = generate_player_id()
            self._save(player_id)
            logger.info(f"Created new player identity {player_id}")

        self._player_id = player_id
        return player_id

    def _load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read identity file {self.path}: {e}")
            return None

        player_id = data.get("playerId") if isinstance(data, dict) else None
        if not isinstance(player_id, str) or not player_id:
            logger.warning(f"Identity file {self.path} has no usable playerId, regenerating")
            return None
        return player_id

    def _save(self, player_id: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump({"playerId": player_id}, fh)
        except OSError as e:
            # Identity still works for this process, it just won't survive a restart
            logger.warning(f"Could not persist identity to {self.path}: {e}")
