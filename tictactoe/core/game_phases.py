"""
Phase Enumerations

Defines the game and connection phase states used throughout the application.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GamePhase(Enum):
    """Game phase enumeration."""
    LOBBY = "lobby"
    PLAYING = "playing"
    GAME_OVER = "game_over"


class Outcome(Enum):
    """How a finished game ended."""
    X = "X"
    O = "O"
    DRAW = "DRAW"


class ConnectionPhase(Enum):
    """Connection phase of the realtime channel."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class ConnectionStatus:
    """Snapshot of the channel's connection phase published to observers.

    ``attempt`` is only meaningful while reconnecting; ``error`` holds the
    last failure reason when the channel gave up or a handshake failed.
    """
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    attempt: int = 0
    error: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.phase == ConnectionPhase.CONNECTED
