"""
Room code generation and validation.

Room codes are short human-shareable identifiers that also name the
realtime group a player is authorized for.
"""

import secrets
from typing import Optional

# No 0/O/1/I so codes survive being read aloud
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_ROOM_CODE_LENGTH = 4


def generate_room_code(length: int = DEFAULT_ROOM_CODE_LENGTH) -> str:
    """
    Generate a random room code.

    Args:
        length: Number of characters (default 4)

    Returns:
        Code drawn from the unambiguous alphabet
    """
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def normalize_room_code(code: Optional[str]) -> str:
    """Strip whitespace and upper-case a user-typed code."""
    if not code:
        return ""
    return str(code).strip().upper()


def is_valid_room_code(code: Optional[str], length: int = DEFAULT_ROOM_CODE_LENGTH) -> bool:
    """Check that a code has the expected length and uses only the room code alphabet."""
    if not isinstance(code, str) or len(code) != length:
        return False
    return all(ch in ROOM_CODE_ALPHABET for ch in code)


def room_group_name(code: str) -> str:
    """Name of the realtime group a room code maps to."""
    return f"room-{code}"
