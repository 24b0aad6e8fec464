"""
Room message protocol - wire envelope encoding and decoding.

Every frame on the realtime transport is a JSON object:

    { "type": "MOVE" | "JOIN_ROOM", "room": str, "playerId": str,
      "timestamp": int, "index"?: int, "player"?: "X"|"O",
      "playerRole"?: "X"|"O" }

MOVE carries ``index`` and ``player``; JOIN_ROOM carries ``playerRole``.
Unknown types decode to None so newer peers can add message kinds.
"""

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from tictactoe.core.errors import ErrorCode, ProtocolViolation
from tictactoe.game.rules import BOARD_SIZE, Role

MOVE = "MOVE"
JOIN_ROOM = "JOIN_ROOM"


@dataclass(frozen=True)
class MoveMessage:
    room: str
    player_id: str
    index: int
    role: Role
    timestamp: int


@dataclass(frozen=True)
class JoinRoomMessage:
    room: str
    player_id: str
    role: Role
    timestamp: int


RoomMessage = Union[MoveMessage, JoinRoomMessage]


def current_timestamp_ms() -> int:
    """Epoch milliseconds."""
    return int(time.time() * 1000)


def build_move(room: str, player_id: str, index: int, role: Role) -> MoveMessage:
    return MoveMessage(room=room, player_id=player_id, index=index, role=role,
                       timestamp=current_timestamp_ms())


def build_join(room: str, player_id: str, role: Role) -> JoinRoomMessage:
    return JoinRoomMessage(room=room, player_id=player_id, role=role,
                           timestamp=current_timestamp_ms())


def to_envelope(message: RoomMessage) -> Dict[str, Any]:
    """Convert a message into its wire dictionary."""
    envelope: Dict[str, Any] = {
        "room": message.room,
        "playerId": message.player_id,
        "timestamp": message.timestamp,
    }
    if isinstance(message, MoveMessage):
        envelope["type"] = MOVE
        envelope["index"] = message.index
        envelope["player"] = message.role.value
    elif isinstance(message, JoinRoomMessage):
        envelope["type"] = JOIN_ROOM
        envelope["playerRole"] = message.role.value
    else:
        raise TypeError(f"Unsupported message type: {type(message).__name__}")
    return envelope


def encode_message(message: RoomMessage) -> str:
    """Serialize a message to its JSON wire form."""
    return json.dumps(to_envelope(message), separators=(",", ":"))


def decode_message(raw: Union[str, bytes, Dict[str, Any]]) -> Optional[RoomMessage]:
    """
    Parse a wire frame into a room message.

    Args:
        raw: JSON text, bytes, or an already-parsed dictionary

    Returns:
        The decoded message, or None if the type is not one we know

    Raises:
        ProtocolViolation: If the frame is malformed
    """
    data = _parse(raw)

    message_type = data.get("type")
    if message_type not in (MOVE, JOIN_ROOM):
        return None

    room = _require_str(data, "room")
    player_id = _require_str(data, "playerId")
    timestamp = _require_timestamp(data)

    if message_type == MOVE:
        return MoveMessage(
            room=room,
            player_id=player_id,
            index=_require_index(data),
            role=_require_role(data, "player"),
            timestamp=timestamp,
        )

    return JoinRoomMessage(
        room=room,
        player_id=player_id,
        role=_require_role(data, "playerRole"),
        timestamp=timestamp,
    )


def _parse(raw) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolViolation(f"Frame is not valid UTF-8: {e}")
    if not isinstance(raw, str):
        raise ProtocolViolation(f"Unsupported frame type: {type(raw).__name__}")
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ProtocolViolation(f"Frame is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ProtocolViolation("Frame must be a JSON object")
    return data


def _require_str(data: Dict[str, Any], field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value:
        raise ProtocolViolation(
            f"Field '{field}' must be a non-empty string",
            ErrorCode.INVALID_MESSAGE_FIELD,
            {"field": field},
        )
    return value


def _require_timestamp(data: Dict[str, Any]) -> int:
    value = data.get("timestamp")
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ProtocolViolation(
            "Field 'timestamp' must be a finite number",
            ErrorCode.INVALID_MESSAGE_FIELD,
            {"field": "timestamp"},
        )
    return int(value)


def _require_index(data: Dict[str, Any]) -> int:
    value = data.get("index")
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < BOARD_SIZE:
        raise ProtocolViolation(
            f"Field 'index' must be an integer in 0..{BOARD_SIZE - 1}",
            ErrorCode.INVALID_MESSAGE_FIELD,
            {"field": "index", "value": value},
        )
    return value


def _require_role(data: Dict[str, Any], field: str) -> Role:
    value = data.get(field)
    try:
        return Role(value)
    except ValueError:
        raise ProtocolViolation(
            f"Field '{field}' must be 'X' or 'O'",
            ErrorCode.INVALID_MESSAGE_FIELD,
            {"field": field, "value": value},
        )
