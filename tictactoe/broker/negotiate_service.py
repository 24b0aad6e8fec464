"""
Negotiate Service - issues room-scoped realtime credentials.

This service handles:
- Validation of the negotiate request (room code + player id)
- Reading the relay connection secret lazily, so a missing secret
  becomes a per-request ConfigurationError instead of a startup crash
- Building the one-time transport URL a client connects with
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from tictactoe.broker.token_issuer import (
    DEFAULT_TOKEN_TTL_MINUTES,
    AccessTokenIssuer,
    parse_connection_string,
)
from tictactoe.core.errors import ErrorCode, TicTacToeError, ValidationError
from tictactoe.game.room_codes import (
    DEFAULT_ROOM_CODE_LENGTH,
    is_valid_room_code,
    room_group_name,
)

logger = logging.getLogger(__name__)

DEFAULT_HUB_NAME = "tictactoe"


@dataclass(frozen=True)
class Credential:
    """A time-boxed transport endpoint URL carrying its access token."""
    url: str


class NegotiateService:
    """Issues credentials scoped to exactly one room's group."""

    def __init__(
        self,
        connection_string: Optional[str],
        hub_name: str = DEFAULT_HUB_NAME,
        token_ttl_minutes: int = DEFAULT_TOKEN_TTL_MINUTES,
        room_code_length: int = DEFAULT_ROOM_CODE_LENGTH,
    ):
        """Initialize the negotiate service.

        Args:
            connection_string: ``Endpoint=...;AccessKey=...;`` secret, may be empty
            hub_name: Hub the issued tokens are valid for
            token_ttl_minutes: Lifetime of issued tokens
            room_code_length: Expected room code length
        """
        self.connection_string = connection_string or ""
        self.hub_name = hub_name
        self.token_ttl_minutes = token_ttl_minutes
        self.room_code_length = room_code_length

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string.strip())

    def get_issuer(self) -> AccessTokenIssuer:
        """
        Build the token issuer from the connection secret.

        Raises:
            ConfigurationError: If the secret is missing or malformed
        """
        _, access_key = parse_connection_string(self.connection_string)
        return AccessTokenIssuer(access_key, self.hub_name)

    def negotiate(self, room_code: Any, player_id: Any) -> Credential:
        """
        Issue a credential for one room.

        Args:
            room_code: Room the caller wants to join
            player_id: Caller's player identity

        Returns:
            Credential whose URL grants only ``room-<room_code>``

        Raises:
            ValidationError: If either field is missing or the room code is malformed
            ConfigurationError: If the broker has no usable secret
        """
        if not room_code or not player_id:
            raise ValidationError(
                ErrorCode.MISSING_DATA,
                "roomCode and playerId are required in POST body",
            )
        if not isinstance(room_code, str) or not isinstance(player_id, str):
            raise ValidationError(ErrorCode.INVALID_DATA, "roomCode and playerId must be strings")
        if not is_valid_room_code(room_code, self.room_code_length):
            raise ValidationError(
                ErrorCode.INVALID_ROOM_CODE,
                f"Invalid room code: {room_code}",
                {"room_code": room_code},
            )

        endpoint, access_key = parse_connection_string(self.connection_string)
        issuer = AccessTokenIssuer(access_key, self.hub_name)
        token = issuer.issue(player_id, room_group_name(room_code), self.token_ttl_minutes)

        logger.info(f"Issued credential for {player_id} in room {room_code}")
        return Credential(url=f"{endpoint}?{urlencode({'access_token': token})}")

    def status(self) -> Dict[str, Any]:
        """Readiness report for the GET probe."""
        configured = self.is_configured
        if configured:
            try:
                parse_connection_string(self.connection_string)
            except TicTacToeError as e:
                logger.warning(f"Connection string present but unusable: {e.message}")
                configured = False

        return {
            "status": "Ready",
            "message": "Endpoint alive.",
            "pubsubConfigured": configured,
            "note": "Ready to play!" if configured else "Missing or invalid PUBSUB_CONNECTION_STRING variable.",
        }
