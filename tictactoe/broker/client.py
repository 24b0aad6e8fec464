"""
Token broker clients used by the realtime channel before each connection.
"""

import logging
from abc import ABC, abstractmethod

import requests

from tictactoe.broker.negotiate_service import Credential, NegotiateService
from tictactoe.core.errors import (
    AuthorizationFailure,
    ErrorCode,
    TransportFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)


class TokenBroker(ABC):
    """Issues a room-scoped credential for a player."""

    @abstractmethod
    def negotiate(self, room_code: str, player_id: str) -> Credential:
        """
        Raises:
            AuthorizationFailure: If the broker refuses
            ConfigurationError: If the broker is not configured
            TransportFailure: If the broker cannot be reached
        """


class HttpTokenBroker(TokenBroker):
    """Calls ``POST /negotiate`` on the broker service."""

    def __init__(self, negotiate_url: str, timeout: float = 10.0, session=None):
        self.negotiate_url = negotiate_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def negotiate(self, room_code: str, player_id: str) -> Credential:
        logger.debug(f"Negotiating credential for room {room_code} at {self.negotiate_url}")
        try:
            response = self._session.post(
                self.negotiate_url,
                json={"roomCode": room_code, "playerId": player_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportFailure(f"Token broker unreachable: {e}")

        if response.status_code != 200:
            raise AuthorizationFailure(
                f"Token broker rejected negotiate ({response.status_code}): {self._error_text(response)}",
                ErrorCode.NEGOTIATE_REJECTED,
                {"status_code": response.status_code},
            )

        try:
            url = response.json().get("url")
        except (ValueError, AttributeError):
            url = None
        if not isinstance(url, str) or not url:
            raise AuthorizationFailure("Token broker response did not contain a url")
        return Credential(url=url)

    @staticmethod
    def _error_text(response) -> str:
        try:
            return str(response.json().get("error", response.text))
        except (ValueError, AttributeError):
            return response.text


class LocalTokenBroker(TokenBroker):
    """Calls a NegotiateService in-process (loopback mode)."""

    def __init__(self, service: NegotiateService):
        self.service = service

    def negotiate(self, room_code: str, player_id: str) -> Credential:
        try:
            return self.service.negotiate(room_code, player_id)
        except ValidationError as e:
            raise AuthorizationFailure(e.message, ErrorCode.NEGOTIATE_REJECTED, e.details)
