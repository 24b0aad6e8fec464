"""
Relay Session Service - tracks which group each relay connection belongs to.

This service handles:
- Verifying the access token a connection presents
- Socket ID to grant mapping
- Session cleanup on disconnect
"""

import logging
import threading
from typing import Dict, Optional

from tictactoe.broker.negotiate_service import NegotiateService
from tictactoe.broker.token_issuer import AccessGrant

logger = logging.getLogger(__name__)


class RelaySessionService:
    """Manages relay connections and the one group each is scoped to."""

    def __init__(self, negotiate_service: NegotiateService):
        """Initialize the relay session service.

        Args:
            negotiate_service: Source of the token issuer used for verification
        """
        self.negotiate_service = negotiate_service
        self._sessions: Dict[str, AccessGrant] = {}
        self._lock = threading.Lock()
        logger.info("RelaySessionService initialized")

    def authorize(self, socket_id: str, token: str) -> AccessGrant:
        """Verify a connection's token and record its grant.

        Args:
            socket_id: Socket.IO connection ID
            token: Access token presented by the client

        Returns:
            The verified grant

        Raises:
            AuthorizationFailure: If the token does not verify
            ConfigurationError: If the relay has no usable secret
        """
        grant = self.negotiate_service.get_issuer().verify(token)
        with self._lock:
            self._sessions[socket_id] = grant
        logger.debug(f"Authorized {grant.subject} on {socket_id} for {grant.group}")
        return grant

    def get_session(self, socket_id: str) -> Optional[AccessGrant]:
        with self._lock:
            return self._sessions.get(socket_id)

    def remove_session(self, socket_id: str) -> Optional[AccessGrant]:
        """Remove a connection's session.

        Returns:
            The removed grant or None if not found
        """
        with self._lock:
            grant = self._sessions.pop(socket_id, None)
        if grant:
            logger.debug(f"Removed relay session for {grant.subject} ({socket_id})")
        return grant

    def get_group_size(self, group: str) -> int:
        with self._lock:
            return sum(1 for grant in self._sessions.values() if grant.group == group)

    def get_sessions_count(self) -> int:
        with self._lock:
            return len(self._sessions)
