"""
Realtime transports.

The channel adapter is written once against the Transport interface; two
implementations are provided:

- LoopbackTransport: in-memory fan-out through a LoopbackHub, for local
  development and tests
- SocketIOTransport: networked, via a python-socketio client talking to the relay
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit, urlunsplit

import socketio

from tictactoe.broker.token_issuer import AccessGrant, AccessTokenIssuer
from tictactoe.core.errors import ErrorCode, TransportFailure

logger = logging.getLogger(__name__)

# Socket.IO event carrying room frames in both directions
RELAY_EVENT = "room_message"

MessageCallback = Callable[[str], None]
CloseCallback = Callable[[], None]


def split_access_url(url: str) -> Tuple[str, str]:
    """
    Split a credential URL into its endpoint and access token.

    Raises:
        TransportFailure: If the URL carries no access token
    """
    parts = urlsplit(url)
    token = parse_qs(parts.query).get("access_token", [""])[0]
    if not token:
        raise TransportFailure("Credential URL carries no access_token", ErrorCode.CONNECT_FAILED)
    base = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    return base, token


class Transport(ABC):
    """A single connection to the realtime service."""

    @abstractmethod
    def open(self, url: str, on_message: MessageCallback, on_close: CloseCallback) -> None:
        """
        Open the connection.

        ``on_close`` fires only for closures this side did not ask for.

        Raises:
            TransportFailure: If the connection cannot be established
            AuthorizationFailure: If the service rejects the credential
        """

    @abstractmethod
    def send(self, data: str) -> None:
        """
        Raises:
            TransportFailure: If the frame cannot be written
        """

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Safe to call more than once."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether frames can currently be sent."""


class LoopbackHub:
    """In-memory stand-in for the managed pub/sub service.

    Verifies each connection's token, places it in the one group the token
    grants, and fans every published frame out to the whole group, sender
    included.
    """

    def __init__(self, issuer: AccessTokenIssuer):
        self.issuer = issuer
        self._groups: Dict[str, List["LoopbackTransport"]] = {}
        self._lock = threading.RLock()

    def attach(self, transport: "LoopbackTransport", token: str) -> AccessGrant:
        grant = self.issuer.verify(token)
        with self._lock:
            self._groups.setdefault(grant.group, []).append(transport)
        logger.debug(f"Loopback: {grant.subject} joined {grant.group}")
        return grant

    def detach(self, transport: "LoopbackTransport") -> None:
        with self._lock:
            for group, members in list(self._groups.items()):
                if transport in members:
                    members.remove(transport)
                if not members:
                    del self._groups[group]

    def publish(self, transport: "LoopbackTransport", data: str) -> int:
        """Deliver a frame to every member of the sender's group.

        Returns:
            Number of members the frame was delivered to
        """
        with self._lock:
            members = list(self._groups.get(transport.group, []))
        for member in members:
            member._deliver(data)
        return len(members)

    def member_count(self, group: str) -> int:
        with self._lock:
            return len(self._groups.get(group, []))

    def drop(self, transport: "LoopbackTransport") -> None:
        """Simulate the service dropping one connection."""
        self.detach(transport)
        transport._handle_drop()

    def drop_group(self, group: str) -> None:
        """Simulate the service dropping every connection in a group."""
        with self._lock:
            members = list(self._groups.get(group, []))
        for member in members:
            self.drop(member)


class LoopbackTransport(Transport):
    """Transport connected to a LoopbackHub."""

    def __init__(self, hub: LoopbackHub):
        self.hub = hub
        self.group: Optional[str] = None
        self._open = False
        self._on_message: Optional[MessageCallback] = None
        self._on_close: Optional[CloseCallback] = None

    def open(self, url: str, on_message: MessageCallback, on_close: CloseCallback) -> None:
        if self._open:
            raise TransportFailure("Loopback transport is already open")
        _, token = split_access_url(url)
        grant = self.hub.attach(self, token)
        self.group = grant.group
        self._on_message = on_message
        self._on_close = on_close
        self._open = True

    def send(self, data: str) -> None:
        if not self._open:
            raise TransportFailure("Loopback transport is not open", ErrorCode.NOT_CONNECTED)
        self.hub.publish(self, data)

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.hub.detach(self)

    @property
    def is_open(self) -> bool:
        return self._open

    def _deliver(self, data: str) -> None:
        if self._open and self._on_message is not None:
            self._on_message(data)

    def _handle_drop(self) -> None:
        if not self._open:
            return
        self._open = False
        if self._on_close is not None:
            self._on_close()


class SocketIOTransport(Transport):
    """Transport backed by a python-socketio client connected to the relay."""

    def __init__(self, connect_timeout: float = 10.0, client_factory: Optional[Callable[[], socketio.Client]] = None):
        """
        Args:
            connect_timeout: Seconds to wait for the connection handshake
            client_factory: Builds the Socket.IO client; the default disables the
                client's own reconnection because the channel adapter owns it
        """
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or (lambda: socketio.Client(reconnection=False))
        self._client: Optional[socketio.Client] = None
        self._on_close: Optional[CloseCallback] = None
        self._closing = False

    def open(self, url: str, on_message: MessageCallback, on_close: CloseCallback) -> None:
        if self._client is not None:
            raise TransportFailure("Socket.IO transport is already open")

        endpoint, token = split_access_url(url)
        client = self._client_factory()
        client.on(RELAY_EVENT, on_message)
        client.on("disconnect", self._handle_disconnect)
        self._on_close = on_close
        self._closing = False

        try:
            client.connect(endpoint, auth={"access_token": token}, wait_timeout=self.connect_timeout)
        except socketio.exceptions.ConnectionError as e:
            raise TransportFailure(f"Could not connect to {endpoint}: {e}")

        self._client = client
        logger.info(f"Socket.IO transport connected to {endpoint}")

    def send(self, data: str) -> None:
        if not self.is_open:
            raise TransportFailure("Socket.IO transport is not connected", ErrorCode.NOT_CONNECTED)
        try:
            self._client.emit(RELAY_EVENT, data)
        except socketio.exceptions.SocketIOError as e:
            raise TransportFailure(f"Failed to emit frame: {e}", ErrorCode.SEND_FAILED)

    def close(self) -> None:
        client = self._client
        if client is None:
            return
        self._closing = True
        self._client = None
        try:
            client.disconnect()
        except socketio.exceptions.SocketIOError as e:
            logger.warning(f"Error while closing Socket.IO transport: {e}")

    @property
    def is_open(self) -> bool:
        return self._client is not None and self._client.connected and not self._closing

    def _handle_disconnect(self, *args) -> None:
        if self._closing:
            return
        self._client = None
        logger.info("Socket.IO transport closed by the server")
        if self._on_close is not None:
            self._on_close()
