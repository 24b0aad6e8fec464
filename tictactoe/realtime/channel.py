"""
Realtime Channel - presents a continuously-available room channel over a
transport that may drop.

This adapter handles:
- The authorization handshake (token broker) before every connection attempt
- Connection lifecycle and reconnection with exponential backoff
- Serializing outbound and deserializing inbound room messages
- Fan-out of messages and connection status to registered handlers
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from tictactoe.broker.client import TokenBroker
from tictactoe.core.errors import ProtocolViolation, TicTacToeError
from tictactoe.core.game_phases import ConnectionPhase, ConnectionStatus
from tictactoe.protocol.messages import RoomMessage, decode_message, encode_message
from tictactoe.realtime.scheduler import TimerScheduler
from tictactoe.realtime.transports import Transport

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000

MessageHandler = Callable[[RoomMessage], None]
StatusHandler = Callable[[ConnectionStatus], None]

CLOSED_DURING_HANDSHAKE = "Connection closed during handshake"


def backoff_delay_ms(attempt: int, base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
                     max_delay_ms: int = DEFAULT_MAX_DELAY_MS) -> int:
    """Delay before reconnect attempt ``attempt`` (1-based)."""
    return min(base_delay_ms * (2 ** attempt), max_delay_ms)


class RealtimeChannel:
    """Connection to one room's realtime group, owned by a single room session."""

    def __init__(
        self,
        broker: TokenBroker,
        transport_factory: Callable[[], Transport],
        scheduler: Optional[Any] = None,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    ):
        """Initialize the channel.

        Args:
            broker: Issues a room-scoped credential before each connection
            transport_factory: Builds a fresh transport for each attempt
            scheduler: Object with ``call_later(delay_seconds, callback, *args)``
            max_reconnect_attempts: Attempts before giving up
            base_delay_ms: Backoff base
            max_delay_ms: Backoff ceiling
        """
        self.broker = broker
        self.transport_factory = transport_factory
        self.scheduler = scheduler or TimerScheduler()
        self.max_reconnect_attempts = max_reconnect_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

        self.room_code: Optional[str] = None
        self.player_id: Optional[str] = None
        self.delivery_failures = 0

        self._status = ConnectionStatus()
        self._transport: Optional[Transport] = None
        self._reconnect_timer = None
        # Bumped by connect()/disconnect(); stale handshakes and timers compare against it
        self._generation = 0
        self._message_handlers: List[MessageHandler] = []
        self._status_handlers: List[StatusHandler] = []
        self._lock = threading.RLock()

    # Observers

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def is_connected(self) -> bool:
        with self._lock:
            return self._status.is_connected and self._transport is not None and self._transport.is_open

    def on_message(self, handler: MessageHandler) -> None:
        """Register an inbound message handler. Handlers run in registration order."""
        with self._lock:
            self._message_handlers.append(handler)

    def on_connection_status(self, handler: StatusHandler) -> None:
        """Register a connection status handler. Handlers run in registration order."""
        with self._lock:
            self._status_handlers.append(handler)

    # Lifecycle

    def connect(self, room_code: str, player_id: str) -> bool:
        """
        Authorize and open a connection scoped to one room.

        Supersedes any in-flight connection attempt or pending reconnect.

        Args:
            room_code: Room whose group to join
            player_id: Identity the credential is bound to

        Returns:
            True if connected, False otherwise (never raises)
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._cancel_reconnect_timer()
            self._close_transport()
            self.room_code = room_code
            self.player_id = player_id
        self._set_status(ConnectionStatus(ConnectionPhase.CONNECTING), generation)

        logger.info(f"Connecting to room {room_code} as {player_id}")
        error = self._handshake(generation)
        if error is None:
            return True
        if error == CLOSED_DURING_HANDSHAKE:
            self._schedule_reconnect(generation, 1)
            return False

        self._set_status(ConnectionStatus(ConnectionPhase.DISCONNECTED, error=error), generation)
        return False

    def disconnect(self) -> None:
        """Close the connection, drop all handlers and stop reconnecting. Idempotent."""
        with self._lock:
            self._generation += 1
            self._cancel_reconnect_timer()
            self._close_transport()
            self._message_handlers.clear()
            self._status_handlers.clear()
            self._status = ConnectionStatus(ConnectionPhase.DISCONNECTED)
        logger.debug(f"Channel for room {self.room_code} disconnected")

    def send(self, message: RoomMessage) -> bool:
        """
        Serialize and transmit a message. No acknowledgment, no queueing.

        Returns:
            True if handed to an open transport, False if recorded as a delivery failure
        """
        with self._lock:
            transport = self._transport
            connected = self._status.is_connected

        if not connected or transport is None or not transport.is_open:
            self._record_delivery_failure(message, "not connected")
            return False

        try:
            transport.send(encode_message(message))
        except TicTacToeError as e:
            self._record_delivery_failure(message, e.message)
            return False
        return True

    # Internals

    def _handshake(self, generation: int) -> Optional[str]:
        """Run broker negotiation and open a transport.

        Returns:
            None on success, otherwise the failure reason
        """
        transport = None
        try:
            credential = self.broker.negotiate(self.room_code, self.player_id)
            if generation != self._generation:
                return "superseded"
            transport = self.transport_factory()
            transport.open(
                credential.url,
                on_message=lambda data: self._handle_frame(transport, data),
                on_close=lambda: self._handle_transport_closed(transport),
            )
        except TicTacToeError as e:
            logger.warning(f"Connection to room {self.room_code} failed ({e.code.value}): {e.message}")
            return e.message
        except Exception as e:
            # Unexpected client library errors degrade to a failed attempt
            logger.error(f"Unexpected error connecting to room {self.room_code}: {e}")
            return str(e)

        with self._lock:
            superseded = generation != self._generation
            # The server may drop the socket before open() returns
            dropped = not superseded and not transport.is_open
            if not superseded and not dropped:
                self._transport = transport
        if superseded:
            transport.close()
            return "superseded"
        if dropped:
            logger.warning(f"Connection to room {self.room_code} closed during handshake")
            return CLOSED_DURING_HANDSHAKE

        logger.info(f"Connected to room {self.room_code}")
        self._set_status(ConnectionStatus(ConnectionPhase.CONNECTED), generation)
        return None

    def _handle_frame(self, transport: Transport, data: Any) -> None:
        if transport is not self._transport:
            return
        try:
            message = decode_message(data)
        except ProtocolViolation as e:
            logger.warning(f"Dropping malformed frame in room {self.room_code}: {e.message}")
            return
        except Exception as e:
            logger.error(f"Unexpected error decoding frame in room {self.room_code}: {e}")
            return
        if message is None:
            logger.debug(f"Ignoring frame of unknown type in room {self.room_code}")
            return

        with self._lock:
            handlers = list(self._message_handlers)
        self._dispatch(handlers, message)

    def _handle_transport_closed(self, transport: Transport) -> None:
        with self._lock:
            if transport is not self._transport:
                return
            self._transport = None
            generation = self._generation
        logger.warning(f"Connection to room {self.room_code} closed unexpectedly")
        self._schedule_reconnect(generation, 1)

    def _schedule_reconnect(self, generation: int, attempt: int) -> None:
        if attempt > self.max_reconnect_attempts:
            logger.error(
                f"Max reconnection attempts ({self.max_reconnect_attempts}) reached for room {self.room_code}"
            )
            self._set_status(
                ConnectionStatus(ConnectionPhase.DISCONNECTED, error="Max reconnection attempts reached"),
                generation,
            )
            return

        delay_ms = backoff_delay_ms(attempt, self.base_delay_ms, self.max_delay_ms)
        with self._lock:
            if generation != self._generation:
                return
            self._reconnect_timer = self.scheduler.call_later(
                delay_ms / 1000.0, self._reconnect, generation, attempt
            )
        logger.info(f"Reconnecting to room {self.room_code} in {delay_ms}ms (attempt {attempt})")
        self._set_status(ConnectionStatus(ConnectionPhase.RECONNECTING, attempt=attempt), generation)

    def _reconnect(self, generation: int, attempt: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._reconnect_timer = None

        error = self._handshake(generation)
        if error is not None:
            self._schedule_reconnect(generation, attempt + 1)

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _close_transport(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as e:
            logger.warning(f"Error closing transport for room {self.room_code}: {e}")

    def _record_delivery_failure(self, message: RoomMessage, reason: str) -> None:
        with self._lock:
            self.delivery_failures += 1
        logger.warning(
            f"Dropped outbound {type(message).__name__} for room {self.room_code}: {reason}"
        )

    def _set_status(self, status: ConnectionStatus, generation: int) -> None:
        """Publish a status change unless a newer connect()/disconnect() superseded it.

        Handlers are invoked after the lock is released.
        """
        with self._lock:
            if generation != self._generation:
                return
            self._status = status
            handlers = list(self._status_handlers)
        self._dispatch(handlers, status)

    @staticmethod
    def _dispatch(handlers: List[Callable[[Any], None]], payload: Any) -> None:
        for handler in handlers:
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Error in channel handler {getattr(handler, '__name__', handler)}: {e}")
