"""
Client-side wiring: builds a RoomSession for the configured realtime transport.

``loopback`` keeps everything in-process (token broker, hub and transports);
``socketio`` talks to a running broker over HTTP and to its relay over Socket.IO.
"""

import logging
from typing import Optional

from tictactoe.broker.client import HttpTokenBroker, LocalTokenBroker, TokenBroker
from tictactoe.broker.negotiate_service import NegotiateService
from tictactoe.identity import PlayerIdentityStore
from tictactoe.realtime.channel import RealtimeChannel
from tictactoe.realtime.transports import LoopbackHub, LoopbackTransport, SocketIOTransport
from tictactoe.session.room_session import RoomSession

logger = logging.getLogger(__name__)

# Used when loopback mode runs without a configured secret
LOOPBACK_CONNECTION_STRING = "Endpoint=loopback://local;AccessKey=loopback-dev-key;"


def _loopback_negotiate_service(app_config) -> NegotiateService:
    return NegotiateService(
        app_config.pubsub_connection_string or LOOPBACK_CONNECTION_STRING,
        hub_name=app_config.pubsub_hub,
        token_ttl_minutes=app_config.token_ttl_minutes,
        room_code_length=app_config.room_code_length,
    )


def create_loopback_hub(app_config) -> LoopbackHub:
    """Create an in-memory hub that sessions built from ``app_config`` can share."""
    return LoopbackHub(_loopback_negotiate_service(app_config).get_issuer())


def create_room_session(app_config, player_id: Optional[str] = None,
                        hub: Optional[LoopbackHub] = None, scheduler=None) -> RoomSession:
    """
    Build a RoomSession wired to the configured transport.

    Args:
        app_config: Loaded AppConfig
        player_id: Identity to use; loaded from (or created in) the identity file if omitted
        hub: Loopback hub to attach to; a private one is created if omitted
        scheduler: Timer scheduler for reconnect backoff, mainly for tests

    Returns:
        A RoomSession in the lobby

    Raises:
        ConfigurationError: If loopback mode is given a malformed connection string
    """
    if player_id is None:
        player_id = PlayerIdentityStore(app_config.identity_file).load_or_create()

    broker: TokenBroker
    if app_config.realtime_transport == 'loopback':
        service = _loopback_negotiate_service(app_config)
        broker = LocalTokenBroker(service)
        if hub is None:
            hub = LoopbackHub(service.get_issuer())
        transport_factory = lambda: LoopbackTransport(hub)
    else:
        broker = HttpTokenBroker(app_config.negotiate_url, timeout=app_config.broker_timeout)
        transport_factory = lambda: SocketIOTransport(connect_timeout=app_config.connect_timeout)

    def channel_factory() -> RealtimeChannel:
        return RealtimeChannel(
            broker,
            transport_factory,
            scheduler=scheduler,
            max_reconnect_attempts=app_config.max_reconnect_attempts,
            base_delay_ms=app_config.reconnect_base_delay_ms,
            max_delay_ms=app_config.reconnect_max_delay_ms,
        )

    logger.info(f"Room session for {player_id} using {app_config.realtime_transport} transport")
    return RoomSession(player_id, channel_factory, room_code_length=app_config.room_code_length)
