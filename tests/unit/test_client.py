"""
Client Wiring Tests
"""

import pytest

from config_factory import AppConfig, Environment
from tictactoe.broker.client import HttpTokenBroker, LocalTokenBroker
from tictactoe.client import create_room_session
from tictactoe.core.errors import ConfigurationError
from tictactoe.core.game_phases import GamePhase
from tictactoe.realtime.transports import LoopbackTransport, SocketIOTransport


class TestCreateRoomSession:

    def test_identity_loaded_from_file(self, tmp_path):
        config = AppConfig(realtime_transport='loopback', environment=Environment.TESTING,
                           identity_file=str(tmp_path / 'identity.json'))

        first = create_room_session(config)
        second = create_room_session(config)

        assert first.player_id == second.player_id
        assert first.phase == GamePhase.LOBBY

    def test_loopback_channel(self):
        config = AppConfig(realtime_transport='loopback', room_code_length=5,
                           max_reconnect_attempts=2, environment=Environment.TESTING)
        session = create_room_session(config, player_id='player-a')

        channel = session._channel_factory()

        assert isinstance(channel.broker, LocalTokenBroker)
        assert isinstance(channel.transport_factory(), LoopbackTransport)
        assert channel.max_reconnect_attempts == 2
        assert session.room_code_length == 5

    def test_socketio_channel(self):
        config = AppConfig(realtime_transport='socketio', negotiate_url='http://broker.test/negotiate',
                           broker_timeout=4.0, connect_timeout=6.0, environment=Environment.TESTING)
        session = create_room_session(config, player_id='player-a')

        channel = session._channel_factory()

        assert isinstance(channel.broker, HttpTokenBroker)
        assert channel.broker.negotiate_url == 'http://broker.test/negotiate'
        assert channel.broker.timeout == 4.0
        transport = channel.transport_factory()
        assert isinstance(transport, SocketIOTransport)
        assert transport.connect_timeout == 6.0

    def test_loopback_with_malformed_secret(self):
        config = AppConfig(realtime_transport='loopback', pubsub_connection_string='nonsense',
                           environment=Environment.TESTING)
        with pytest.raises(ConfigurationError):
            create_room_session(config, player_id='player-a')

    def test_room_created_in_loopback_mode(self):
        config = AppConfig(realtime_transport='loopback', environment=Environment.TESTING)
        session = create_room_session(config, player_id='player-a')

        code = session.create_room()

        assert len(code) == 4
        assert session.channel.is_connected()
