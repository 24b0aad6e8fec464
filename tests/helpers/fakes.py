"""
In-memory fakes for the channel's collaborators and for the channel itself.
"""

from tictactoe.broker.client import TokenBroker
from tictactoe.broker.negotiate_service import Credential
from tictactoe.core.errors import TransportFailure
from tictactoe.core.game_phases import ConnectionPhase, ConnectionStatus
from tictactoe.realtime.transports import Transport

FAKE_CREDENTIAL_URL = "http://relay.test?access_token=fake-token"


class FakeBroker(TokenBroker):
    """Returns a fixed credential, or raises queued/permanent failures."""

    def __init__(self, url=FAKE_CREDENTIAL_URL):
        self.url = url
        self.calls = []
        self.failures = []
        self.fail_always = None

    def negotiate(self, room_code, player_id):
        self.calls.append((room_code, player_id))
        if self.failures:
            raise self.failures.pop(0)
        if self.fail_always is not None:
            raise self.fail_always
        return Credential(url=self.url)


class FakeTransport(Transport):
    """Transport whose server side is driven by the test."""

    def __init__(self, fail_open=None, drop_on_open=False):
        self.fail_open = fail_open
        self.drop_on_open = drop_on_open
        self.url = None
        self.sent = []
        self.closed = False
        self._open = False
        self._on_message = None
        self._on_close = None

    def open(self, url, on_message, on_close):
        if self.fail_open is not None:
            raise self.fail_open
        self.url = url
        self._on_message = on_message
        self._on_close = on_close
        self._open = True
        if self.drop_on_open:
            self.drop()

    def send(self, data):
        if not self._open:
            raise TransportFailure("fake transport is closed")
        self.sent.append(data)

    def close(self):
        self._open = False
        self.closed = True

    @property
    def is_open(self):
        return self._open

    def receive(self, data):
        """Simulate an inbound frame."""
        self._on_message(data)

    def drop(self):
        """Simulate the server dropping the connection."""
        self._open = False
        self._on_close()


class FakeTransportFactory:
    """Builds FakeTransports, optionally failing the next few opens."""

    def __init__(self):
        self.created = []
        self.open_failures = []
        self.drops_on_open = 0

    def __call__(self):
        fail_open = self.open_failures.pop(0) if self.open_failures else None
        drop_on_open = self.drops_on_open > 0
        if drop_on_open:
            self.drops_on_open -= 1
        transport = FakeTransport(fail_open=fail_open, drop_on_open=drop_on_open)
        self.created.append(transport)
        return transport

    @property
    def last(self):
        return self.created[-1]


class FakeChannel:
    """Stand-in for RealtimeChannel used by room session tests."""

    def __init__(self, connect_result=True):
        self.connect_result = connect_result
        self.connected_to = None
        self.disconnected = False
        self.sent = []
        self.message_handlers = []
        self.status_handlers = []
        self.status = ConnectionStatus()

    def on_message(self, handler):
        self.message_handlers.append(handler)

    def on_connection_status(self, handler):
        self.status_handlers.append(handler)

    def connect(self, room_code, player_id):
        self.connected_to = (room_code, player_id)
        if self.connect_result:
            self.emit_status(ConnectionStatus(ConnectionPhase.CONNECTED))
        else:
            self.emit_status(ConnectionStatus(ConnectionPhase.DISCONNECTED, error="refused"))
        return self.connect_result

    def disconnect(self):
        self.disconnected = True
        self.message_handlers.clear()
        self.status_handlers.clear()

    def send(self, message):
        self.sent.append(message)
        return True

    def emit_status(self, status):
        self.status = status
        for handler in list(self.status_handlers):
            handler(status)

    def deliver(self, message):
        for handler in list(self.message_handlers):
            handler(message)


class FakeChannelFactory:
    """Channel factory recording every channel a session builds."""

    def __init__(self, connect_result=True):
        self.connect_result = connect_result
        self.created = []

    def __call__(self):
        channel = FakeChannel(connect_result=self.connect_result)
        self.created.append(channel)
        return channel

    @property
    def last(self):
        return self.created[-1]
