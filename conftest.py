"""
Global pytest configuration and fixtures.
Provides service fixtures for proper dependency injection in tests.
"""

import pytest
from flask import Flask
from flask_socketio import SocketIO

TEST_CONNECTION_STRING = "Endpoint=http://relay.test;AccessKey=test-access-key;"


@pytest.fixture(scope="function", autouse=True)
def reset_global_state():
    """Reset the global container and configuration before each test."""
    from container import reset_container
    from config_factory import reset_config

    reset_container()
    reset_config()

    yield


@pytest.fixture(scope="function")
def test_config():
    """Configuration for a broker with a usable connection secret."""
    from config_factory import load_config_from_dict

    return load_config_from_dict({
        'environment': 'testing',
        'pubsub_connection_string': TEST_CONNECTION_STRING,
        'realtime_transport': 'loopback',
    })


@pytest.fixture(scope="function")
def container(test_config):
    """Create service container with proper configuration."""
    from container import configure_container
    from config_factory import ConfigurationFactory

    test_app = Flask(__name__)
    test_socketio = SocketIO(test_app, async_mode='threading')

    return configure_container(socketio=test_socketio, config=ConfigurationFactory().to_dict())


@pytest.fixture(scope="function")
def negotiate_service(container):
    """Provide NegotiateService through dependency injection."""
    return container.get('NegotiateService')


@pytest.fixture(scope="function")
def relay_session_service(container):
    """Provide RelaySessionService through dependency injection."""
    return container.get('RelaySessionService')
