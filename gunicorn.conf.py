"""
Gunicorn configuration for the Tic-Tac-Toe Online server.
Socket.IO relay requires a single eventlet worker.
"""

import logging

from config_factory import load_config

# Load configuration (renamed to avoid conflicts with gunicorn's internal 'config')
app_config = load_config()


def on_starting(server):
    """Warn before workers fork if the broker cannot issue tokens."""
    logger = logging.getLogger(__name__)
    if not app_config.pubsub_connection_string:
        logger.warning("PUBSUB_CONNECTION_STRING is not set; /negotiate will answer 500 until it is configured")
    else:
        logger.info(f"Token broker configured for hub '{app_config.pubsub_hub}'")


# Server socket
bind = f"{app_config.host}:{app_config.port}"
backlog = 2048

# Worker processes
workers = 1  # Must be 1: relay groups live in process memory
worker_class = "eventlet"
worker_connections = app_config.worker_connections
timeout = app_config.timeout
keepalive = app_config.keepalive

# Logging
accesslog = "-"
errorlog = "-"
loglevel = app_config.log_level

# Process naming
proc_name = "tictactoe"

# Server mechanics
preload_app = False  # Don't preload for Socket.IO
daemon = False
