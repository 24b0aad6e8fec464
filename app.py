"""
Tic-Tac-Toe Online - token broker and room relay server.
Main Flask application entry point focusing on app creation, dependency injection, and service wiring.
"""

from flask import Flask
from flask_socketio import SocketIO
import logging

# Import core dependencies
from container import configure_container
from config_factory import load_config, ConfigurationFactory

# Initialize Flask app
app = Flask(__name__)

# Load and apply configuration
app_config = load_config()
config_factory = ConfigurationFactory()
app.config.update(config_factory.get_flask_config())

# Initialize Socket.IO with environment-aware CORS
if app_config.is_production:
    # If no origins are configured, default to same-origin only
    socketio = SocketIO(app, cors_allowed_origins=app_config.allowed_origins or [], async_mode='eventlet')
else:
    # Development/testing: permissive for local workflows
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='eventlet')

# Configure logging
logging.basicConfig(level=getattr(logging, app_config.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Configure service container with dependencies
container = configure_container(socketio=socketio, config=config_factory.to_dict())

# Initialize services from container
services = {
    'negotiate_service': container.get('NegotiateService'),
    'relay_session_service': container.get('RelaySessionService'),
}

# Register REST endpoints
from tictactoe.routes.negotiate import create_negotiate_blueprint
negotiate_blueprint = create_negotiate_blueprint(services)
app.register_blueprint(negotiate_blueprint)

# Register Socket.IO handlers
from tictactoe.handlers.relay_handlers import register_relay_handlers
register_relay_handlers(socketio, services)

if not services['negotiate_service'].is_configured:
    logger.warning("Token broker has no connection secret; negotiate requests will fail with 500")

if __name__ == '__main__':
    # Run the application using configuration
    logger.info(f"Starting Tic-Tac-Toe Online server on {app_config.host}:{app_config.port}")
    try:
        socketio.run(app, host=app_config.host, port=app_config.port, debug=app_config.debug)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
