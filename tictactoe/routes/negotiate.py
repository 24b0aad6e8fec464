"""
HTTP endpoints of the access token broker.
"""

import logging
from flask import Blueprint, jsonify, request

from tictactoe.core.errors import (
    ConfigurationError,
    ErrorCode,
    TicTacToeError,
    ValidationError,
    create_error_response,
)

logger = logging.getLogger(__name__)

# Global references to services - will be set by registration function
negotiate_service = None


def create_negotiate_blueprint(services):
    """Create and configure the negotiate Blueprint with service dependencies."""
    global negotiate_service

    # Store service references
    negotiate_service = services['negotiate_service']

    broker = Blueprint('negotiate', __name__)

    @broker.route('/negotiate', methods=['POST'])
    def negotiate():
        """Issue a credential scoped to one room's group."""
        # A missing or non-JSON body is treated as an empty one
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}

        try:
            credential = negotiate_service.negotiate(payload.get('roomCode'), payload.get('playerId'))
            return jsonify({'url': credential.url}), 200
        except ValidationError as e:
            logger.info(f'Rejected negotiate request: {e.message}')
            return jsonify(create_error_response(e.code, e.message)), 400
        except ConfigurationError as e:
            logger.error(f'Negotiate failed, broker not configured: {e.message}')
            return jsonify(create_error_response(e.code, e.message)), 500
        except TicTacToeError as e:
            logger.error(f'Negotiate failed: {e.message}')
            return jsonify(create_error_response(e.code, e.message)), 500
        except Exception as e:
            logger.error(f'Unexpected error during negotiate: {e}')
            return jsonify(create_error_response(ErrorCode.INTERNAL_ERROR, 'Failed to negotiate connection')), 500

    @broker.route('/negotiate', methods=['GET'])
    def negotiate_status():
        """Readiness probe."""
        return jsonify(negotiate_service.status()), 200

    return broker
