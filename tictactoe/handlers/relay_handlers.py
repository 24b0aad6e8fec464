"""
Socket.IO event handlers for the room relay.

The relay is a self-hosted stand-in for a managed pub/sub service: each
connection presents a room-scoped access token, is placed in exactly that
room's group, and every frame it sends is fanned out to the group.
"""

import logging
from flask import request
from flask_socketio import emit, join_room

from tictactoe.core.errors import AuthorizationFailure, ConfigurationError
from tictactoe.realtime.transports import RELAY_EVENT

logger = logging.getLogger(__name__)

# Global references to services - will be set by registration function
relay_session_service = None


def register_relay_handlers(socketio_instance, services):
    """Register relay handlers with the SocketIO instance."""
    global relay_session_service

    relay_session_service = services['relay_session_service']

    socketio_instance.on_event('connect', handle_connect)
    socketio_instance.on_event('disconnect', handle_disconnect)
    socketio_instance.on_event(RELAY_EVENT, handle_room_message)

    logger.info("Registered relay socket event handlers")


def _extract_token(auth):
    if isinstance(auth, dict) and auth.get('access_token'):
        return auth['access_token']
    return request.args.get('access_token')


def handle_connect(auth=None):
    """Accept a connection only if it carries a valid room-scoped token."""
    token = _extract_token(auth)
    if not token:
        logger.warning(f'Rejecting connection {request.sid}: no access token')
        return False

    try:
        grant = relay_session_service.authorize(request.sid, token)
    except (AuthorizationFailure, ConfigurationError) as e:
        logger.warning(f'Rejecting connection {request.sid} ({e.code.value}): {e.message}')
        return False

    join_room(grant.group)
    logger.info(f'Client {grant.subject} connected on {request.sid} to {grant.group}')


def handle_room_message(data):
    """Fan a frame out to every connection in the sender's group, sender included."""
    grant = relay_session_service.get_session(request.sid)
    if grant is None:
        logger.warning(f'Dropping frame from unknown session {request.sid}')
        return
    if not isinstance(data, str):
        logger.warning(f'Dropping non-text frame from {grant.subject}')
        return

    emit(RELAY_EVENT, data, to=grant.group)


def handle_disconnect(reason=None):
    """Forget the connection's grant."""
    grant = relay_session_service.remove_session(request.sid)
    if grant:
        logger.info(f'Client {grant.subject} disconnected from {grant.group}')
    else:
        logger.debug(f'Unknown session disconnected: {request.sid}')
