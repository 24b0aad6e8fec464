"""
Core error definitions for Tic-Tac-Toe Online

Provides error codes and the exception taxonomy shared by the broker,
the realtime channel and the room session. None of these depend on other services.
"""

from enum import Enum
from typing import Dict, Optional


class ErrorCode(Enum):
    """Standardized error codes for the application."""

    # Request validation errors
    INVALID_DATA = "INVALID_DATA"
    MISSING_DATA = "MISSING_DATA"
    MISSING_ROOM_CODE = "MISSING_ROOM_CODE"
    MISSING_PLAYER_ID = "MISSING_PLAYER_ID"
    INVALID_ROOM_CODE = "INVALID_ROOM_CODE"

    # Broker errors
    BROKER_NOT_CONFIGURED = "BROKER_NOT_CONFIGURED"
    INVALID_CONNECTION_STRING = "INVALID_CONNECTION_STRING"
    NEGOTIATE_REJECTED = "NEGOTIATE_REJECTED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Transport errors
    CONNECT_FAILED = "CONNECT_FAILED"
    SEND_FAILED = "SEND_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"

    # Protocol errors
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    INVALID_MESSAGE_FIELD = "INVALID_MESSAGE_FIELD"
    ROOM_MISMATCH = "ROOM_MISMATCH"

    # Game logic errors
    CELL_OCCUPIED = "CELL_OCCUPIED"
    GAME_FINISHED = "GAME_FINISHED"
    WRONG_PHASE = "WRONG_PHASE"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TicTacToeError(Exception):
    """Base exception carrying an error code and optional details."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None, details: Optional[Dict] = None):
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(TicTacToeError):
    """Custom exception for request validation errors."""

    default_code = ErrorCode.INVALID_DATA

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class ConfigurationError(TicTacToeError):
    """The broker is missing its connection secret or it cannot be parsed."""

    default_code = ErrorCode.BROKER_NOT_CONFIGURED


class AuthorizationFailure(TicTacToeError):
    """The broker was reachable but refused to issue, or a token did not verify."""

    default_code = ErrorCode.NEGOTIATE_REJECTED


class TransportFailure(TicTacToeError):
    """Opening or writing to the realtime transport failed."""

    default_code = ErrorCode.CONNECT_FAILED


class ProtocolViolation(TicTacToeError):
    """An inbound frame could not be understood."""

    default_code = ErrorCode.MALFORMED_PAYLOAD


class LogicConflict(TicTacToeError):
    """A move arrived that cannot apply to the current board."""

    default_code = ErrorCode.CELL_OCCUPIED


def create_error_response(code: ErrorCode, message: str, details: Optional[Dict] = None) -> Dict:
    """
    Create the JSON error body returned by HTTP endpoints.

    Args:
        code: Error code enum
        message: Human-readable error message
        details: Optional additional error details

    Returns:
        ``{"error": message, "code": code}`` plus ``details`` when present
    """
    response = {"error": message, "code": code.value}
    if details:
        response["details"] = details
    return response
