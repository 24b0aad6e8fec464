"""
Access token issuing and verification for the realtime relay.

Tokens are HS256 JWTs signed with the relay's access key. Each token
names its subject (the player id) and grants exactly one group.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Tuple

from jose import ExpiredSignatureError, JWTError, jwt

from tictactoe.core.errors import AuthorizationFailure, ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL_MINUTES = 60


@dataclass(frozen=True)
class AccessGrant:
    """What a verified token allows its bearer to do."""
    subject: str
    groups: Tuple[str, ...]
    expires_at: datetime

    @property
    def group(self) -> str:
        return self.groups[0]


def parse_connection_string(connection_string: str) -> Tuple[str, str]:
    """
    Parse a ``Endpoint=...;AccessKey=...;`` connection string.

    Args:
        connection_string: Raw connection secret

    Returns:
        Tuple of (endpoint, access_key)

    Raises:
        ConfigurationError: If the string is empty or lacks either part
    """
    if not connection_string or not connection_string.strip():
        raise ConfigurationError("PUBSUB_CONNECTION_STRING is not set")

    parts: Dict[str, str] = {}
    for segment in connection_string.split(";"):
        if not segment.strip():
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise ConfigurationError(
                f"Malformed connection string segment: {segment!r}",
                ErrorCode.INVALID_CONNECTION_STRING,
            )
        parts[key.strip().lower()] = value.strip()

    endpoint = parts.get("endpoint", "").rstrip("/")
    access_key = parts.get("accesskey", "")
    if not endpoint or not access_key:
        raise ConfigurationError(
            "Connection string must contain Endpoint and AccessKey",
            ErrorCode.INVALID_CONNECTION_STRING,
        )
    return endpoint, access_key


class AccessTokenIssuer:
    """Issues and verifies group-scoped access tokens for one hub."""

    def __init__(self, access_key: str, hub: str):
        if not access_key:
            raise ConfigurationError("An access key is required to sign tokens")
        self._access_key = access_key
        self.hub = hub

    def issue(self, subject: str, group: str, ttl_minutes: int = DEFAULT_TOKEN_TTL_MINUTES) -> str:
        """
        Issue a token for a single group.

        Args:
            subject: Player identity the token is bound to
            group: The only group the bearer may join
            ttl_minutes: Token lifetime

        Returns:
            Encoded JWT
        """
        now = datetime.now(timezone.utc)
        claims = {
            "sub": subject,
            "aud": self.hub,
            "iat": now,
            "exp": now + timedelta(minutes=ttl_minutes),
            "groups": [group],
        }
        return jwt.encode(claims, self._access_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> AccessGrant:
        """
        Verify a token and return what it grants.

        Raises:
            AuthorizationFailure: If the token is invalid, expired, or not
                scoped to exactly one group
        """
        if not token:
            raise AuthorizationFailure("Missing access token", ErrorCode.INVALID_TOKEN)
        try:
            claims = jwt.decode(token, self._access_key, algorithms=[ALGORITHM], audience=self.hub,
                                options={"require_exp": True})
        except ExpiredSignatureError:
            raise AuthorizationFailure("Access token has expired", ErrorCode.TOKEN_EXPIRED)
        except JWTError as e:
            raise AuthorizationFailure(f"Invalid access token: {e}", ErrorCode.INVALID_TOKEN)

        subject = claims.get("sub")
        groups: List[str] = claims.get("groups") or []
        if not subject or not isinstance(groups, list) or len(groups) != 1 or not isinstance(groups[0], str):
            raise AuthorizationFailure("Access token must grant exactly one group", ErrorCode.INVALID_TOKEN)

        expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        return AccessGrant(subject=subject, groups=tuple(groups), expires_at=expires_at)
