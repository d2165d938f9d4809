"""Team session token verification."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import PyJWTError

from .config import ChatSettings
from .errors import AuthenticationError, AuthorizationError

TEAM_TOKEN_TYPE = "team"


@dataclass(frozen=True)
class TeamIdentity:
    """The authenticated team member behind a request or connection."""

    member_id: int
    role: str | None = None


def decode_team_token(token: str, settings: ChatSettings) -> TeamIdentity:
    """Verify a team session token and return its identity.

    Raises AuthenticationError for a bad or expired token and
    AuthorizationError for a valid token that is not a team token.
    """
    if not token:
        raise AuthenticationError("Access token required")

    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except PyJWTError as e:
        raise AuthenticationError("Invalid token") from e

    if payload.get("type") != TEAM_TOKEN_TYPE:
        raise AuthorizationError("Team member access required")

    try:
        member_id = int(payload["teamMemberId"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError("Invalid token") from e

    return TeamIdentity(member_id=member_id, role=payload.get("role"))


def issue_team_token(
    member_id: int,
    settings: ChatSettings,
    role: str | None = None,
    expires_delta: timedelta | None = timedelta(hours=24),
) -> str:
    """Create a team session token (development and tests)."""
    claims: dict[str, Any] = {
        "teamMemberId": member_id,
        "type": TEAM_TOKEN_TYPE,
    }
    if role:
        claims["role"] = role
    if expires_delta is not None:
        claims["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()
