"""Request dependencies shared by the API routers."""

from typing import Awaitable, Callable

from fastapi import Header

from ..app import Application
from ..auth import TeamIdentity, bearer_token, decode_team_token


def team_member_dependency(
    app: Application,
) -> Callable[..., Awaitable[TeamIdentity]]:
    """Build a dependency that resolves the calling team member."""

    async def require_team_member(
        authorization: str | None = Header(None),
    ) -> TeamIdentity:
        return decode_team_token(bearer_token(authorization), app.settings)

    return require_team_member
