"""Realtime WebSocket route."""

from fastapi import APIRouter, Query, WebSocket

from ...app import Application
from ...auth import decode_team_token
from ...errors import AuthenticationError, ChatError
from ...logging_config import get_logger

logger = get_logger(__name__)

# Application-defined close codes (4000-4999)
CLOSE_UNAUTHENTICATED = 4401
CLOSE_FORBIDDEN = 4403


def create_realtime_router(app: Application) -> APIRouter:
    """Create realtime router."""
    router = APIRouter(tags=["realtime"])

    @router.websocket("/ws/chat")
    async def chat_socket(
        websocket: WebSocket,
        token: str | None = Query(None),
    ) -> None:
        """Team chat channel; the client must send join after connecting."""
        try:
            identity = decode_team_token(token or "", app.settings)
        except ChatError as e:
            code = (
                CLOSE_UNAUTHENTICATED
                if isinstance(e, AuthenticationError)
                else CLOSE_FORBIDDEN
            )
            logger.info("Rejected realtime connection: %s", e.message)
            await websocket.close(code=code, reason=e.message)
            return

        await websocket.accept()
        session = app.gateway.open_session(websocket, identity.member_id)
        logger.info(
            "Realtime connection %s opened for member %s",
            session.connection.id,
            identity.member_id,
        )
        await session.run()

    return router
