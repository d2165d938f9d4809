"""Control API routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...app import Application
from ...auth import TeamIdentity
from ...logging_config import get_logger
from ..dependencies import team_member_dependency

logger = get_logger(__name__)


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])
    require_team_member = team_member_dependency(app)

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system(
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Clear all stored chat data."""
        try:
            await app.reset()
            logger.info("Chat data reset", extra={"member_id": member.member_id})
            return {"status": "ok"}
        except Exception as e:
            logger.error("Reset failed: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))

    return router
