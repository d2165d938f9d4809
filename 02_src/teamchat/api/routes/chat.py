"""Team chat API routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ...app import Application
from ...auth import TeamIdentity
from ...errors import ChatError, NotFoundError
from ...logging_config import get_logger
from ...models import message_payload
from ..dependencies import team_member_dependency

logger = get_logger(__name__)


class SendMessageRequest(BaseModel):
    """Request model for sending a message."""

    message: str = ""
    replyTo: int | None = None


class EditMessageRequest(BaseModel):
    """Request model for editing a message."""

    message: str = ""


class MessageResponse(BaseModel):
    """A chat message as seen by clients."""

    id: int
    senderId: int
    message: str
    replyTo: int | None = None
    fileUrl: str | None = None
    fileName: str | None = None
    fileSize: int | None = None
    isEdited: bool = False
    createdAt: datetime
    updatedAt: datetime
    senderName: str | None = None
    senderRole: str | None = None


class DeleteResponse(BaseModel):
    """Response model for delete."""

    message: str


class PresenceResponse(BaseModel):
    """Identities with at least one open realtime connection."""

    userIds: list[int]


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error("%s error: %s", action, e, exc_info=True)
    return HTTPException(status_code=500, detail="Internal server error")


def create_chat_router(app: Application) -> APIRouter:
    """Create team chat router."""
    router = APIRouter(tags=["chat"])
    require_team_member = team_member_dependency(app)

    @router.get("/api/team/chat", response_model=list[MessageResponse])
    async def list_messages(
        search: str | None = Query(None, description="Substring filter"),
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        member: TeamIdentity = Depends(require_team_member),
    ) -> list[dict]:
        """Chat history: oldest first, or newest first when searching."""
        try:
            messages = await app.storage.list_messages(
                search=search, limit=limit, offset=offset
            )
            return [message_payload(m) for m in messages]
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("List messages", e)

    @router.get("/api/team/chat/search", response_model=list[MessageResponse])
    async def search_messages(
        q: str | None = Query(None, description="Search text"),
        limit: int = Query(20, ge=1, le=200),
        member: TeamIdentity = Depends(require_team_member),
    ) -> list[dict]:
        """Search message bodies, newest first."""
        try:
            messages = await app.storage.search_messages(q or "", limit=limit)
            return [message_payload(m) for m in messages]
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("Search messages", e)

    @router.post("/api/team/chat", response_model=MessageResponse, status_code=201)
    async def send_message(
        request: SendMessageRequest,
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Send a message to the team chat."""
        try:
            message = await app.pipeline.send(
                sender_id=member.member_id,
                body=request.message,
                reply_to=request.replyTo,
            )
            return message_payload(message)
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("Create chat", e)

    @router.post(
        "/api/team/chat/upload", response_model=MessageResponse, status_code=201
    )
    async def upload_file(
        file: UploadFile = File(...),
        message: str = Form(""),
        replyTo: int | None = Form(None),
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Send a file to the team chat."""
        try:
            # One byte past the limit is enough to reject oversize files
            data = await file.read(app.settings.max_upload_bytes + 1)
            sent = await app.pipeline.send_file(
                sender_id=member.member_id,
                filename=file.filename or "",
                data=data,
                body=message,
                reply_to=replyTo,
            )
            return message_payload(sent)
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("File upload", e)
        finally:
            await file.close()

    @router.put("/api/team/chat/{message_id}/read", response_model=MessageResponse)
    async def mark_read(
        message_id: int,
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Mark a message as read by the caller."""
        try:
            message = await app.pipeline.mark_read(message_id, member.member_id)
            return message_payload(message)
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("Mark message read", e)

    @router.put("/api/team/chat/{message_id}", response_model=MessageResponse)
    async def edit_message(
        message_id: int,
        request: EditMessageRequest,
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Edit one of the caller's own messages."""
        try:
            message = await app.pipeline.edit(
                message_id, request.message, member.member_id
            )
            return message_payload(message)
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("Edit message", e)

    @router.delete("/api/team/chat/{message_id}", response_model=DeleteResponse)
    async def delete_message(
        message_id: int,
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Delete one of the caller's own messages."""
        try:
            await app.pipeline.delete(message_id, member.member_id)
            return {"message": "Message deleted successfully"}
        except ChatError:
            raise
        except Exception as e:
            raise _internal_error("Delete message", e)

    @router.get("/api/team/presence", response_model=PresenceResponse)
    async def online_members(
        member: TeamIdentity = Depends(require_team_member),
    ) -> dict:
        """Who is online right now."""
        return {"userIds": sorted(app.presence.snapshot())}

    @router.get("/uploads/{filename}")
    async def get_upload(filename: str) -> FileResponse:
        """Serve a stored attachment."""
        path = app.blob_store.resolve(filename)
        if path is None:
            raise NotFoundError("File not found")
        return FileResponse(path)

    return router
