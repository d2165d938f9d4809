"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..errors import ChatError
from ..logging_config import get_logger
from .routes.chat import create_chat_router
from .routes.control import create_control_router
from .routes.observability import create_observability_router
from .routes.realtime import create_realtime_router

logger = get_logger(__name__)


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Map chat errors onto HTTP responses with a specific reason."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s rejected (%s): %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Team Chat API",
        description="Realtime team chat: messages, presence, typing, receipts",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=application.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    fastapi_app.add_exception_handler(ChatError, chat_error_handler)

    fastapi_app.include_router(create_chat_router(application))
    fastapi_app.include_router(create_realtime_router(application))
    fastapi_app.include_router(create_observability_router(application))
    fastapi_app.include_router(create_control_router(application))

    return fastapi_app
