"""Error taxonomy for the chat core."""


class ChatError(Exception):
    """Base class for chat errors surfaced to callers."""

    status_code: int = 500
    code: str = "chat_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code)


class ValidationError(ChatError):
    """Request content is invalid."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(ChatError):
    """Missing or invalid team session credential."""

    status_code = 401
    code = "authentication_error"


class AuthorizationError(ChatError):
    """Only the original sender may modify this message."""

    status_code = 403
    code = "authorization_error"


class NotFoundError(ChatError):
    """Message not found."""

    status_code = 404
    code = "not_found"


class PersistenceError(ChatError):
    """Message store unavailable."""

    status_code = 503
    code = "persistence_error"


class TransportError(ChatError):
    """Realtime channel unavailable."""

    status_code = 502
    code = "transport_error"
