"""Blob store for chat file attachments."""

import asyncio
import random
import time
from pathlib import Path
from typing import Protocol

from ..config import ALLOWED_UPLOAD_EXTENSIONS
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import Attachment

logger = get_logger(__name__)


UPLOAD_URL_PREFIX = "/uploads/"


class IBlobStore(Protocol):
    """Opaque file storage that hands back a URL."""

    async def put(self, original_name: str, data: bytes) -> Attachment:
        """Store bytes and describe them as an Attachment."""
        ...

    async def discard(self, attachment: Attachment) -> None:
        """Remove a stored blob (used when the message could not be saved)."""
        ...

    def resolve(self, stored_name: str) -> Path | None:
        """Local path of a stored blob, or None."""
        ...


class LocalBlobStore:
    """Stores uploads in a directory on local disk."""

    def __init__(
        self,
        root: Path,
        max_bytes: int = 10 * 1024 * 1024,
        allowed_extensions: tuple[str, ...] = ALLOWED_UPLOAD_EXTENSIONS,
    ):
        self._root = Path(root)
        self._max_bytes = max_bytes
        self._allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)
        self._root.mkdir(parents=True, exist_ok=True)

    def validate(self, original_name: str, size: int) -> str:
        """Check name and size; returns the lower-cased extension."""
        if not original_name:
            raise ValidationError("No file uploaded")
        if size <= 0:
            raise ValidationError("Uploaded file is empty")
        if size > self._max_bytes:
            raise ValidationError(
                f"File exceeds the {self._max_bytes // (1024 * 1024)}MB limit"
            )
        ext = Path(original_name).suffix.lower()
        if ext not in self._allowed_extensions:
            raise ValidationError("Only images and documents are allowed")
        return ext

    async def put(self, original_name: str, data: bytes) -> Attachment:
        """Store bytes and describe them as an Attachment."""
        ext = self.validate(original_name, len(data))
        stored_name = f"file-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
        path = self._root / stored_name

        await asyncio.to_thread(path.write_bytes, data)
        logger.info("Stored upload %s as %s (%s bytes)", original_name, stored_name, len(data))

        return Attachment(
            url=f"{UPLOAD_URL_PREFIX}{stored_name}",
            name=original_name,
            size=len(data),
        )

    async def discard(self, attachment: Attachment) -> None:
        """Remove a stored blob (used when the message could not be saved)."""
        path = self.resolve(attachment.url.removeprefix(UPLOAD_URL_PREFIX))
        if path is not None:
            await asyncio.to_thread(path.unlink, True)

    def resolve(self, stored_name: str) -> Path | None:
        """Local path of a stored blob, or None."""
        if not stored_name or Path(stored_name).name != stored_name:
            return None
        path = self._root / stored_name
        return path if path.is_file() else None
