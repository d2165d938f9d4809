"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "team_chat.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_UPLOAD_DIR = DATA_DIR / "uploads"

ALLOWED_UPLOAD_EXTENSIONS = (".jpeg", ".jpg", ".png", ".gif", ".pdf", ".doc", ".docx", ".txt")

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_upload_dir(env_value: PathLike | None = None) -> Path:
    """Resolve UPLOAD_DIR to an absolute path."""
    if not env_value:
        return DEFAULT_UPLOAD_DIR

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class ChatSettings:
    """Runtime settings for the chat service."""

    jwt_secret: str = "dev-team-chat-secret"
    jwt_algorithm: str = "HS256"
    upload_dir: Path = DEFAULT_UPLOAD_DIR
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_upload_extensions: tuple[str, ...] = ALLOWED_UPLOAD_EXTENSIONS
    outbound_queue_size: int = 100
    persist_timeout_seconds: float = 10.0
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:5174"]
    )

    @classmethod
    def from_env(cls) -> "ChatSettings":
        """Build settings from environment variables."""
        defaults = cls()
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            upload_dir=resolve_upload_dir(os.getenv("UPLOAD_DIR")),
            max_upload_bytes=int(
                os.getenv("MAX_UPLOAD_BYTES", str(defaults.max_upload_bytes))
            ),
            outbound_queue_size=int(
                os.getenv("OUTBOUND_QUEUE_SIZE", str(defaults.outbound_queue_size))
            ),
            persist_timeout_seconds=float(
                os.getenv(
                    "PERSIST_TIMEOUT_SECONDS", str(defaults.persist_timeout_seconds)
                )
            ),
            cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
        )
