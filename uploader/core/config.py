import logging
import os
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict

PORT = 3000
HOST = "0.0.0.0"
UPLOAD_DIR = "uploads"
STATIC_DIR = "public"
FIELD_NAME = "uploadedFile"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MB hard cap per file
LOG_LEVEL = "INFO"
ALLOWED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class Settings(BaseModel):
    """Process-wide configuration, read-only once built."""

    model_config = ConfigDict(frozen=True)

    port: int = PORT
    host: str = HOST
    upload_dir: Path = Path(UPLOAD_DIR)
    static_dir: Optional[Path] = Path(STATIC_DIR)
    field_name: str = FIELD_NAME
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    max_request_bytes: Optional[int] = None
    allowed_mime_types: FrozenSet[str] = ALLOWED_MIME_TYPES
    log_level: str = LOG_LEVEL


def _int_env(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _mime_list(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return ALLOWED_MIME_TYPES
    return frozenset(m.strip().lower() for m in raw.split(",") if m.strip())


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    static = env.get("STATIC_DIR", STATIC_DIR)
    return Settings(
        port=_int_env(env, "PORT", PORT),
        host=env.get("HOST", HOST),
        upload_dir=Path(env.get("UPLOAD_DIR", UPLOAD_DIR)),
        static_dir=Path(static) if static else None,
        field_name=env.get("UPLOAD_FIELD_NAME", FIELD_NAME),
        max_upload_bytes=_int_env(env, "MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES),
        max_request_bytes=_int_env(env, "MAX_REQUEST_BYTES", None),
        allowed_mime_types=_mime_list(env.get("ALLOWED_MIME_TYPES")),
        log_level=env.get("LOG_LEVEL", LOG_LEVEL).upper(),
    )


def init_storage(settings: Settings) -> Path:
    """Create the upload directory if it does not exist yet."""
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    return settings.upload_dir


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
