from pathlib import Path

import pytest
from pydantic import ValidationError

from uploader.core.config import ALLOWED_MIME_TYPES, Settings, init_storage, load_settings


def test_defaults():
    s = load_settings({})
    assert s.port == 3000
    assert s.upload_dir == Path("uploads")
    assert s.field_name == "uploadedFile"
    assert s.max_upload_bytes == 10 * 1024 * 1024
    assert s.max_request_bytes is None
    assert s.allowed_mime_types == ALLOWED_MIME_TYPES
    assert s.static_dir == Path("public")


def test_environment_overrides(tmp_path):
    s = load_settings({
        "PORT": "8080",
        "UPLOAD_DIR": str(tmp_path / "files"),
        "MAX_UPLOAD_BYTES": "1024",
        "UPLOAD_FIELD_NAME": "doc",
        "ALLOWED_MIME_TYPES": "application/pdf, Image/PNG",
        "STATIC_DIR": "",
        "LOG_LEVEL": "debug",
    })
    assert s.port == 8080
    assert s.upload_dir == tmp_path / "files"
    assert s.max_upload_bytes == 1024
    assert s.field_name == "doc"
    assert s.allowed_mime_types == frozenset({"application/pdf", "image/png"})
    assert s.static_dir is None
    assert s.log_level == "DEBUG"


def test_bad_integer():
    with pytest.raises(ValueError, match="PORT"):
        load_settings({"PORT": "eighty"})


def test_settings_are_read_only():
    s = Settings()
    with pytest.raises(ValidationError):
        s.max_upload_bytes = 1


def test_init_storage_creates_directory(tmp_path):
    target = tmp_path / "a" / "b"
    s = Settings(upload_dir=target)
    assert init_storage(s) == target
    assert target.is_dir()
    # idempotent
    init_storage(s)
