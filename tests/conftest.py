# tests/conftest.py
from __future__ import annotations
import io
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from uploader.core.config import Settings
from uploader.main import create_app

import fitz  # PyMuPDF
import docx

PNG_MIME = "image/png"
PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# --------------------------------------------------------------------
# Settings pointing at a per-test upload dir so tests don't pollute cwd
# --------------------------------------------------------------------
@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads"

@pytest.fixture
def settings(upload_dir) -> Settings:
    return Settings(upload_dir=upload_dir, static_dir=None)

# --------------------------------------------------------------------
# FastAPI test client available as fixture `client`
# --------------------------------------------------------------------
@pytest.fixture
def client(settings) -> Generator[TestClient, None, None]:
    with TestClient(create_app(settings)) as c:
        yield c

def stored_files(directory: Path) -> list[str]:
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())

# --------------------------------------------------------------------
# Helpers to create in-memory sample files
# --------------------------------------------------------------------
def _pdf_bytes(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 100), text, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data

def _docx_bytes(text: str) -> bytes:
    d = docx.Document()
    for p in text.split("\n\n"):
        d.add_paragraph(p)
    buf = io.BytesIO()
    d.save(buf)
    return buf.getvalue()

@pytest.fixture
def sample_png_bytes() -> bytes:
    # 2 KB: PNG signature followed by filler
    header = b"\x89PNG\r\n\x1a\n"
    return (header + bytes(range(256)) * 8)[:2048]

@pytest.fixture
def sample_pdf_bytes() -> bytes:
    return _pdf_bytes("Quarterly report.\nSecond line here.")

@pytest.fixture
def sample_docx_bytes() -> bytes:
    return _docx_bytes("Meeting notes.\n\nAction items follow.")
