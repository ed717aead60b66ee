"""Upload validation and serialization shared by task and project attachments."""

from __future__ import annotations

import hashlib
from urllib.parse import quote

from fastapi import HTTPException, UploadFile

from taskflow.config import get_settings, parse_list
from taskflow.errors import InvalidInput
from taskflow.models.attachment import Attachment


async def read_upload(file: UploadFile) -> tuple[bytes, str]:
    """Read an uploaded file, enforcing size and type limits.

    Returns the content and its SHA-256 hex digest.
    """
    settings = get_settings()
    mime_type = file.content_type or "application/octet-stream"
    if mime_type not in parse_list(settings.allowed_upload_types):
        raise InvalidInput(f"Invalid file type: {mime_type}")

    content = await file.read()
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            413, f"File too large (max {settings.max_upload_size // (1024 * 1024)} MB)"
        )
    return content, hashlib.sha256(content).hexdigest()


def content_disposition(file_name: str) -> str:
    """Download header for ``file_name``.

    The quoted ``filename`` is an ASCII fallback with quotes, backslashes
    and control characters replaced; ``filename*`` carries the exact name
    percent-encoded (RFC 5987).
    """
    fallback = "".join(
        "_" if ch in '"\\' or ord(ch) < 0x20 or ord(ch) > 0x7E else ch for ch in file_name
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


def format_attachment(a: Attachment) -> dict:
    return {
        "id": a.id,
        "task_id": a.task_id,
        "project_id": a.project_id,
        "attachment_type": a.attachment_type,
        "file_name": a.file_name,
        "mime_type": a.mime_type,
        "file_size": a.file_size,
        "file_hash": a.file_hash,
        "url": a.url,
        "description": a.description,
        "uploaded_by": a.uploaded_by,
        "created_at": a.created_at.isoformat() if a.created_at else None,
    }
