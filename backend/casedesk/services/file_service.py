# FILE: backend/casedesk/services/file_service.py
# Turns uploads into embedded CaseFile entries (data URLs, no separate blob storage).
# Oversize files are rejected one by one; the rest of the batch still goes through.

import base64
from datetime import datetime, timezone
from typing import Iterable, List, Tuple

import structlog
from bson import ObjectId

from ..core.exceptions import InvalidFileSize
from ..models.case import CaseFile
from .aggregation import format_iso

logger = structlog.get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# (file name, content type, raw bytes)
Upload = Tuple[str, str, bytes]

def to_data_url(content_type: str, data: bytes) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"

def build_case_file(file_name: str, content_type: str, data: bytes, max_bytes: int) -> CaseFile:
    if len(data) > max_bytes:
        raise InvalidFileSize(file_name, max_bytes)
    mime = content_type or DEFAULT_MIME_TYPE
    return CaseFile(
        id=str(ObjectId()),
        fileName=file_name,
        fileType=mime,
        fileData=to_data_url(mime, data),
        uploadedAt=format_iso(datetime.now(timezone.utc)),
    )

def prepare_uploads(uploads: Iterable[Upload], max_bytes: int) -> Tuple[List[CaseFile], List[str]]:
    accepted: List[CaseFile] = []
    rejected: List[str] = []
    for file_name, content_type, data in uploads:
        try:
            accepted.append(build_case_file(file_name, content_type, data, max_bytes))
        except InvalidFileSize as e:
            logger.warning("Upload rejected", file_name=file_name, size=len(data))
            rejected.append(e.message)
    return accepted, rejected

def estimate_file_size(file_data: str) -> int:
    """Decoded size in bytes of a data URL or bare base64 payload."""
    payload = file_data.split(",", 1)[1] if file_data.startswith("data:") else file_data
    padding = len(payload) - len(payload.rstrip("="))
    return max(0, (len(payload) * 3) // 4 - padding)

def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
