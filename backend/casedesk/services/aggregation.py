# FILE: backend/casedesk/services/aggregation.py
# CASEDESK - CASE AGGREGATION ENGINE
# 1. JOIN: Hearings are grouped once by case_id, then cases are mapped. O(cases + hearings).
# 2. NAMING: Records written by older clients use camelCase; current records use snake_case.
# 3. TIMESTAMPS: Server timestamps, native dates and ISO strings all become one ISO-8601 form.
# 4. ORPHANS: Hearings whose case is not in the current case set are dropped silently.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog
from bson.timestamp import Timestamp

from ..models.case import Case, CaseFile, CaseStatus, HearingDate

logger = structlog.get_logger(__name__)

DEFAULT_CLIENT_NAME = "Unnamed Client"
DEFAULT_CASE_NUMBER = "No Number"
DEFAULT_COURT_NAME = "No Court"

# --- RAW TIMESTAMP VARIANTS ---

@dataclass(frozen=True)
class ServerTimestamp:
    """A store-assigned timestamp object exposing ``as_datetime()`` (e.g. ``bson.Timestamp``)."""
    value: Any

@dataclass(frozen=True)
class NativeDate:
    value: Union[datetime, date]

@dataclass(frozen=True)
class IsoString:
    value: str

@dataclass(frozen=True)
class MissingTimestamp:
    pass

RawTimestamp = Union[ServerTimestamp, NativeDate, IsoString, MissingTimestamp]

def classify_timestamp(value: Any) -> RawTimestamp:
    if value is None:
        return MissingTimestamp()
    if isinstance(value, Timestamp) or callable(getattr(value, "as_datetime", None)):
        return ServerTimestamp(value)
    if isinstance(value, (datetime, date)):
        return NativeDate(value)
    if isinstance(value, str):
        return IsoString(value) if value.strip() else MissingTimestamp()
    logger.debug("Unrecognised timestamp encoding", value_type=type(value).__name__)
    return MissingTimestamp()

def _as_utc(value: Union[datetime, date]) -> datetime:
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def _parse_iso(text: str) -> Optional[datetime]:
    candidate = text.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None

def to_datetime(raw: RawTimestamp) -> Optional[datetime]:
    """Resolves a classified timestamp to an aware UTC datetime, or None when it carries no instant."""
    if isinstance(raw, MissingTimestamp):
        return None
    try:
        if isinstance(raw, ServerTimestamp):
            return _as_utc(raw.value.as_datetime())
        if isinstance(raw, NativeDate):
            return _as_utc(raw.value)
        if isinstance(raw, IsoString):
            parsed = _parse_iso(raw.value)
            return _as_utc(parsed) if parsed is not None else None
    except OverflowError:
        # Offsets that push the instant outside datetime's range.
        logger.debug("Timestamp out of range", value=repr(raw))
        return None
    raise TypeError(f"Unhandled timestamp variant: {raw!r}")

def format_iso(value: datetime) -> str:
    return _as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def normalize_timestamp(value: Any, now: Optional[datetime] = None) -> str:
    """Canonical ISO-8601 string for any stored timestamp encoding; missing or unparseable values become ``now``."""
    resolved = to_datetime(classify_timestamp(value))
    if resolved is None:
        resolved = now or datetime.now(timezone.utc)
    return format_iso(resolved)

def normalize_hearing_date(value: Any) -> str:
    # Plain strings are calendar dates already and are kept verbatim.
    if isinstance(value, str):
        return value.strip()
    raw = classify_timestamp(value)
    if isinstance(raw, NativeDate) and not isinstance(raw.value, datetime):
        return raw.value.isoformat()
    if isinstance(raw, NativeDate):
        return raw.value.date().isoformat()
    resolved = to_datetime(raw)
    return resolved.date().isoformat() if resolved is not None else ""

# --- FIELD HELPERS ---

def _pick(record: Dict[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return str(value)
    return default

def _first_present(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None

def _optional(record: Dict[str, Any], *keys: str) -> Optional[str]:
    value = _pick(record, *keys)
    return value or None

def _record_id(record: Dict[str, Any]) -> str:
    return _pick(record, "id", "_id").strip()

def hearing_case_id(record: Dict[str, Any]) -> str:
    return _pick(record, "case_id", "case_Id", "caseId").strip()

def normalize_status(value: Any) -> CaseStatus:
    return CaseStatus.CLOSED if value == CaseStatus.CLOSED.value else CaseStatus.ACTIVE

def normalize_file(record: Dict[str, Any]) -> CaseFile:
    return CaseFile(
        id=_pick(record, "id"),
        fileName=_pick(record, "fileName", "file_name", default="untitled"),
        fileType=_pick(record, "fileType", "file_type", default="application/octet-stream"),
        fileData=_pick(record, "fileData", "file_data"),
        uploadedAt=normalize_timestamp(record.get("uploadedAt") or record.get("uploaded_at")),
    )

def normalize_hearing(record: Dict[str, Any]) -> HearingDate:
    return HearingDate(
        id=_record_id(record),
        date=normalize_hearing_date(record.get("date")),
        time=_optional(record, "time"),
        notes=_optional(record, "notes"),
    )

def normalize_case(record: Dict[str, Any], hearings: Iterable[Dict[str, Any]] = ()) -> Case:
    files = record.get("files")
    return Case(
        id=_record_id(record),
        clientName=_pick(record, "client_name", "clientName", default=DEFAULT_CLIENT_NAME),
        clientPhone=_pick(record, "client_phone", "clientPhone"),
        caseNumber=_pick(record, "case_number", "caseNumber", default=DEFAULT_CASE_NUMBER),
        courtName=_pick(record, "court_name", "courtName", default=DEFAULT_COURT_NAME),
        status=normalize_status(record.get("status")),
        notes=_pick(record, "notes"),
        createdAt=normalize_timestamp(_first_present(record, "created_at", "createdAt")),
        files=[normalize_file(f) for f in files if isinstance(f, dict)] if isinstance(files, list) else [],
        hearingDates=[normalize_hearing(h) for h in hearings],
    )

# --- JOIN ---

def group_hearings(raw_hearings: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for hearing in raw_hearings:
        grouped.setdefault(hearing_case_id(hearing), []).append(hearing)
    return grouped

def join_cases(raw_cases: Iterable[Dict[str, Any]], raw_hearings: Iterable[Dict[str, Any]]) -> List[Case]:
    """
    Builds the Case view set for one user.
    Hearings are looked up by normalized case id; anything without a matching case never surfaces.
    """
    grouped = group_hearings(raw_hearings)
    return [normalize_case(c, grouped.get(_record_id(c), [])) for c in raw_cases]
