# FILE: backend/casedesk/models/case.py
# CASEDESK - CASE VIEW MODELS
# 1. View models match the frontend 'Case' interface (camelCase fields).
# 2. The owning user_id never appears on a view object; it is a store-query filter.
# 3. Hearing dates are calendar dates kept as 'YYYY-MM-DD' strings, never instants.

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date as date_type
from enum import Enum

class CaseStatus(str, Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"

def _validate_calendar_date(v):
    if isinstance(v, date_type):
        return v.isoformat()[:10]
    if isinstance(v, str):
        candidate = v.strip()
        try:
            date_type.fromisoformat(candidate)
        except ValueError:
            raise ValueError(f"Expected a YYYY-MM-DD date, got {v!r}")
        return candidate
    raise ValueError(f"Expected a YYYY-MM-DD date, got {type(v)}")

# Embedded on the case record; fileData is a self-contained data URL.
class CaseFile(BaseModel):
    id: str
    fileName: str
    fileType: str
    fileData: str
    uploadedAt: str

class HearingDate(BaseModel):
    id: str
    date: str
    time: Optional[str] = None
    notes: Optional[str] = None

class Case(BaseModel):
    id: str
    clientName: str
    clientPhone: str = ""
    caseNumber: str
    courtName: str
    status: CaseStatus = CaseStatus.ACTIVE
    notes: str = ""
    files: List[CaseFile] = []
    hearingDates: List[HearingDate] = []
    createdAt: str

# --- Input schemas ---
class HearingCreate(BaseModel):
    date: str
    time: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, v):
        return _validate_calendar_date(v)

class HearingUpdate(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, v):
        if v is None:
            return v
        return _validate_calendar_date(v)

class CaseCreate(BaseModel):
    clientName: str = Field(..., min_length=1)
    clientPhone: Optional[str] = None
    caseNumber: str
    courtName: str
    status: CaseStatus = CaseStatus.ACTIVE
    notes: Optional[str] = None
    files: List[CaseFile] = []
    hearingDates: List[HearingCreate] = []

    @field_validator('clientName')
    @classmethod
    def strip_client_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Client name must not be blank")
        return v.strip()

class CaseUpdate(BaseModel):
    clientName: Optional[str] = Field(None, min_length=1)
    clientPhone: Optional[str] = None
    caseNumber: Optional[str] = None
    courtName: Optional[str] = None
    status: Optional[CaseStatus] = None
    notes: Optional[str] = None

# --- Derived views ---
class UpcomingHearing(HearingDate):
    caseId: str
    clientName: str
    caseNumber: str
    courtName: str

class DashboardStats(BaseModel):
    total: int = 0
    active: int = 0
    closed: int = 0
    today: int = 0

class ActionResult(BaseModel):
    success: bool
    error: Optional[str] = None
    id: Optional[str] = None
