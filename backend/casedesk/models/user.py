# FILE: backend/casedesk/models/user.py
# Identity records. Password users carry a bcrypt hash; provider users carry the provider subject.

from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import Optional
from datetime import datetime, timezone

from .common import PyObjectId

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

# Model stored in DB
class UserInDB(BaseModel):
    id: PyObjectId = Field(alias="_id", default=None)
    email: EmailStr
    hashed_password: Optional[str] = None
    provider: str = "password"
    provider_subject: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    last_login: Optional[datetime] = None

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

# What the rest of the application sees of a signed-in user.
class Identity(BaseModel):
    id: str
    email: str

class AuthResult(BaseModel):
    success: bool
    error: Optional[str] = None
    user: Optional[Identity] = None
    access_token: Optional[str] = None
    token_type: str = "bearer"

# --- Request schemas ---
class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)

class ProviderSignIn(BaseModel):
    id_token: str = Field(..., min_length=1)
