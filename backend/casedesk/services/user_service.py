# FILE: backend/casedesk/services/user_service.py
# User records for the identity provider. Emails are stored lower-cased so lookups are exact matches.

from bson import ObjectId
from datetime import datetime, timezone
from typing import Any, Optional
import structlog

from ..models.user import UserInDB
from ..models.common import validate_object_id

logger = structlog.get_logger(__name__)

def _normalize_email(email: str) -> str:
    return email.strip().lower()

async def get_user_by_email(db: Any, email: str) -> Optional[UserInDB]:
    user_dict = await db.users.find_one({"email": _normalize_email(email)})
    if user_dict:
        return UserInDB.model_validate(user_dict)
    return None

async def get_user_by_id(db: Any, user_id: Any) -> Optional[UserInDB]:
    try:
        oid = validate_object_id(user_id)
    except ValueError:
        return None
    user_dict = await db.users.find_one({"_id": oid})
    if user_dict:
        return UserInDB.model_validate(user_dict)
    return None

async def create_user(db: Any, email: str, hashed_password: Optional[str], provider: str = "password", provider_subject: Optional[str] = None) -> UserInDB:
    now = datetime.now(timezone.utc)
    user_data = {
        "_id": ObjectId(),
        "email": _normalize_email(email),
        "hashed_password": hashed_password,
        "provider": provider,
        "provider_subject": provider_subject,
        "created_at": now,
        "last_login": now,
    }
    await db.users.insert_one(user_data)
    logger.info("User created", user_id=str(user_data["_id"]), provider=provider)
    return UserInDB.model_validate(user_data)

async def update_last_login(db: Any, user_id: ObjectId) -> None:
    await db.users.update_one({"_id": user_id}, {"$set": {"last_login": datetime.now(timezone.utc)}})

async def get_or_create_provider_user(db: Any, email: str, provider: str, subject: str) -> UserInDB:
    user = await get_user_by_email(db, email)
    if user is None:
        return await create_user(db, email, None, provider=provider, provider_subject=subject)
    if not user.provider_subject:
        await db.users.update_one({"_id": user.id}, {"$set": {"provider_subject": subject}})
        user.provider_subject = subject
    await update_last_login(db, user.id)
    return user
