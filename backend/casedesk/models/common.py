# FILE: backend/casedesk/models/common.py
# Reusable ObjectId handling for MongoDB records.
# Store ids travel through the application as strings and become ObjectIds only at the store boundary.

from bson import ObjectId
from pydantic import BeforeValidator
from typing import Annotated, Any

def validate_object_id(v: Any) -> ObjectId:
    if isinstance(v, ObjectId):
        return v
    if isinstance(v, str) and ObjectId.is_valid(v.strip()):
        return ObjectId(v.strip())
    raise ValueError(f"Invalid ObjectId: {v!r}")

PyObjectId = Annotated[
    ObjectId,
    BeforeValidator(validate_object_id),
]
