# FILE: backend/casedesk/services/case_service.py
# CASEDESK - CASE SERVICE
# 1. WRITES: Cases, hearings and embedded files. Every record carries the owner's user_id.
# 2. ATOMICITY: create_case and delete_case commit a single batch (case + hearings together).
# 3. FAILURES: Errors are caught here, recorded on the DataContext and returned as ActionResult.
# 4. FILES: Read-modify-write of the embedded 'files' list. Concurrent edits are last-write-wins.

from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from ..core.context import DataContext
from ..core.exceptions import StoreWriteFailure
from ..models.case import ActionResult, CaseCreate, CaseFile, CaseUpdate, HearingCreate, HearingUpdate
from .record_store import CASES, HEARINGS, SERVER_TIMESTAMP, RecordStore

logger = structlog.get_logger(__name__)

NOT_SIGNED_IN = "Not signed in"

# View field -> stored field
CASE_FIELDS = {
    "clientName": "client_name",
    "clientPhone": "client_phone",
    "caseNumber": "case_number",
    "courtName": "court_name",
    "status": "status",
    "notes": "notes",
}
# Fields that cannot be cleared by an explicit null or blank value.
REQUIRED_CASE_FIELDS = {"clientName", "caseNumber", "courtName", "status"}

def _hearing_payload(case_id: str, user_id: str, hearing: HearingCreate) -> Dict[str, Any]:
    return {
        "case_id": case_id,
        "user_id": user_id,
        "date": hearing.date,
        "time": hearing.time or None,
        "notes": hearing.notes or None,
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    }

class CaseService:
    def __init__(self, store: RecordStore, context: DataContext):
        self.store = store
        self.context = context

    @property
    def user_id(self) -> Optional[str]:
        return self.context.user_id

    async def _run(self, action: str, operation: Callable[[], Awaitable[Optional[str]]]) -> ActionResult:
        if not self.context.is_authenticated:
            return ActionResult(success=False, error=NOT_SIGNED_IN)

        self.context.clear_error()
        try:
            record_id = await operation()
            return ActionResult(success=True, id=record_id)
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or f"Failed to {action}"
            self.context.set_error(message)
            logger.error("Case write failed", action=action, user_id=self.user_id, error=message)
            return ActionResult(success=False, error=message)

    async def _require_case(self, case_id: str) -> Dict[str, Any]:
        case = await self.store.get(CASES, case_id, self.user_id)
        if not case:
            raise StoreWriteFailure("Case not found")
        return case

    # --- CASES ---
    async def create_case(self, data: CaseCreate) -> ActionResult:
        async def operation():
            batch = self.store.batch()
            case_id = self.store.new_id()
            batch.set(CASES, case_id, {
                "user_id": self.user_id,
                "client_name": data.clientName,
                "client_phone": data.clientPhone or None,
                "case_number": data.caseNumber,
                "court_name": data.courtName,
                "status": data.status.value,
                "notes": data.notes or None,
                "files": [f.model_dump() for f in data.files],
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            })
            for hearing in data.hearingDates:
                batch.set(HEARINGS, self.store.new_id(), _hearing_payload(case_id, self.user_id, hearing))

            logger.info("Committing case batch", case_id=case_id, hearings=len(data.hearingDates))
            await self.store.commit(batch)
            return case_id

        return await self._run("add case", operation)

    async def update_case(self, case_id: str, updates: CaseUpdate) -> ActionResult:
        async def operation():
            changes: Dict[str, Any] = {"updated_at": SERVER_TIMESTAMP}
            for name, value in updates.model_dump(exclude_unset=True).items():
                if name in REQUIRED_CASE_FIELDS and not value:
                    continue
                changes[CASE_FIELDS[name]] = getattr(value, "value", value)
            await self.store.update(CASES, case_id, changes, self.user_id)
            return case_id

        return await self._run("update case", operation)

    async def delete_case(self, case_id: str) -> ActionResult:
        async def operation():
            hearings = await self.store.find(HEARINGS, {"case_id": case_id, "user_id": self.user_id})
            batch = self.store.batch()
            for hearing in hearings:
                batch.delete(HEARINGS, hearing["id"], self.user_id)
            batch.delete(CASES, case_id, self.user_id)
            await self.store.commit(batch)
            logger.info("Case deleted", case_id=case_id, hearings=len(hearings))
            return case_id

        return await self._run("delete case", operation)

    # --- HEARINGS ---
    async def add_hearing(self, case_id: str, data: HearingCreate) -> ActionResult:
        async def operation():
            await self._require_case(case_id)
            return await self.store.create(HEARINGS, _hearing_payload(case_id, self.user_id, data))

        return await self._run("add hearing date", operation)

    async def update_hearing(self, case_id: str, hearing_id: str, updates: HearingUpdate) -> ActionResult:
        async def operation():
            changes: Dict[str, Any] = {"updated_at": SERVER_TIMESTAMP}
            for name, value in updates.model_dump(exclude_unset=True).items():
                if name == "date" and not value:
                    continue
                changes[name] = value
            await self.store.update(HEARINGS, hearing_id, changes, self.user_id)
            return hearing_id

        return await self._run("update hearing date", operation)

    async def delete_hearing(self, case_id: str, hearing_id: str) -> ActionResult:
        async def operation():
            await self.store.delete(HEARINGS, hearing_id, self.user_id)
            return hearing_id

        return await self._run("delete hearing date", operation)

    # --- FILES ---
    async def add_file(self, case_id: str, file: CaseFile) -> ActionResult:
        async def operation():
            case = await self._require_case(case_id)
            files = list(case.get("files") or [])
            files.append(file.model_dump())
            await self.store.update(CASES, case_id, {"files": files, "updated_at": SERVER_TIMESTAMP}, self.user_id)
            return file.id

        return await self._run("add file", operation)

    async def delete_file(self, case_id: str, file_id: str) -> ActionResult:
        async def operation():
            case = await self._require_case(case_id)
            files = [f for f in (case.get("files") or []) if f.get("id") != file_id]
            await self.store.update(CASES, case_id, {"files": files, "updated_at": SERVER_TIMESTAMP}, self.user_id)
            return file_id

        return await self._run("delete file", operation)
