# FILE: backend/casedesk/api/endpoints/cases.py
# CASEDESK - CASES ROUTER
# 1. Reads join the live store data (falling back to the cached snapshot).
# 2. Writes go through CaseService; a failed ActionResult becomes HTTP 400 with its message.

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Query, Response
from typing import List, Annotated, Optional
from pydantic import BaseModel
import logging

from ...core.config import settings
from ...core.context import DataContext
from ...core.exceptions import InvalidFileSize
from ...models.case import ActionResult, Case, CaseCreate, CaseUpdate, HearingCreate, HearingUpdate
from ...services import case_queries, file_service
from ...services.case_service import CaseService
from ...services.record_store import RecordStore
from ...services.sync_service import load_cases
from .dependencies import get_case_service, get_data_context, get_record_store

router = APIRouter(tags=["Cases"])
logger = logging.getLogger(__name__)

# --- LOCAL SCHEMAS ---
class FileUploadResponse(BaseModel):
    accepted: List[str]
    rejected: List[str]

class FileSummary(BaseModel):
    id: str
    fileName: str
    fileType: str
    uploadedAt: str
    size: int
    sizeLabel: str

def _raise_for_failure(result: ActionResult) -> ActionResult:
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result

async def _find_case(case_id: str, store: RecordStore, context: DataContext) -> Case:
    for case in await load_cases(store, context):
        if case.id == case_id:
            return case
    raise HTTPException(status_code=404, detail="Case not found.")

# --- ENDPOINTS ---

@router.get("", response_model=List[Case], include_in_schema=False)
@router.get("/", response_model=List[Case])
async def list_cases(
    context: Annotated[DataContext, Depends(get_data_context)],
    store: RecordStore = Depends(get_record_store),
    q: Optional[str] = Query(None, description="Matches client name, case number or court"),
    status_filter: str = Query("All", alias="status", pattern="^(All|Active|Closed)$"),
):
    cases = await load_cases(store, context)
    if q:
        cases = case_queries.search_cases(cases, q)
    cases = case_queries.filter_by_status(cases, status_filter)
    return case_queries.sort_by_next_hearing(cases)

@router.post("", response_model=ActionResult, status_code=status.HTTP_201_CREATED, include_in_schema=False)
@router.post("/", response_model=ActionResult, status_code=status.HTTP_201_CREATED)
async def create_case(case_in: CaseCreate, service: CaseService = Depends(get_case_service)):
    return _raise_for_failure(await service.create_case(case_in))

@router.get("/{case_id}", response_model=Case)
async def get_case(
    case_id: str,
    context: Annotated[DataContext, Depends(get_data_context)],
    store: RecordStore = Depends(get_record_store),
):
    return await _find_case(case_id, store, context)

@router.patch("/{case_id}", response_model=ActionResult)
async def update_case(case_id: str, updates: CaseUpdate, service: CaseService = Depends(get_case_service)):
    return _raise_for_failure(await service.update_case(case_id, updates))

@router.delete("/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_case(case_id: str, service: CaseService = Depends(get_case_service)):
    _raise_for_failure(await service.delete_case(case_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- HEARINGS ---

@router.post("/{case_id}/hearings", response_model=ActionResult, status_code=status.HTTP_201_CREATED, tags=["Hearings"])
async def add_hearing(case_id: str, hearing_in: HearingCreate, service: CaseService = Depends(get_case_service)):
    return _raise_for_failure(await service.add_hearing(case_id, hearing_in))

@router.patch("/{case_id}/hearings/{hearing_id}", response_model=ActionResult, tags=["Hearings"])
async def update_hearing(case_id: str, hearing_id: str, updates: HearingUpdate, service: CaseService = Depends(get_case_service)):
    return _raise_for_failure(await service.update_hearing(case_id, hearing_id, updates))

@router.delete("/{case_id}/hearings/{hearing_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Hearings"])
async def delete_hearing(case_id: str, hearing_id: str, service: CaseService = Depends(get_case_service)):
    _raise_for_failure(await service.delete_hearing(case_id, hearing_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- FILES ---

@router.get("/{case_id}/files", response_model=List[FileSummary], tags=["Files"])
async def list_files(
    case_id: str,
    context: Annotated[DataContext, Depends(get_data_context)],
    store: RecordStore = Depends(get_record_store),
):
    case = await _find_case(case_id, store, context)
    summaries = []
    for f in case.files:
        size = file_service.estimate_file_size(f.fileData)
        summaries.append(FileSummary(
            id=f.id, fileName=f.fileName, fileType=f.fileType, uploadedAt=f.uploadedAt,
            size=size, sizeLabel=file_service.format_file_size(size),
        ))
    return summaries

@router.post("/{case_id}/files", response_model=FileUploadResponse, status_code=status.HTTP_201_CREATED, tags=["Files"])
async def upload_files(case_id: str, service: CaseService = Depends(get_case_service), files: List[UploadFile] = File(...)):
    max_bytes = settings.max_upload_bytes
    uploads, rejected = [], []
    for f in files:
        file_name = f.filename or "untitled"
        # Declared size lets oversize parts be refused without reading them.
        if f.size is not None and f.size > max_bytes:
            rejected.append(InvalidFileSize(file_name, max_bytes).message)
            continue
        uploads.append((file_name, f.content_type or "", await f.read(max_bytes + 1)))
    accepted, too_large = file_service.prepare_uploads(uploads, max_bytes)
    rejected.extend(too_large)

    stored = []
    for case_file in accepted:
        result = await service.add_file(case_id, case_file)
        if result.success:
            stored.append(case_file.id)
        else:
            rejected.append(f"Failed to process file {case_file.fileName}: {result.error}")
    if rejected:
        logger.info(f"Upload to case {case_id}: {len(stored)} stored, {len(rejected)} rejected")
    if not stored:
        raise HTTPException(status_code=400, detail=" ".join(rejected) or "No files uploaded")
    return FileUploadResponse(accepted=stored, rejected=rejected)

@router.delete("/{case_id}/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Files"])
async def delete_file(case_id: str, file_id: str, service: CaseService = Depends(get_case_service)):
    _raise_for_failure(await service.delete_file(case_id, file_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
