# FILE: backend/casedesk/api/endpoints/calendar.py
# Dashboard and calendar views over the joined case set.

from __future__ import annotations
from datetime import date
from fastapi import APIRouter, Depends, Path
from typing import List

from ...core.context import DataContext
from ...models.case import Case, DashboardStats, UpcomingHearing
from ...services import case_queries
from ...services.record_store import RecordStore
from ...services.sync_service import load_cases
from .dependencies import get_data_context, get_record_store

router = APIRouter(tags=["Calendar"])

@router.get("/today", response_model=List[Case])
async def get_todays_hearings(
    context: DataContext = Depends(get_data_context),
    store: RecordStore = Depends(get_record_store),
):
    """Active cases with a hearing today."""
    return case_queries.todays_hearings(await load_cases(store, context))

@router.get("/week", response_model=List[UpcomingHearing])
async def get_upcoming_week(
    context: DataContext = Depends(get_data_context),
    store: RecordStore = Depends(get_record_store),
):
    """Hearings of active cases from today through the next seven days."""
    return case_queries.upcoming_week(await load_cases(store, context))

@router.get("/day/{day}", response_model=List[UpcomingHearing])
async def get_hearings_for_day(
    day: date,
    context: DataContext = Depends(get_data_context),
    store: RecordStore = Depends(get_record_store),
):
    return case_queries.hearings_on(await load_cases(store, context), day)

@router.get("/month/{year}/{month}", response_model=List[UpcomingHearing])
async def get_hearings_for_month(
    year: int = Path(..., ge=1900, le=9999),
    month: int = Path(..., ge=1, le=12),
    context: DataContext = Depends(get_data_context),
    store: RecordStore = Depends(get_record_store),
):
    return case_queries.hearings_in_month(await load_cases(store, context), year, month)

@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    context: DataContext = Depends(get_data_context),
    store: RecordStore = Depends(get_record_store),
):
    return case_queries.dashboard_stats(await load_cases(store, context))
