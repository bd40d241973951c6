# FILE: backend/casedesk/services/case_queries.py
# CASEDESK - DERIVED QUERIES
# Pure functions over the current Case view set. No I/O.
# Hearing dates are compared as 'YYYY-MM-DD' strings, which order the same way as the dates.

from datetime import date, timedelta
from typing import Iterable, List, Optional, Union

from ..models.case import Case, CaseStatus, DashboardStats, HearingDate, UpcomingHearing

UPCOMING_WINDOW_DAYS = 7

def _today(today: Optional[date]) -> date:
    return today or date.today()

def _is_active(case: Case) -> bool:
    return case.status == CaseStatus.ACTIVE

def _with_case(hearing: HearingDate, case: Case) -> UpcomingHearing:
    return UpcomingHearing(
        **hearing.model_dump(),
        caseId=case.id,
        clientName=case.clientName,
        caseNumber=case.caseNumber,
        courtName=case.courtName,
    )

def next_hearing(case: Case, today: Optional[date] = None) -> Optional[HearingDate]:
    """Earliest hearing on or after today, if any."""
    today_str = _today(today).isoformat()
    upcoming = [h for h in case.hearingDates if h.date and h.date >= today_str]
    return min(upcoming, key=lambda h: h.date) if upcoming else None

def todays_hearings(cases: Iterable[Case], today: Optional[date] = None) -> List[Case]:
    today_str = _today(today).isoformat()
    return [c for c in cases if _is_active(c) and any(h.date == today_str for h in c.hearingDates)]

def upcoming_week(cases: Iterable[Case], today: Optional[date] = None) -> List[UpcomingHearing]:
    start = _today(today)
    start_str = start.isoformat()
    end_str = (start + timedelta(days=UPCOMING_WINDOW_DAYS)).isoformat()
    items = [
        _with_case(h, c)
        for c in cases if _is_active(c)
        for h in c.hearingDates if start_str <= h.date <= end_str
    ]
    return sorted(items, key=lambda item: item.date)

def search_cases(cases: Iterable[Case], text: str) -> List[Case]:
    needle = (text or "").lower()
    return [
        c for c in cases
        if needle in c.clientName.lower()
        or needle in c.caseNumber.lower()
        or needle in c.courtName.lower()
    ]

def sort_by_next_hearing(cases: Iterable[Case], today: Optional[date] = None) -> List[Case]:
    """Ascending by next hearing date; cases with nothing upcoming keep their input order at the end."""
    today = _today(today)
    scheduled = []
    unscheduled = []
    for c in cases:
        upcoming = next_hearing(c, today)
        if upcoming is None:
            unscheduled.append(c)
        else:
            scheduled.append((upcoming.date, c))
    scheduled.sort(key=lambda pair: pair[0])
    return [c for _, c in scheduled] + unscheduled

def filter_by_status(cases: Iterable[Case], status: Union[CaseStatus, str, None]) -> List[Case]:
    if status is None or status == "All":
        return list(cases)
    wanted = CaseStatus(status)
    return [c for c in cases if c.status == wanted]

def hearings_on(cases: Iterable[Case], day: Union[date, str]) -> List[UpcomingHearing]:
    # Calendar view: every case, regardless of status.
    day_str = day.isoformat() if isinstance(day, date) else day
    return [_with_case(h, c) for c in cases for h in c.hearingDates if h.date == day_str]

def hearings_in_month(cases: Iterable[Case], year: int, month: int) -> List[UpcomingHearing]:
    prefix = f"{year:04d}-{month:02d}-"
    items = [_with_case(h, c) for c in cases for h in c.hearingDates if h.date.startswith(prefix)]
    return sorted(items, key=lambda item: item.date)

def dashboard_stats(cases: Iterable[Case], today: Optional[date] = None) -> DashboardStats:
    cases = list(cases)
    active = sum(1 for c in cases if _is_active(c))
    return DashboardStats(
        total=len(cases),
        active=active,
        closed=len(cases) - active,
        today=len(todays_hearings(cases, today)),
    )
