import math
from datetime import date
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin, ensure_self_or_admin
from academy.staff.models.coaches import Coach
from academy.staff.models.sessions import SessionStatus
from academy.staff.schemas.sessions import (
    SessionCreate,
    SessionUpdate,
    SessionRead,
    SessionListResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from academy.staff.schemas.coach_attendance import (
    CoachSessionTimeRead,
    CoachAttendanceUpdate,
    CoachAttendanceRead,
)
from academy.staff.crud.sessions import (
    get_session_by_id,
    get_sessions_paginated,
    get_sessions_for_month,
    find_schedule_conflicts,
    create_session,
    update_session,
    set_session_status,
    delete_session,
)
from academy.staff.crud.coach_attendance import (
    record_time_in,
    record_time_out,
    get_session_coach_times,
    mark_coach_attendance,
)

router = APIRouter(prefix="/sessions", tags=["Training sessions"])


@router.get("/", response_model=SessionListResponse)
@limiter.limit("30/minute")
async def get_sessions_list(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    branch_id: Optional[int] = Query(None, description="Filter by branch ID"),
    coach_id: Optional[int] = Query(None, description="Sessions the coach is assigned to"),
    student_id: Optional[int] = Query(None, description="Sessions the student takes part in"),
    status: Optional[SessionStatus] = Query(None, description="Filter by status"),
    package_type: Optional[str] = Query(None, description="Filter by package type"),
    date_from: Optional[date] = Query(None, description="First date (inclusive)"),
    date_to: Optional[date] = Query(None, description="Last date (inclusive)"),
    search: Optional[str] = Query(None, description="Search branch name or package type"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Get paginated list of sessions, latest date first.

    - **branch_id**, **coach_id**, **student_id**: Filter by related entity
    - **status**: scheduled, completed or cancelled
    - **date_from** / **date_to**: Inclusive date range
    - **search**: Case-insensitive substring of the branch name or package type
    """
    skip = (page - 1) * size
    sessions, total = await get_sessions_paginated(
        db,
        skip=skip,
        limit=size,
        branch_id=branch_id,
        coach_id=coach_id,
        student_id=student_id,
        status=status.value if status else None,
        package_type=package_type,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return SessionListResponse(
        sessions=[SessionRead.from_session(s) for s in sessions],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.get("/calendar", response_model=List[SessionRead])
@limiter.limit("30/minute")
async def get_sessions_calendar(
    request: Request,
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    branch_id: Optional[int] = Query(None, description="Filter by branch ID"),
    coach_id: Optional[int] = Query(None, description="Filter by assigned coach"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """All sessions of one month in date and start-time order"""
    sessions = await get_sessions_for_month(
        db, year, month, branch_id=branch_id, coach_id=coach_id
    )
    return [SessionRead.from_session(s) for s in sessions]


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
@limiter.limit("30/minute")
async def check_session_conflicts(
    request: Request,
    check: ConflictCheckRequest,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Report coaches and students already booked in an overlapping,
    non-cancelled session on the same date. Nothing is written.
    """
    conflicts = await find_schedule_conflicts(
        db,
        check.date,
        check.start_time,
        check.end_time,
        check.coach_ids,
        check.student_ids,
        exclude_session_id=check.exclude_session_id,
    )
    return ConflictCheckResponse(has_conflicts=bool(conflicts), conflicts=conflicts)


@router.get("/{session_id}", response_model=SessionRead)
@limiter.limit("30/minute")
async def get_training_session(
    request: Request,
    session_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    training = await get_session_by_id(db, session_id)
    return SessionRead.from_session(training)


@router.post("/", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_new_session(
    request: Request,
    data: SessionCreate,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Schedule a training session.

    - **date**, **start_time**, **end_time**: End must be after start
    - **branch_id**: Existing branch
    - **coach_ids**, **student_ids**: At least one of each

    Every student gets a pending attendance record. A coach or student
    already booked at an overlapping time gives 409 with the list of
    conflicts in **details.conflicts**.
    """
    training = await create_session(db, data)
    return SessionRead.from_session(training)


@router.put("/{session_id}", response_model=SessionRead)
@limiter.limit("10/minute")
async def update_training_session(
    request: Request,
    session_id: int,
    data: SessionUpdate,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Update a session.

    - **coach_ids** / **student_ids**: When given, replace the assignments;
      attendance records follow the participant list
    """
    training = await update_session(db, session_id, data)
    return SessionRead.from_session(training)


@router.post("/{session_id}/cancel", response_model=SessionRead)
@limiter.limit("10/minute")
async def cancel_training_session(
    request: Request,
    session_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    training = await set_session_status(db, session_id, SessionStatus.cancelled)
    return SessionRead.from_session(training)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_training_session(
    request: Request,
    session_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete a session.

    **Warning**: assignments, attendance, coach times and activity entries
    of the session are deleted too.
    """
    await delete_session(db, session_id)


@router.post(
    "/{session_id}/coaches/{coach_id}/time-in", response_model=CoachSessionTimeRead
)
@limiter.limit("10/minute")
async def coach_time_in(
    request: Request,
    session_id: int,
    coach_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """Record that the coach arrived. Coaches can only time in themselves."""
    ensure_self_or_admin(current_coach, coach_id)
    record = await record_time_in(db, session_id, coach_id, current_coach)
    return CoachSessionTimeRead.from_record(record)


@router.post(
    "/{session_id}/coaches/{coach_id}/time-out", response_model=CoachSessionTimeRead
)
@limiter.limit("10/minute")
async def coach_time_out(
    request: Request,
    session_id: int,
    coach_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Record that the coach left and mark the session completed.
    Requires an earlier time in.
    """
    ensure_self_or_admin(current_coach, coach_id)
    record = await record_time_out(db, session_id, coach_id, current_coach)
    return CoachSessionTimeRead.from_record(record)


@router.get("/{session_id}/coach-times", response_model=List[CoachSessionTimeRead])
@limiter.limit("30/minute")
async def get_coach_times(
    request: Request,
    session_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    records = await get_session_coach_times(db, session_id)
    return [CoachSessionTimeRead.from_record(r) for r in records]


@router.put(
    "/{session_id}/coaches/{coach_id}/attendance", response_model=CoachAttendanceRead
)
@limiter.limit("20/minute")
async def mark_coach_attendance_route(
    request: Request,
    session_id: int,
    coach_id: int,
    data: CoachAttendanceUpdate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Mark a coach present, absent or pending for a session. Administrators only."""
    return await mark_coach_attendance(db, session_id, coach_id, data.status)
