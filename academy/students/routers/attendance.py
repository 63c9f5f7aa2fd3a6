import math
from datetime import date
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach
from academy.core.validations import SESSION_DURATION_OPTIONS
from academy.staff.models.coaches import Coach
from academy.staff.models.sessions import SessionStatus
from academy.students.schemas.attendance import (
    AttendanceUpdate,
    AttendanceRecordRead,
    AttendanceSessionListResponse,
    SessionAttendanceResponse,
    StudentAttendanceListResponse,
    DurationOptions,
)
from academy.students.crud.attendance import (
    DEFAULT_SESSION_DURATION,
    get_attendance_sessions,
    get_session_attendance,
    update_attendance,
    get_student_attendance,
)

router = APIRouter(tags=["Attendance"])


@router.get("/attendance/sessions", response_model=AttendanceSessionListResponse)
@limiter.limit("30/minute")
async def get_attendance_sessions_list(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    date_from: Optional[date] = Query(None, description="First date (default: 30 days ago)"),
    date_to: Optional[date] = Query(None, description="Last date (default: in 30 days)"),
    branch_id: Optional[int] = Query(None, description="Filter by branch ID"),
    package_type: Optional[str] = Query(None, description="Filter by package type"),
    status: Optional[SessionStatus] = Query(None, description="Filter by session status"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Sessions to take attendance for, latest date first, with present /
    absent / pending counts. Without dates the window is today +/- 30 days.
    """
    skip = (page - 1) * size
    sessions, total = await get_attendance_sessions(
        db,
        skip=skip,
        limit=size,
        date_from=date_from,
        date_to=date_to,
        branch_id=branch_id,
        package_type=package_type,
        status=status.value if status else None,
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return AttendanceSessionListResponse(
        sessions=sessions, total=total, page=page, size=size, pages=pages
    )


@router.get("/attendance/duration-options", response_model=DurationOptions)
@limiter.limit("60/minute")
async def get_duration_options(
    request: Request,
    current_coach: Coach = Depends(get_current_coach),
):
    """Session lengths (hours) that can be recorded for present students"""
    return DurationOptions(options=SESSION_DURATION_OPTIONS, default=DEFAULT_SESSION_DURATION)


@router.get("/attendance/sessions/{session_id}", response_model=SessionAttendanceResponse)
@limiter.limit("30/minute")
async def get_session_attendance_route(
    request: Request,
    session_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    summary, records = await get_session_attendance(db, session_id)
    return SessionAttendanceResponse(session=summary, records=records)


@router.put("/attendance/{record_id}", response_model=AttendanceRecordRead)
@limiter.limit("60/minute")
async def update_attendance_route(
    request: Request,
    record_id: int,
    data: AttendanceUpdate,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Mark a student's attendance.

    - **status**: present, absent or pending
    - **session_duration**: Hours to count when present (0.5 to 6.0 in half
      hours, default 1.0); required for personal training packages

    The student's remaining sessions are recomputed afterwards.
    """
    return await update_attendance(db, record_id, data)


@router.get("/students/{student_id}/attendance", response_model=StudentAttendanceListResponse)
@limiter.limit("30/minute")
async def get_student_attendance_route(
    request: Request,
    student_id: int,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    skip = (page - 1) * size
    records, total = await get_student_attendance(db, student_id, skip=skip, limit=size)

    pages = math.ceil(total / size) if total > 0 else 1
    return StudentAttendanceListResponse(
        records=records, total=total, page=page, size=size, pages=pages
    )
