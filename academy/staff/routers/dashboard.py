from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin, ensure_self_or_admin
from academy.staff.models.coaches import Coach
from academy.staff.schemas.dashboard import AdminDashboardStats, CoachDashboardStats
from academy.staff.schemas.coach_attendance import ActivityLogRead, ActivityLogListResponse
from academy.staff.crud.dashboard import get_admin_stats, get_coach_stats
from academy.staff.crud.coach_attendance import get_recent_activities

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard/admin", response_model=AdminDashboardStats)
@limiter.limit("30/minute")
async def get_admin_dashboard(
    request: Request,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Academy-wide counts and the latest activity.

    - **total_students**, **total_coaches**, **total_sessions**, **total_branches**
    - **upcoming_sessions**: Scheduled sessions from today on
    - **active_packages**: Packages available for sale
    - **recent_activities**: 10 latest time in/out entries
    """
    return await get_admin_stats(db)


@router.get("/dashboard/me", response_model=CoachDashboardStats)
@limiter.limit("30/minute")
async def get_my_dashboard(
    request: Request,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    return await get_coach_stats(db, current_coach.id)


@router.get("/dashboard/coach/{coach_id}", response_model=CoachDashboardStats)
@limiter.limit("30/minute")
async def get_coach_dashboard(
    request: Request,
    coach_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Session counts of one coach.

    - **upcoming_sessions**: Scheduled sessions after today
    - **attendance_rate**: Percent of present records across the coach's sessions
    - **recent_sessions**: 5 latest sessions up to today
    """
    ensure_self_or_admin(current_coach, coach_id)
    return await get_coach_stats(db, coach_id)


@router.get("/activities/recent", response_model=ActivityLogListResponse)
@limiter.limit("30/minute")
async def get_recent_activity_feed(
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Number of entries"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """Latest activity first. Coaches only see their own entries."""
    user_id = None if current_coach.role == "admin" else current_coach.id
    activities = await get_recent_activities(db, limit=limit, user_id=user_id)
    return ActivityLogListResponse(
        activities=[ActivityLogRead.from_log(log) for log in activities]
    )
