"""Aggregated counts for the admin and coach dashboards"""
from sqlalchemy import and_, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.database import db_operation
from academy.core.timeutils import today_local
from academy.staff.models.branches import Branch
from academy.staff.models.coaches import Coach
from academy.staff.models.packages import Package
from academy.staff.models.sessions import TrainingSession, SessionCoach, SessionStatus
from academy.students.models.students import Student
from academy.students.models.attendance import AttendanceRecord, AttendanceStatus
from academy.staff.crud.coaches import get_coach_by_id
from academy.staff.crud.coach_attendance import get_recent_activities
from academy.staff.schemas.coach_attendance import ActivityLogRead
from academy.staff.schemas.dashboard import (
    AdminDashboardStats,
    CoachDashboardStats,
    RecentSession,
)


async def _count(session: AsyncSession, query) -> int:
    result = await session.execute(query)
    return result.scalar() or 0


def attendance_rate(present: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(present / total * 100)


@db_operation
async def get_admin_stats(session: AsyncSession) -> AdminDashboardStats:
    today = today_local()

    total_students = await _count(session, select(func.count(Student.id)))
    total_coaches = await _count(session, select(func.count(Coach.id)))
    total_sessions = await _count(session, select(func.count(TrainingSession.id)))
    total_branches = await _count(session, select(func.count(Branch.id)))

    upcoming_sessions = await _count(
        session,
        select(func.count(TrainingSession.id)).where(
            and_(
                TrainingSession.date >= today,
                TrainingSession.status == SessionStatus.scheduled.value,
            )
        ),
    )
    active_packages = await _count(
        session, select(func.count(Package.id)).where(Package.is_active.is_(True))
    )

    activities = await get_recent_activities(session, limit=10)

    return AdminDashboardStats(
        total_students=total_students,
        total_coaches=total_coaches,
        total_sessions=total_sessions,
        total_branches=total_branches,
        upcoming_sessions=upcoming_sessions,
        active_packages=active_packages,
        recent_activities=[ActivityLogRead.from_log(log) for log in activities],
    )


@db_operation
async def get_coach_stats(session: AsyncSession, coach_id: int) -> CoachDashboardStats:
    coach = await get_coach_by_id(session, coach_id)
    today = today_local()

    assigned = (
        select(func.count(TrainingSession.id))
        .join(SessionCoach, SessionCoach.session_id == TrainingSession.id)
        .where(SessionCoach.coach_id == coach_id)
    )

    total_sessions = await _count(session, assigned)
    upcoming_sessions = await _count(
        session,
        assigned.where(
            and_(
                TrainingSession.date > today,
                TrainingSession.status == SessionStatus.scheduled.value,
            )
        ),
    )
    completed_sessions = await _count(
        session,
        assigned.where(TrainingSession.status == SessionStatus.completed.value),
    )

    records = (
        select(func.count(AttendanceRecord.id))
        .join(SessionCoach, SessionCoach.session_id == AttendanceRecord.session_id)
        .where(SessionCoach.coach_id == coach_id)
    )
    all_records = await _count(session, records)
    present_records = await _count(
        session,
        records.where(AttendanceRecord.status == AttendanceStatus.present.value),
    )

    result = await session.execute(
        select(TrainingSession)
        .join(SessionCoach, SessionCoach.session_id == TrainingSession.id)
        .options(selectinload(TrainingSession.branch))
        .where(and_(SessionCoach.coach_id == coach_id, TrainingSession.date <= today))
        .order_by(TrainingSession.date.desc(), TrainingSession.start_time.desc())
        .limit(5)
    )
    recent = [
        RecentSession(
            id=training.id,
            date=training.date,
            start_time=training.start_time,
            end_time=training.end_time,
            status=training.status,
            branch_name=training.branch.name if training.branch else None,
            package_type=training.package_type,
        )
        for training in result.scalars().all()
    ]

    return CoachDashboardStats(
        coach_id=coach.id,
        coach_name=coach.name,
        total_sessions=total_sessions,
        upcoming_sessions=upcoming_sessions,
        completed_sessions=completed_sessions,
        attendance_rate=attendance_rate(present_records, all_records),
        recent_sessions=recent,
    )
