"""Coach check-in/check-out, admin-marked coach attendance and the activity feed"""
from typing import Optional, List
from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.database import db_operation
from academy.core.exceptions import BusinessLogicError, ValidationError
from academy.core.logging_utils import log_business_event
from academy.core.timeutils import utcnow
from academy.core.validations import ensure_positive_id
from academy.staff.models.coaches import Coach
from academy.staff.models.sessions import TrainingSession, SessionStatus
from academy.staff.models.coach_attendance import (
    CoachSessionTime,
    CoachAttendanceRecord,
    ActivityLog,
    ActivityType,
)
from academy.staff.crud.sessions import get_session_by_id
from academy.staff.crud.coaches import get_coach_by_id


async def add_activity(
    session: AsyncSession,
    user_id: int,
    user_type: str,
    activity_type: ActivityType,
    description: str,
    session_id: Optional[int] = None,
) -> ActivityLog:
    """Stage an activity-log entry; the caller commits"""
    entry = ActivityLog(
        user_id=user_id,
        user_type=user_type,
        session_id=session_id,
        activity_type=activity_type.value,
        activity_description=description,
    )
    session.add(entry)
    return entry


async def _get_assigned_session(session: AsyncSession, session_id: int, coach_id: int):
    training = await get_session_by_id(session, session_id)
    coach = await get_coach_by_id(session, coach_id)

    if coach_id not in {link.coach_id for link in training.coach_links}:
        raise BusinessLogicError(
            "Coach is not assigned to this session",
            {"session_id": session_id, "coach_id": coach_id},
        )
    return training, coach


def _entry_text(text: str, coach: Coach, actor: Coach) -> str:
    """Entries belong to the coach whose time it is; note who recorded it for them"""
    if actor.id != coach.id:
        return f"{text} (recorded by {actor.name})"
    return text


async def _get_time_record(
    session: AsyncSession, session_id: int, coach_id: int
) -> Optional[CoachSessionTime]:
    result = await session.execute(
        select(CoachSessionTime)
        .options(selectinload(CoachSessionTime.coach))
        .where(
            and_(
                CoachSessionTime.session_id == session_id,
                CoachSessionTime.coach_id == coach_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@db_operation
async def record_time_in(
    session: AsyncSession, session_id: int, coach_id: int, actor: Coach
) -> CoachSessionTime:
    training, coach = await _get_assigned_session(session, session_id, coach_id)

    if training.status == SessionStatus.cancelled.value:
        raise BusinessLogicError("Cannot record time_in for a cancelled session")

    record = await _get_time_record(session, session_id, coach_id)
    if record is None:
        record = CoachSessionTime(session_id=session_id, coach_id=coach_id)
        session.add(record)
    record.time_in = utcnow()

    await add_activity(
        session,
        coach_id,
        coach.role,
        ActivityType.time_in,
        _entry_text("Coach timed in for session", coach, actor),
        session_id,
    )
    await session.commit()

    log_business_event(
        "coach_timed_in", "session", session_id, {"coach_id": coach_id, "recorded_by": actor.id}
    )
    return await _get_time_record(session, session_id, coach_id)


@db_operation
async def record_time_out(
    session: AsyncSession, session_id: int, coach_id: int, actor: Coach
) -> CoachSessionTime:
    """Check the coach out and mark the session completed"""
    training, coach = await _get_assigned_session(session, session_id, coach_id)

    if training.status == SessionStatus.cancelled.value:
        raise BusinessLogicError("Cannot record time_out for a cancelled session")

    record = await _get_time_record(session, session_id, coach_id)
    if record is None or record.time_in is None:
        raise BusinessLogicError(
            "Cannot record time_out: No existing attendance record found"
        )

    record.time_out = utcnow()
    training.status = SessionStatus.completed.value

    await add_activity(
        session,
        coach_id,
        coach.role,
        ActivityType.time_out,
        _entry_text("Coach timed out for session", coach, actor),
        session_id,
    )
    await add_activity(
        session,
        coach_id,
        coach.role,
        ActivityType.session_completed,
        _entry_text("Session marked as completed", coach, actor),
        session_id,
    )
    await session.commit()

    log_business_event(
        "coach_timed_out", "session", session_id, {"coach_id": coach_id, "recorded_by": actor.id}
    )
    return await _get_time_record(session, session_id, coach_id)


@db_operation
async def get_session_coach_times(
    session: AsyncSession, session_id: int
) -> List[CoachSessionTime]:
    await get_session_by_id(session, session_id)

    result = await session.execute(
        select(CoachSessionTime)
        .options(selectinload(CoachSessionTime.coach))
        .where(CoachSessionTime.session_id == session_id)
        .order_by(CoachSessionTime.time_in, CoachSessionTime.id)
    )
    return result.scalars().all()


@db_operation
async def mark_coach_attendance(
    session: AsyncSession, session_id: int, coach_id: int, status: str
) -> CoachAttendanceRecord:
    """Create or overwrite the coach's attendance mark for a session"""
    if status not in ("present", "absent", "pending"):
        raise ValidationError("Status must be present, absent or pending")

    await _get_assigned_session(session, session_id, coach_id)

    result = await session.execute(
        select(CoachAttendanceRecord).where(
            and_(
                CoachAttendanceRecord.session_id == session_id,
                CoachAttendanceRecord.coach_id == coach_id,
            )
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = CoachAttendanceRecord(session_id=session_id, coach_id=coach_id)
        session.add(record)

    record.status = status
    record.marked_at = utcnow() if status != "pending" else None

    await session.commit()
    await session.refresh(record)
    return record


@db_operation
async def get_recent_activities(
    session: AsyncSession, limit: int = 10, user_id: Optional[int] = None
) -> List[ActivityLog]:
    """Newest activity first; user_id narrows the feed to one coach"""
    if limit <= 0 or limit > 100:
        raise ValidationError("Limit must be between 1 and 100")

    query = select(ActivityLog).options(
        selectinload(ActivityLog.user),
        selectinload(ActivityLog.session).selectinload(TrainingSession.branch),
    )
    if user_id:
        ensure_positive_id(user_id, "User ID")
        query = query.where(ActivityLog.user_id == user_id)

    result = await session.execute(
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
    )
    return result.scalars().all()
