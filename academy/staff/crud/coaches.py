import logging
from datetime import date
from typing import Optional, List
from sqlalchemy import and_, delete, exists, func, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.database import db_operation
from academy.core.exceptions import NotFoundError, DuplicateError, ValidationError
from academy.core.logging_utils import log_business_event
from academy.core.timeutils import local_datetime, to_local
from academy.core.validations import ensure_positive_id
from academy.staff.models.coaches import Coach, CoachAvailability
from academy.staff.models.sessions import TrainingSession, SessionCoach, SessionParticipant
from academy.staff.models.coach_attendance import CoachSessionTime, CoachAttendanceRecord
from academy.staff.schemas.coaches import CoachCreate, CoachUpdate, CoachSessionRecord
from academy.staff.services.provisioning import CoachProvisioningClient

logger = logging.getLogger(__name__)


@db_operation
async def get_coach_by_id(session: AsyncSession, coach_id: int) -> Coach:
    ensure_positive_id(coach_id, "Coach ID")

    result = await session.execute(
        select(Coach)
        .options(selectinload(Coach.availability))
        .where(Coach.id == coach_id)
        .execution_options(populate_existing=True)
    )
    coach = result.scalar_one_or_none()

    if not coach:
        raise NotFoundError("Coach", str(coach_id))

    return coach


@db_operation
async def get_coach_by_auth_id(session: AsyncSession, auth_id: str) -> Optional[Coach]:
    result = await session.execute(
        select(Coach)
        .options(selectinload(Coach.availability))
        .where(Coach.auth_id == auth_id)
    )
    return result.scalar_one_or_none()


@db_operation
async def get_coaches_paginated(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 6,
    search: Optional[str] = None,
    package_type: Optional[str] = None,
):
    """
    Coaches ordered by name.

    package_type keeps coaches who ran at least one session of that package
    type or who specialise in it.
    """
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    conditions = []

    if search and search.strip():
        conditions.append(Coach.name.ilike(f"%{search.strip()}%"))

    if package_type and package_type.strip():
        value = package_type.strip()
        assigned = exists().where(
            and_(
                SessionCoach.coach_id == Coach.id,
                SessionCoach.session_id == TrainingSession.id,
                TrainingSession.package_type == value,
            )
        )
        conditions.append(or_(assigned, Coach.package_type == value))

    base_query = select(Coach).options(selectinload(Coach.availability))
    count_query = select(func.count(Coach.id))
    if conditions:
        base_query = base_query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await session.execute(count_query)).scalar() or 0

    result = await session.execute(
        base_query.order_by(Coach.name, Coach.id).offset(skip).limit(limit)
    )
    return result.scalars().all(), total


async def _ensure_unique_email(
    session: AsyncSession, email: str, exclude_id: Optional[int] = None
):
    query = select(Coach.id).where(func.lower(Coach.email) == email.lower())
    if exclude_id:
        query = query.where(Coach.id != exclude_id)
    if (await session.execute(query)).first():
        raise DuplicateError("Coach", "email", email)


async def _auth_id_taken(session: AsyncSession, auth_id: str) -> bool:
    taken = await session.execute(select(Coach.id).where(Coach.auth_id == auth_id))
    return taken.first() is not None


@db_operation
async def create_coach(
    session: AsyncSession,
    coach: CoachCreate,
    provisioning_client: Optional[CoachProvisioningClient] = None,
) -> Coach:
    """
    Create a coach. With a provisioning client the login account is created
    first and its id becomes the coach's auth_id; nothing is stored if that
    call fails.
    """
    await _ensure_unique_email(session, coach.email)
    if coach.auth_id and await _auth_id_taken(session, coach.auth_id):
        raise DuplicateError("Coach", "auth_id", coach.auth_id)

    auth_id = coach.auth_id
    if provisioning_client is not None:
        auth_id = await provisioning_client.create_account(
            coach.name, coach.email, coach.phone, coach.password
        )
        if await _auth_id_taken(session, auth_id):
            # The provider already created the account; it has no coach row
            logger.error(
                f"Provisioned account {auth_id} is already linked to another coach",
                extra={"email": coach.email, "orphaned_auth_id": auth_id},
            )
            raise DuplicateError("Coach", "auth_id", auth_id)

    db_coach = Coach(
        **coach.model_dump(exclude={"availability", "auth_id", "password"}),
        auth_id=auth_id,
    )
    db_coach.role = coach.role.value
    session.add(db_coach)
    await session.flush()

    for day in coach.availability:
        session.add(CoachAvailability(coach_id=db_coach.id, day_of_week=day.value))

    await session.commit()

    log_business_event(
        "coach_created",
        "coach",
        db_coach.id,
        {"email": db_coach.email, "role": db_coach.role, "provisioned": provisioning_client is not None},
    )
    return await get_coach_by_id(session, db_coach.id)


@db_operation
async def update_coach(
    session: AsyncSession, coach_id: int, coach_update: CoachUpdate
) -> Coach:
    db_coach = await get_coach_by_id(session, coach_id)

    update_data = coach_update.model_dump(exclude_unset=True)
    availability = update_data.pop("availability", None)

    if update_data.get("email") and update_data["email"] != db_coach.email:
        await _ensure_unique_email(session, update_data["email"], exclude_id=coach_id)

    for key, value in update_data.items():
        if key in ("name", "email", "role") and value is None:
            raise ValidationError(f"Coach {key} cannot be empty")
        if key == "role":
            value = value.value if hasattr(value, "value") else value
        setattr(db_coach, key, value)

    if availability is not None:
        await session.execute(
            delete(CoachAvailability).where(CoachAvailability.coach_id == coach_id)
        )
        for day in availability:
            session.add(
                CoachAvailability(
                    coach_id=coach_id,
                    day_of_week=day.value if hasattr(day, "value") else day,
                )
            )

    await session.commit()
    return await get_coach_by_id(session, coach_id)


@db_operation
async def delete_coach(session: AsyncSession, coach_id: int) -> bool:
    """Session assignments, time records and attendance go with the coach"""
    db_coach = await get_coach_by_id(session, coach_id)

    await session.delete(db_coach)
    await session.commit()

    log_business_event("coach_deleted", "coach", coach_id, {"email": db_coach.email})
    return True


def coach_display_status(
    time_record: Optional[CoachSessionTime],
    attendance: Optional[CoachAttendanceRecord],
) -> str:
    """Absent when marked so; present once checked in and out; else pending"""
    if attendance is not None and attendance.status == "absent":
        return "absent"
    if time_record is not None and time_record.is_complete:
        return "present"
    return "pending"


def is_late_time_in(session_date: date, start_time, time_in) -> bool:
    if not session_date or not start_time or not time_in:
        return False
    return to_local(time_in) > local_datetime(session_date, start_time)


@db_operation
async def get_coach_sessions(
    session: AsyncSession,
    coach_id: int,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[CoachSessionRecord]:
    """Sessions assigned to a coach, newest first, with the coach's own time records"""
    await get_coach_by_id(session, coach_id)

    query = (
        select(TrainingSession)
        .join(SessionCoach, SessionCoach.session_id == TrainingSession.id)
        .options(selectinload(TrainingSession.branch))
        .where(SessionCoach.coach_id == coach_id)
    )
    if status:
        query = query.where(TrainingSession.status == status)
    if date_from:
        query = query.where(TrainingSession.date >= date_from)
    if date_to:
        query = query.where(TrainingSession.date <= date_to)

    result = await session.execute(
        query.order_by(TrainingSession.date.desc(), TrainingSession.start_time.desc())
    )
    sessions = result.scalars().all()
    if not sessions:
        return []

    session_ids = [s.id for s in sessions]

    times = {
        record.session_id: record
        for record in (
            await session.execute(
                select(CoachSessionTime).where(
                    and_(
                        CoachSessionTime.coach_id == coach_id,
                        CoachSessionTime.session_id.in_(session_ids),
                    )
                )
            )
        ).scalars()
    }
    attendance = {
        record.session_id: record
        for record in (
            await session.execute(
                select(CoachAttendanceRecord).where(
                    and_(
                        CoachAttendanceRecord.coach_id == coach_id,
                        CoachAttendanceRecord.session_id.in_(session_ids),
                    )
                )
            )
        ).scalars()
    }
    participant_counts = dict(
        (
            await session.execute(
                select(SessionParticipant.session_id, func.count(SessionParticipant.id))
                .where(SessionParticipant.session_id.in_(session_ids))
                .group_by(SessionParticipant.session_id)
            )
        ).all()
    )

    records = []
    for training in sessions:
        time_record = times.get(training.id)
        records.append(
            CoachSessionRecord(
                session_id=training.id,
                date=training.date,
                start_time=training.start_time,
                end_time=training.end_time,
                status=training.status,
                package_type=training.package_type,
                branch_id=training.branch_id,
                branch_name=training.branch.name if training.branch else None,
                time_in=time_record.time_in if time_record else None,
                time_out=time_record.time_out if time_record else None,
                display_status=coach_display_status(time_record, attendance.get(training.id)),
                is_late=is_late_time_in(
                    training.date,
                    training.start_time,
                    time_record.time_in if time_record else None,
                ),
                participant_count=participant_counts.get(training.id, 0),
            )
        )

    return records
