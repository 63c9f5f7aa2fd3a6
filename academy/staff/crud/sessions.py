import calendar
from datetime import date, time
from typing import Optional, List, Iterable
from sqlalchemy import and_, delete, func, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.database import db_operation, with_db_transaction
from academy.core.exceptions import (
    NotFoundError,
    ValidationError,
    ConflictError,
    BusinessLogicError,
)
from academy.core.logging_utils import log_business_event
from academy.core.validations import ensure_positive_id, validate_time_range
from academy.staff.models.branches import Branch
from academy.staff.models.coaches import Coach
from academy.staff.models.sessions import (
    TrainingSession,
    SessionCoach,
    SessionParticipant,
    SessionStatus,
)
from academy.students.models.students import Student
from academy.students.models.attendance import AttendanceRecord, AttendanceStatus
from academy.students.crud.calculations import recalculate_remaining_sessions
from academy.staff.schemas.sessions import SessionCreate, SessionUpdate


def _with_details(query):
    return query.options(
        selectinload(TrainingSession.branch),
        selectinload(TrainingSession.coach_links).selectinload(SessionCoach.coach),
        selectinload(TrainingSession.participants).selectinload(SessionParticipant.student),
    )


def times_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open intervals: a session ending at 10:00 does not clash with one starting at 10:00"""
    return start_a < end_b and end_a > start_b


@db_operation
async def get_session_by_id(session: AsyncSession, session_id: int) -> TrainingSession:
    ensure_positive_id(session_id, "Session ID")

    result = await session.execute(
        _with_details(select(TrainingSession))
        .where(TrainingSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    training = result.scalar_one_or_none()

    if not training:
        raise NotFoundError("Session", str(session_id))

    return training


@db_operation
async def get_sessions_paginated(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 6,
    branch_id: Optional[int] = None,
    coach_id: Optional[int] = None,
    student_id: Optional[int] = None,
    status: Optional[str] = None,
    package_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
):
    """Sessions newest date first; search matches branch name or package type"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    conditions = []

    if branch_id:
        ensure_positive_id(branch_id, "Branch ID")
        conditions.append(TrainingSession.branch_id == branch_id)

    if coach_id:
        ensure_positive_id(coach_id, "Coach ID")
        conditions.append(
            TrainingSession.id.in_(
                select(SessionCoach.session_id).where(SessionCoach.coach_id == coach_id)
            )
        )

    if student_id:
        ensure_positive_id(student_id, "Student ID")
        conditions.append(
            TrainingSession.id.in_(
                select(SessionParticipant.session_id).where(
                    SessionParticipant.student_id == student_id
                )
            )
        )

    if status:
        conditions.append(TrainingSession.status == status)

    if package_type:
        conditions.append(TrainingSession.package_type == package_type)

    if date_from:
        conditions.append(TrainingSession.date >= date_from)

    if date_to:
        conditions.append(TrainingSession.date <= date_to)

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                TrainingSession.package_type.ilike(pattern),
                TrainingSession.branch_id.in_(
                    select(Branch.id).where(Branch.name.ilike(pattern))
                ),
            )
        )

    base_query = _with_details(select(TrainingSession))
    count_query = select(func.count(TrainingSession.id))
    if conditions:
        base_query = base_query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await session.execute(count_query)).scalar() or 0

    result = await session.execute(
        base_query.order_by(
            TrainingSession.date.desc(), TrainingSession.start_time, TrainingSession.id
        )
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all(), total


@db_operation
async def get_sessions_for_month(
    session: AsyncSession,
    year: int,
    month: int,
    branch_id: Optional[int] = None,
    coach_id: Optional[int] = None,
) -> List[TrainingSession]:
    """Calendar view: every session of one month in date order"""
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")

    first_day = date(year, month, 1)
    last_day = date(year, month, calendar.monthrange(year, month)[1])

    query = _with_details(select(TrainingSession)).where(
        and_(TrainingSession.date >= first_day, TrainingSession.date <= last_day)
    )
    if branch_id:
        query = query.where(TrainingSession.branch_id == branch_id)
    if coach_id:
        query = query.where(
            TrainingSession.id.in_(
                select(SessionCoach.session_id).where(SessionCoach.coach_id == coach_id)
            )
        )

    result = await session.execute(
        query.order_by(TrainingSession.date, TrainingSession.start_time, TrainingSession.id)
    )
    return result.scalars().all()


@db_operation
async def find_schedule_conflicts(
    session: AsyncSession,
    session_date: date,
    start_time: time,
    end_time: time,
    coach_ids: Iterable[int] = (),
    student_ids: Iterable[int] = (),
    exclude_session_id: Optional[int] = None,
) -> List[str]:
    """
    Coaches and students already booked in another non-cancelled session
    overlapping the given slot. One message per person.
    """
    coach_ids = list(coach_ids)
    student_ids = list(student_ids)
    if not coach_ids and not student_ids:
        return []

    overlapping = select(TrainingSession.id).where(
        and_(
            TrainingSession.date == session_date,
            TrainingSession.status != SessionStatus.cancelled.value,
            TrainingSession.start_time < end_time,
            TrainingSession.end_time > start_time,
        )
    )
    if exclude_session_id:
        overlapping = overlapping.where(TrainingSession.id != exclude_session_id)

    conflicts = []

    if coach_ids:
        busy_coaches = await session.execute(
            select(Coach.name)
            .join(SessionCoach, SessionCoach.coach_id == Coach.id)
            .where(
                and_(
                    SessionCoach.coach_id.in_(coach_ids),
                    SessionCoach.session_id.in_(overlapping),
                )
            )
            .distinct()
            .order_by(Coach.name)
        )
        conflicts.extend(
            f"Coach {name} is already scheduled at this time"
            for name in busy_coaches.scalars()
        )

    if student_ids:
        busy_students = await session.execute(
            select(Student.name)
            .join(SessionParticipant, SessionParticipant.student_id == Student.id)
            .where(
                and_(
                    SessionParticipant.student_id.in_(student_ids),
                    SessionParticipant.session_id.in_(overlapping),
                )
            )
            .distinct()
            .order_by(Student.name)
        )
        conflicts.extend(
            f"Student {name} is already scheduled at this time"
            for name in busy_students.scalars()
        )

    return conflicts


async def _ensure_people_exist(
    session: AsyncSession, coach_ids: List[int], student_ids: List[int]
):
    if coach_ids:
        found = set(
            (await session.execute(select(Coach.id).where(Coach.id.in_(coach_ids)))).scalars()
        )
        missing = [cid for cid in coach_ids if cid not in found]
        if missing:
            raise NotFoundError("Coach", ", ".join(str(cid) for cid in missing))

    if student_ids:
        found = set(
            (
                await session.execute(select(Student.id).where(Student.id.in_(student_ids)))
            ).scalars()
        )
        missing = [sid for sid in student_ids if sid not in found]
        if missing:
            raise NotFoundError("Student", ", ".join(str(sid) for sid in missing))


async def _refresh_remaining(session: AsyncSession, student_ids: Iterable[int]):
    """Attendance of these students was removed; their usage changes with it"""
    ids = list(student_ids)
    if not ids:
        return
    students = await session.execute(select(Student).where(Student.id.in_(ids)))
    for student in students.scalars():
        await recalculate_remaining_sessions(session, student)


async def _ensure_branch_exists(session: AsyncSession, branch_id: int):
    branch = await session.execute(select(Branch.id).where(Branch.id == branch_id))
    if branch.first() is None:
        raise NotFoundError("Branch", str(branch_id))


async def create_session(session: AsyncSession, data: SessionCreate) -> TrainingSession:
    """
    Schedule a session with its coaches and participants. Every participant
    starts with a pending attendance record.
    """
    validate_time_range(data.start_time, data.end_time)

    async def _create_session_operation(session: AsyncSession):
        await _ensure_branch_exists(session, data.branch_id)
        await _ensure_people_exist(session, data.coach_ids, data.student_ids)

        conflicts = await find_schedule_conflicts(
            session,
            data.date,
            data.start_time,
            data.end_time,
            data.coach_ids,
            data.student_ids,
        )
        if conflicts:
            raise ConflictError(conflicts)

        training = TrainingSession(
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            branch_id=data.branch_id,
            package_type=data.package_type,
            notes=data.notes,
            status=SessionStatus.scheduled.value,
        )
        session.add(training)
        await session.flush()

        for student_id in data.student_ids:
            session.add(SessionParticipant(session_id=training.id, student_id=student_id))
        for coach_id in data.coach_ids:
            session.add(SessionCoach(session_id=training.id, coach_id=coach_id))
        for student_id in data.student_ids:
            session.add(
                AttendanceRecord(
                    session_id=training.id,
                    student_id=student_id,
                    status=AttendanceStatus.pending.value,
                )
            )

        return training

    training = await with_db_transaction(session, _create_session_operation)

    log_business_event(
        "session_scheduled",
        "session",
        training.id,
        {
            "date": training.date.isoformat(),
            "branch_id": training.branch_id,
            "coaches": len(data.coach_ids),
            "students": len(data.student_ids),
        },
    )
    return await get_session_by_id(session, training.id)


async def update_session(
    session: AsyncSession, session_id: int, data: SessionUpdate
) -> TrainingSession:
    """
    Update a session. Coach and participant links are replaced when given;
    attendance follows the participant list.
    """
    training = await get_session_by_id(session, session_id)
    update_data = data.model_dump(exclude_unset=True)
    coach_ids = update_data.pop("coach_ids", None)
    student_ids = update_data.pop("student_ids", None)

    for key in ("date", "start_time", "end_time", "branch_id", "status"):
        if key in update_data and update_data[key] is None:
            raise ValidationError(f"Session {key} cannot be empty")

    requested_status = update_data.get("status")
    if hasattr(requested_status, "value"):
        requested_status = requested_status.value
    if (
        training.status == SessionStatus.cancelled.value
        and requested_status is not None
        and requested_status != SessionStatus.cancelled.value
    ):
        raise BusinessLogicError("A cancelled session cannot be reopened")

    new_date = update_data.get("date", training.date)
    new_start = update_data.get("start_time", training.start_time)
    new_end = update_data.get("end_time", training.end_time)
    validate_time_range(new_start, new_end)

    final_coach_ids = (
        coach_ids if coach_ids is not None else [link.coach_id for link in training.coach_links]
    )
    final_student_ids = (
        student_ids
        if student_ids is not None
        else [link.student_id for link in training.participants]
    )
    current_student_ids = {link.student_id for link in training.participants}

    async def _update_session_operation(session: AsyncSession):
        if "branch_id" in update_data:
            await _ensure_branch_exists(session, update_data["branch_id"])
        await _ensure_people_exist(session, coach_ids or [], student_ids or [])

        new_status = update_data.get("status", training.status)
        if hasattr(new_status, "value"):
            new_status = new_status.value
        if new_status != SessionStatus.cancelled.value:
            conflicts = await find_schedule_conflicts(
                session,
                new_date,
                new_start,
                new_end,
                final_coach_ids,
                final_student_ids,
                exclude_session_id=session_id,
            )
            if conflicts:
                raise ConflictError(conflicts)

        for key, value in update_data.items():
            setattr(training, key, value.value if hasattr(value, "value") else value)

        if coach_ids is not None:
            await session.execute(
                delete(SessionCoach).where(SessionCoach.session_id == session_id)
            )
            for coach_id in coach_ids:
                session.add(SessionCoach(session_id=session_id, coach_id=coach_id))

        if student_ids is not None:
            await session.execute(
                delete(SessionParticipant).where(SessionParticipant.session_id == session_id)
            )
            for student_id in student_ids:
                session.add(SessionParticipant(session_id=session_id, student_id=student_id))

            removed = current_student_ids - set(student_ids)
            if removed:
                await session.execute(
                    delete(AttendanceRecord).where(
                        and_(
                            AttendanceRecord.session_id == session_id,
                            AttendanceRecord.student_id.in_(removed),
                        )
                    )
                )
                await _refresh_remaining(session, removed)
            for student_id in student_ids:
                if student_id not in current_student_ids:
                    session.add(
                        AttendanceRecord(
                            session_id=session_id,
                            student_id=student_id,
                            status=AttendanceStatus.pending.value,
                        )
                    )

        # Links were rewritten with bulk statements; reload them on next read
        session.expire(training, ["coach_links", "participants", "attendance_records"])
        return training

    await with_db_transaction(session, _update_session_operation)
    return await get_session_by_id(session, session_id)


@db_operation
async def set_session_status(
    session: AsyncSession, session_id: int, status: SessionStatus
) -> TrainingSession:
    training = await get_session_by_id(session, session_id)

    if training.status == SessionStatus.cancelled.value and status != SessionStatus.cancelled:
        raise BusinessLogicError("A cancelled session cannot be reopened")

    training.status = status.value
    await session.commit()

    log_business_event(
        f"session_{status.value}", "session", session_id, {"date": training.date.isoformat()}
    )
    return await get_session_by_id(session, session_id)


@db_operation
async def delete_session(session: AsyncSession, session_id: int) -> bool:
    """Links, attendance, coach times and activity entries go with the session"""
    training = await get_session_by_id(session, session_id)
    student_ids = [link.student_id for link in training.participants]

    await session.delete(training)
    await _refresh_remaining(session, student_ids)
    await session.commit()

    log_business_event("session_deleted", "session", session_id, {})
    return True
