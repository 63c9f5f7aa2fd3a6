from datetime import date, timedelta
from typing import Optional
from sqlalchemy import and_, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.database import db_operation
from academy.core.exceptions import NotFoundError, ValidationError
from academy.core.logging_utils import log_business_event
from academy.core.timeutils import today_local, utcnow
from academy.core.validations import ensure_positive_id, validate_session_duration
from academy.staff.models.sessions import TrainingSession, SessionCoach
from academy.students.models.attendance import AttendanceRecord, AttendanceStatus
from academy.students.schemas.attendance import (
    AttendanceUpdate,
    AttendanceSessionSummary,
    AttendanceRecordRead,
    StudentAttendanceRead,
)
from academy.students.crud.students import get_student_by_id
from academy.students.crud.calculations import current_cycle, recalculate_remaining_sessions

# Days either side of today shown when no date range is given
ATTENDANCE_WINDOW_DAYS = 30
DEFAULT_SESSION_DURATION = 1.0


def requires_duration(package_type: Optional[str]) -> bool:
    """Personal training is billed by the hour, so the coach must record it"""
    return bool(package_type) and "personal" in package_type.lower()


def summarize_session(training: TrainingSession) -> AttendanceSessionSummary:
    statuses = [record.status for record in training.attendance_records]
    return AttendanceSessionSummary(
        id=training.id,
        date=training.date,
        start_time=training.start_time,
        end_time=training.end_time,
        status=training.status,
        branch_id=training.branch_id,
        branch_name=training.branch.name if training.branch else None,
        package_type=training.package_type,
        coach_names=[link.coach.name for link in training.coach_links if link.coach],
        participant_count=len(training.participants),
        present_count=statuses.count(AttendanceStatus.present.value),
        absent_count=statuses.count(AttendanceStatus.absent.value),
        pending_count=statuses.count(AttendanceStatus.pending.value),
    )


def _with_attendance(query):
    return query.options(
        selectinload(TrainingSession.branch),
        selectinload(TrainingSession.coach_links).selectinload(SessionCoach.coach),
        selectinload(TrainingSession.participants),
        selectinload(TrainingSession.attendance_records),
    )


@db_operation
async def get_attendance_sessions(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 6,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    branch_id: Optional[int] = None,
    package_type: Optional[str] = None,
    status: Optional[str] = None,
):
    """
    Sessions to take attendance for, newest first, with status counts.
    Without a date range the window is today +/- 30 days.
    """
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    today = today_local()
    if date_from is None and date_to is None:
        date_from = today - timedelta(days=ATTENDANCE_WINDOW_DAYS)
        date_to = today + timedelta(days=ATTENDANCE_WINDOW_DAYS)
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must be on or before date_to")

    conditions = []
    if date_from:
        conditions.append(TrainingSession.date >= date_from)
    if date_to:
        conditions.append(TrainingSession.date <= date_to)
    if branch_id:
        ensure_positive_id(branch_id, "Branch ID")
        conditions.append(TrainingSession.branch_id == branch_id)
    if package_type and package_type.strip():
        conditions.append(TrainingSession.package_type == package_type.strip())
    if status:
        conditions.append(TrainingSession.status == status)

    base_query = _with_attendance(select(TrainingSession))
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
    return [summarize_session(training) for training in result.scalars().all()], total


@db_operation
async def get_session_attendance(session: AsyncSession, session_id: int):
    ensure_positive_id(session_id, "Session ID")

    result = await session.execute(
        _with_attendance(select(TrainingSession))
        .where(TrainingSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    training = result.scalar_one_or_none()
    if not training:
        raise NotFoundError("Session", str(session_id))

    records = await session.execute(
        select(AttendanceRecord)
        .options(selectinload(AttendanceRecord.student))
        .where(AttendanceRecord.session_id == session_id)
        .order_by(AttendanceRecord.id)
    )
    rows = sorted(
        records.scalars().all(),
        key=lambda record: record.student.name.lower() if record.student else "",
    )
    return summarize_session(training), [AttendanceRecordRead.from_record(r) for r in rows]


async def _get_record(session: AsyncSession, record_id: int) -> AttendanceRecord:
    ensure_positive_id(record_id, "Attendance record ID")

    result = await session.execute(
        select(AttendanceRecord)
        .options(selectinload(AttendanceRecord.student))
        .where(AttendanceRecord.id == record_id)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if not record:
        raise NotFoundError("Attendance record", str(record_id))
    return record


@db_operation
async def update_attendance(
    session: AsyncSession, record_id: int, data: AttendanceUpdate
) -> AttendanceRecordRead:
    """
    Mark a student present, absent or pending and re-derive the student's
    remaining sessions.
    """
    record = await _get_record(session, record_id)
    student = record.student
    status = data.status.value

    if status == AttendanceStatus.present.value:
        if data.session_duration is not None and data.session_duration > 0:
            duration = validate_session_duration(data.session_duration)
        elif requires_duration(student.package_type):
            raise ValidationError(
                "Session duration is required for personal training packages",
                {"package_type": student.package_type},
            )
        else:
            duration = DEFAULT_SESSION_DURATION

        record.session_duration = duration
        if record.package_cycle is None:
            record.package_cycle = await current_cycle(session, student.id)

    record.status = status
    record.marked_at = None if status == AttendanceStatus.pending.value else utcnow()

    await recalculate_remaining_sessions(session, student)
    await session.commit()

    log_business_event(
        "attendance_marked",
        "attendance",
        record.id,
        {
            "session_id": record.session_id,
            "student_id": record.student_id,
            "status": status,
            "remaining_sessions": student.remaining_sessions,
        },
    )
    return AttendanceRecordRead.from_record(await _get_record(session, record_id))


@db_operation
async def get_student_attendance(
    session: AsyncSession, student_id: int, skip: int = 0, limit: int = 6
):
    """A student's attendance, latest session first"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")
    await get_student_by_id(session, student_id)

    total = (
        await session.execute(
            select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.student_id == student_id
            )
        )
    ).scalar() or 0

    result = await session.execute(
        select(AttendanceRecord)
        .join(TrainingSession, TrainingSession.id == AttendanceRecord.session_id)
        .options(
            selectinload(AttendanceRecord.session).selectinload(TrainingSession.branch)
        )
        .where(AttendanceRecord.student_id == student_id)
        .order_by(
            TrainingSession.date.desc(),
            TrainingSession.start_time.desc(),
            AttendanceRecord.id.desc(),
        )
        .offset(skip)
        .limit(limit)
    )

    records = []
    for record in result.scalars().all():
        training = record.session
        records.append(
            StudentAttendanceRead(
                id=record.id,
                session_id=record.session_id,
                status=record.status,
                marked_at=record.marked_at,
                session_duration=record.session_duration,
                package_cycle=record.package_cycle,
                session_date=training.date,
                start_time=training.start_time,
                end_time=training.end_time,
                session_status=training.status,
                branch_name=training.branch.name if training.branch else None,
                package_type=training.package_type,
            )
        )
    return records, total
