"""
Package lifecycle of a student: progress, renewal into history, in-place
edits, early expiry and retrieval of an expired package.
"""
from datetime import timedelta
from typing import List
from sqlalchemy import and_, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import db_operation, with_db_transaction
from academy.core.exceptions import NotFoundError, BusinessLogicError
from academy.core.logging_utils import log_business_event
from academy.core.timeutils import today_local, utcnow
from academy.core.validations import ensure_positive_id
from academy.students.models.students import Student
from academy.students.models.package_history import StudentPackageHistory
from academy.students.models.attendance import AttendanceRecord, AttendanceStatus
from academy.students.models.payments import StudentPayment, StudentCharge
from academy.students.schemas.packages import (
    PackageProgress,
    PackageRenewal,
    PackageEdit,
    PackageRetrieve,
    PackageHistoryRead,
)
from academy.students.crud.students import get_student_by_id
from academy.students.crud.calculations import (
    calculate_progress,
    calculate_remaining,
    current_cycle,
    package_balance,
    package_status,
    recalculate_balance,
    recalculate_remaining_sessions,
    renewal_reason,
    used_sessions,
)


async def _usage(session: AsyncSession, student: Student):
    total = student.sessions or 0
    used = await used_sessions(session, student)
    remaining = calculate_remaining(total, used)
    status = package_status(total, used, remaining, student.expiration_date, today_local())
    return total, used, remaining, status


@db_operation
async def get_package_progress(session: AsyncSession, student_id: int) -> PackageProgress:
    student = await get_student_by_id(session, student_id)
    total, used, remaining, status = await _usage(session, student)

    return PackageProgress(
        package_type=student.package_type,
        total_sessions=total,
        used_sessions=used,
        remaining_sessions=remaining,
        progress_percentage=calculate_progress(total, used),
        package_status=status,
        current_cycle=await current_cycle(session, student.id),
        enrollment_date=student.enrollment_date,
        expiration_date=student.expiration_date,
    )


async def _archive_current_package(session: AsyncSession, student: Student) -> StudentPackageHistory:
    """
    Snapshot the current package with its balance, then move the current
    ledger (payments and charges not yet tied to a package) onto it.
    """
    _, _, _, status = await _usage(session, student)
    balance = await package_balance(
        session, student.id, student.total_training_fee, student.downpayment
    )

    entry = StudentPackageHistory(
        student_id=student.id,
        package_type=student.package_type,
        sessions=student.sessions,
        remaining_sessions=student.remaining_sessions,
        enrollment_date=student.enrollment_date,
        expiration_date=student.expiration_date,
        total_training_fee=student.total_training_fee or 0,
        downpayment=student.downpayment or 0,
        remaining_balance=balance,
        reason=renewal_reason(status),
        captured_at=utcnow(),
    )
    session.add(entry)
    await session.flush()

    await session.execute(
        update(StudentPayment)
        .where(
            and_(
                StudentPayment.student_id == student.id,
                StudentPayment.package_history_id.is_(None),
            )
        )
        .values(package_history_id=entry.id)
    )
    await session.execute(
        update(StudentCharge)
        .where(
            and_(
                StudentCharge.student_id == student.id,
                StudentCharge.package_history_id.is_(None),
            )
        )
        .values(package_history_id=entry.id)
    )
    return entry


async def renew_package(
    session: AsyncSession, student_id: int, data: PackageRenewal
) -> Student:
    """Archive the current package (if any) and start a new one, atomically"""

    async def _renew_operation(session: AsyncSession):
        student = await get_student_by_id(session, student_id)

        entry = None
        if student.has_package:
            entry = await _archive_current_package(session, student)

        student.package_type = data.package_type
        student.sessions = data.sessions
        student.remaining_sessions = float(data.sessions)
        student.enrollment_date = data.enrollment_date
        student.expiration_date = data.expiration_date
        student.total_training_fee = data.total_training_fee
        student.downpayment = data.downpayment
        await recalculate_balance(session, student)

        return entry

    entry = await with_db_transaction(session, _renew_operation)

    log_business_event(
        "package_renewed",
        "student",
        student_id,
        {
            "package_type": data.package_type,
            "sessions": data.sessions,
            "archived_history_id": entry.id if entry else None,
            "reason": entry.reason if entry else None,
        },
    )
    return await get_student_by_id(session, student_id)


@db_operation
async def edit_package(session: AsyncSession, student_id: int, data: PackageEdit) -> Student:
    student = await get_student_by_id(session, student_id)
    changes = data.model_dump(exclude_unset=True)

    for key, value in changes.items():
        setattr(student, key, value)

    enrollment = student.enrollment_date
    expiration = student.expiration_date
    if enrollment and expiration and expiration < enrollment:
        raise BusinessLogicError("Expiration date cannot be before enrollment date")

    if student.sessions is not None:
        await recalculate_remaining_sessions(session, student)
    if "total_training_fee" in changes or "downpayment" in changes:
        await recalculate_balance(session, student)

    await session.commit()
    return await get_student_by_id(session, student_id)


@db_operation
async def expire_package(session: AsyncSession, student_id: int) -> Student:
    """End the current package today with no sessions left"""
    student = await get_student_by_id(session, student_id)
    if not student.has_package:
        raise BusinessLogicError("Student has no package to expire")

    student.expiration_date = today_local()
    student.remaining_sessions = 0
    await session.commit()

    log_business_event("package_expired", "student", student_id, {"package_type": student.package_type})
    return await get_student_by_id(session, student_id)


@db_operation
async def retrieve_package(
    session: AsyncSession, student_id: int, data: PackageRetrieve
) -> Student:
    """
    Reactivate the current package by pushing its expiration date out.
    allowed_sessions > 0 also resets the session count.
    """
    student = await get_student_by_id(session, student_id)
    if not student.has_package:
        raise BusinessLogicError("Student has no package to retrieve")

    base = student.expiration_date or today_local()
    student.expiration_date = base + timedelta(days=data.extend_days)

    if data.allowed_sessions > 0:
        student.sessions = data.allowed_sessions
        student.remaining_sessions = float(data.allowed_sessions)

    await session.commit()

    log_business_event(
        "package_retrieved",
        "student",
        student_id,
        {"extend_days": data.extend_days, "allowed_sessions": data.allowed_sessions},
    )
    return await get_student_by_id(session, student_id)


@db_operation
async def get_package_history(
    session: AsyncSession, student_id: int
) -> List[PackageHistoryRead]:
    """Archived packages newest first, each with its own balance and usage"""
    await get_student_by_id(session, student_id)

    result = await session.execute(
        select(StudentPackageHistory)
        .where(StudentPackageHistory.student_id == student_id)
        .order_by(StudentPackageHistory.captured_at, StudentPackageHistory.id)
    )
    entries = result.scalars().all()

    records = await session.execute(
        select(AttendanceRecord.package_cycle, AttendanceRecord.session_duration).where(
            and_(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.status == AttendanceStatus.present.value,
                AttendanceRecord.package_cycle.is_not(None),
            )
        )
    )
    used_by_cycle = {}
    for cycle, duration in records.all():
        used_by_cycle[cycle] = used_by_cycle.get(cycle, 0.0) + (duration or 1.0)

    history = []
    for cycle, entry in enumerate(entries, start=1):
        balance = await package_balance(
            session, student_id, entry.total_training_fee, entry.downpayment, entry.id
        )
        history.append(
            PackageHistoryRead(
                id=entry.id,
                student_id=entry.student_id,
                cycle=cycle,
                package_type=entry.package_type,
                sessions=entry.sessions,
                remaining_sessions=entry.remaining_sessions,
                used_sessions=used_by_cycle.get(cycle, 0.0),
                enrollment_date=entry.enrollment_date,
                expiration_date=entry.expiration_date,
                total_training_fee=entry.total_training_fee or 0,
                downpayment=entry.downpayment or 0,
                remaining_balance=entry.remaining_balance or 0,
                current_balance=balance,
                reason=entry.reason,
                captured_at=entry.captured_at,
            )
        )

    history.reverse()
    return history


@db_operation
async def delete_package_history(
    session: AsyncSession, student_id: int, history_id: int
) -> bool:
    """
    Delete an archived package. Its payments and charges return to the
    current ledger, so the student's balance is recomputed.
    """
    ensure_positive_id(history_id, "History ID")
    student = await get_student_by_id(session, student_id)

    result = await session.execute(
        select(StudentPackageHistory).where(
            and_(
                StudentPackageHistory.id == history_id,
                StudentPackageHistory.student_id == student_id,
            )
        )
    )
    entry = result.scalar_one_or_none()
    if not entry:
        raise NotFoundError("Package history", str(history_id))

    await session.execute(
        update(StudentPayment)
        .where(StudentPayment.package_history_id == history_id)
        .values(package_history_id=None)
    )
    await session.execute(
        update(StudentCharge)
        .where(StudentCharge.package_history_id == history_id)
        .values(package_history_id=None)
    )
    await session.delete(entry)
    await recalculate_balance(session, student)
    await session.commit()

    log_business_event("package_history_deleted", "student", student_id, {"history_id": history_id})
    return True
