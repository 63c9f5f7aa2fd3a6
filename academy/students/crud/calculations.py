"""
Package usage and balance arithmetic.

Pure helpers take plain values; the async helpers read the rows they need
and leave committing to the caller.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from sqlalchemy import and_, case, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.timeutils import to_local
from academy.staff.models.sessions import TrainingSession
from academy.students.models.students import Student
from academy.students.models.package_history import StudentPackageHistory
from academy.students.models.attendance import AttendanceRecord, AttendanceStatus
from academy.students.models.payments import StudentPayment, StudentCharge, PaymentFor

CENT = Decimal("0.01")


class PackageStatus:
    ongoing = "ongoing"
    completed = "completed"
    expired = "expired"


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_balance(total_training_fee, downpayment, payments_total, unpaid_charges) -> Decimal:
    """fee - downpayment - payments + unpaid charges, never below zero"""
    balance = (
        to_decimal(total_training_fee)
        - to_decimal(downpayment)
        - to_decimal(payments_total)
        + to_decimal(unpaid_charges)
    )
    return max(Decimal("0"), balance).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_remaining(total_sessions, used_sessions: float) -> float:
    return max(0.0, float(total_sessions or 0) - used_sessions)


def calculate_progress(total_sessions, used_sessions: float) -> float:
    total = float(total_sessions or 0)
    if total <= 0:
        return 0.0
    return min(100.0, round(used_sessions / total * 100, 2))


def package_status(
    total_sessions,
    used_sessions: float,
    remaining_sessions: float,
    expiration_date: Optional[date],
    today: date,
) -> str:
    if remaining_sessions <= 0 or used_sessions >= float(total_sessions or 0):
        return PackageStatus.completed
    if expiration_date and today > expiration_date:
        return PackageStatus.expired
    return PackageStatus.ongoing


def renewal_reason(status: str) -> str:
    completion = {
        PackageStatus.completed: "completed",
        PackageStatus.expired: "expired",
    }.get(status, "early")
    return f"renewal - {completion}"


def in_cycle(
    record_cycle: Optional[int],
    session_date: date,
    cycle: int,
    cycle_start: Optional[date],
    cycle_end: Optional[date],
) -> bool:
    """Tagged records match on the cycle number; untagged ones on the date window"""
    if record_cycle is not None:
        return record_cycle == cycle
    if cycle_start and session_date < cycle_start:
        return False
    if cycle_end and session_date > cycle_end:
        return False
    return True


async def history_count(session: AsyncSession, student_id: int) -> int:
    result = await session.execute(
        select(func.count(StudentPackageHistory.id)).where(
            StudentPackageHistory.student_id == student_id
        )
    )
    return result.scalar() or 0


async def current_cycle(session: AsyncSession, student_id: int) -> int:
    return await history_count(session, student_id) + 1


async def cycle_start(session: AsyncSession, student: Student) -> Optional[date]:
    """The current package starts when the previous one was archived"""
    result = await session.execute(
        select(func.max(StudentPackageHistory.captured_at)).where(
            StudentPackageHistory.student_id == student.id
        )
    )
    captured_at = result.scalar()
    if captured_at is not None:
        return to_local(captured_at).date()
    return student.enrollment_date


async def present_records(session: AsyncSession, student_id: int):
    """(package_cycle, session date, duration) of every present record"""
    result = await session.execute(
        select(
            AttendanceRecord.package_cycle,
            TrainingSession.date,
            AttendanceRecord.session_duration,
        )
        .join(TrainingSession, TrainingSession.id == AttendanceRecord.session_id)
        .where(
            and_(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.status == AttendanceStatus.present.value,
            )
        )
    )
    return result.all()


async def used_sessions(session: AsyncSession, student: Student) -> float:
    cycle = await current_cycle(session, student.id)
    start = await cycle_start(session, student)

    used = 0.0
    for record_cycle, session_date, duration in await present_records(session, student.id):
        if in_cycle(record_cycle, session_date, cycle, start, student.expiration_date):
            used += duration or 1.0
    return used


async def recalculate_remaining_sessions(session: AsyncSession, student: Student) -> float:
    """Set remaining_sessions from present attendance of the current package"""
    if student.sessions is None:
        return student.remaining_sessions

    await session.flush()
    student.remaining_sessions = calculate_remaining(
        student.sessions, await used_sessions(session, student)
    )
    return student.remaining_sessions


def _ledger_filter(column, package_history_id: Optional[int]):
    if package_history_id is None:
        return column.is_(None)
    return column == package_history_id


async def ledger_totals(
    session: AsyncSession, student_id: int, package_history_id: Optional[int] = None
):
    """
    Balance payments, charge amounts and the unpaid part of those charges
    booked against one package
    """
    payments = await session.execute(
        select(func.coalesce(func.sum(StudentPayment.payment_amount), 0)).where(
            and_(
                StudentPayment.student_id == student_id,
                StudentPayment.payment_for == PaymentFor.balance.value,
                _ledger_filter(StudentPayment.package_history_id, package_history_id),
            )
        )
    )
    charges = await session.execute(
        select(
            func.coalesce(func.sum(StudentCharge.amount), 0),
            func.coalesce(
                func.sum(
                    case(
                        (
                            StudentCharge.amount > StudentCharge.paid_amount,
                            StudentCharge.amount - StudentCharge.paid_amount,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
        ).where(
            and_(
                StudentCharge.student_id == student_id,
                _ledger_filter(StudentCharge.package_history_id, package_history_id),
            )
        )
    )
    charges_total, charges_unpaid = charges.one()
    return to_decimal(payments.scalar()), to_decimal(charges_total), to_decimal(charges_unpaid)


async def package_balance(
    session: AsyncSession,
    student_id: int,
    total_training_fee,
    downpayment,
    package_history_id: Optional[int] = None,
) -> Decimal:
    payments_total, _, charges_unpaid = await ledger_totals(
        session, student_id, package_history_id
    )
    return calculate_balance(total_training_fee, downpayment, payments_total, charges_unpaid)


async def recalculate_balance(session: AsyncSession, student: Student) -> Decimal:
    """Set remaining_balance from the current package's ledger"""
    await session.flush()
    student.remaining_balance = await package_balance(
        session, student.id, student.total_training_fee, student.downpayment
    )
    return student.remaining_balance
