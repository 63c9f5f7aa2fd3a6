"""
Payments and extra charges of a student.

Rows with package_history_id NULL belong to the current package; renewal
moves them onto the archived package. Every write re-derives the student's
remaining_balance.
"""
from typing import Optional
from sqlalchemy import and_, func, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import db_operation, with_db_transaction
from academy.core.exceptions import NotFoundError, ValidationError, BusinessLogicError
from academy.core.logging_utils import log_business_event
from academy.core.timeutils import today_local, utcnow
from academy.core.validations import ensure_positive_id
from academy.students.models.payments import StudentPayment, StudentCharge, PaymentFor
from academy.students.schemas.payments import (
    PaymentCreate,
    ChargeCreate,
    ChargeUpdate,
    BalanceSummary,
)
from academy.students.crud.students import get_student_by_id
from academy.students.crud.calculations import (
    calculate_balance,
    ledger_totals,
    recalculate_balance,
    to_decimal,
)


def _package_conditions(column, package_history_id: Optional[int], current_only: bool):
    if current_only:
        return [column.is_(None)]
    if package_history_id:
        ensure_positive_id(package_history_id, "Package history ID")
        return [column == package_history_id]
    return []


def apply_charge_payment(charge: StudentCharge, amount) -> None:
    """Add a payment to a charge; raises when it would overpay"""
    outstanding = to_decimal(charge.amount) - to_decimal(charge.paid_amount)
    if to_decimal(amount) > outstanding:
        raise ValidationError(
            "Payment exceeds the outstanding charge amount",
            {"outstanding": float(outstanding), "payment_amount": float(amount)},
        )

    charge.paid_amount = to_decimal(charge.paid_amount) + to_decimal(amount)
    _sync_paid_state(charge)


def reverse_charge_payment(charge: StudentCharge, amount) -> None:
    remaining = to_decimal(charge.paid_amount) - to_decimal(amount)
    charge.paid_amount = max(to_decimal(0), remaining)
    _sync_paid_state(charge)


def _sync_paid_state(charge: StudentCharge) -> None:
    charge.is_paid = to_decimal(charge.paid_amount) >= to_decimal(charge.amount)
    if charge.is_paid:
        charge.paid_at = charge.paid_at or utcnow()
    else:
        charge.paid_at = None


async def _get_charge(session: AsyncSession, student_id: int, charge_id: int) -> StudentCharge:
    ensure_positive_id(charge_id, "Charge ID")

    result = await session.execute(
        select(StudentCharge)
        .where(and_(StudentCharge.id == charge_id, StudentCharge.student_id == student_id))
        .execution_options(populate_existing=True)
    )
    charge = result.scalar_one_or_none()
    if not charge:
        raise NotFoundError("Charge", str(charge_id))
    return charge


async def _get_payment(session: AsyncSession, student_id: int, payment_id: int) -> StudentPayment:
    ensure_positive_id(payment_id, "Payment ID")

    result = await session.execute(
        select(StudentPayment).where(
            and_(StudentPayment.id == payment_id, StudentPayment.student_id == student_id)
        )
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment", str(payment_id))
    return payment


@db_operation
async def get_payments_paginated(
    session: AsyncSession,
    student_id: int,
    skip: int = 0,
    limit: int = 6,
    package_history_id: Optional[int] = None,
    current_only: bool = False,
):
    """Payments newest first, optionally for one package"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")
    await get_student_by_id(session, student_id)

    conditions = [StudentPayment.student_id == student_id]
    conditions += _package_conditions(
        StudentPayment.package_history_id, package_history_id, current_only
    )

    total = (
        await session.execute(select(func.count(StudentPayment.id)).where(and_(*conditions)))
    ).scalar() or 0

    result = await session.execute(
        select(StudentPayment)
        .where(and_(*conditions))
        .order_by(StudentPayment.payment_date.desc(), StudentPayment.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all(), total


async def create_payment(
    session: AsyncSession, student_id: int, data: PaymentCreate
) -> StudentPayment:
    """Record a payment against the balance or against one extra charge"""

    async def _create_payment_operation(session: AsyncSession):
        student = await get_student_by_id(session, student_id)

        package_history_id = None
        if data.payment_for == PaymentFor.extra_charge:
            charge = await _get_charge(session, student_id, data.charge_id)
            if charge.is_paid:
                raise BusinessLogicError(
                    "Charge is already fully paid", {"charge_id": charge.id}
                )
            apply_charge_payment(charge, data.payment_amount)
            package_history_id = charge.package_history_id

        payment = StudentPayment(
            student_id=student_id,
            payment_amount=data.payment_amount,
            payment_date=data.payment_date or utcnow(),
            notes=data.notes,
            payment_for=data.payment_for.value,
            charge_id=data.charge_id,
            package_history_id=package_history_id,
            extra_charges=data.extra_charges,
            charge_description=data.charge_description,
        )
        session.add(payment)
        await recalculate_balance(session, student)
        return payment

    payment = await with_db_transaction(session, _create_payment_operation)

    log_business_event(
        "payment_recorded",
        "student",
        student_id,
        {
            "payment_id": payment.id,
            "amount": float(data.payment_amount),
            "payment_for": data.payment_for.value,
            "charge_id": data.charge_id,
        },
    )
    await session.refresh(payment)
    return payment


async def delete_payment(session: AsyncSession, student_id: int, payment_id: int) -> bool:
    """Remove a payment, taking it back off its charge if it paid one"""

    async def _delete_payment_operation(session: AsyncSession):
        student = await get_student_by_id(session, student_id)
        payment = await _get_payment(session, student_id, payment_id)

        if payment.charge_id:
            charge = await _get_charge(session, student_id, payment.charge_id)
            reverse_charge_payment(charge, payment.payment_amount)

        await session.delete(payment)
        await recalculate_balance(session, student)

    await with_db_transaction(session, _delete_payment_operation)

    log_business_event("payment_deleted", "student", student_id, {"payment_id": payment_id})
    return True


@db_operation
async def get_charges_paginated(
    session: AsyncSession,
    student_id: int,
    skip: int = 0,
    limit: int = 6,
    package_history_id: Optional[int] = None,
    current_only: bool = False,
):
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")
    await get_student_by_id(session, student_id)

    conditions = [StudentCharge.student_id == student_id]
    conditions += _package_conditions(
        StudentCharge.package_history_id, package_history_id, current_only
    )

    total = (
        await session.execute(select(func.count(StudentCharge.id)).where(and_(*conditions)))
    ).scalar() or 0

    result = await session.execute(
        select(StudentCharge)
        .where(and_(*conditions))
        .order_by(StudentCharge.charge_date.desc(), StudentCharge.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all(), total


@db_operation
async def create_charge(
    session: AsyncSession, student_id: int, data: ChargeCreate
) -> StudentCharge:
    student = await get_student_by_id(session, student_id)

    charge = StudentCharge(
        student_id=student_id,
        amount=data.amount,
        charge_type=data.charge_type,
        description=data.description,
        notes=data.notes,
        charge_date=data.charge_date or today_local(),
        is_paid=False,
        paid_amount=0,
    )
    session.add(charge)
    await recalculate_balance(session, student)
    await session.commit()
    await session.refresh(charge)

    log_business_event(
        "charge_added",
        "student",
        student_id,
        {"charge_id": charge.id, "amount": float(data.amount), "type": data.charge_type},
    )
    return charge


@db_operation
async def update_charge(
    session: AsyncSession, student_id: int, charge_id: int, data: ChargeUpdate
) -> StudentCharge:
    student = await get_student_by_id(session, student_id)
    charge = await _get_charge(session, student_id, charge_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("amount") is not None:
        if to_decimal(changes["amount"]) < to_decimal(charge.paid_amount):
            raise ValidationError(
                "Charge amount cannot be less than the amount already paid",
                {"paid_amount": float(charge.paid_amount)},
            )
    elif "amount" in changes:
        del changes["amount"]

    for key, value in changes.items():
        setattr(charge, key, value)

    if "amount" in changes:
        _sync_paid_state(charge)
        await recalculate_balance(session, student)

    await session.commit()
    return await _get_charge(session, student_id, charge_id)


@db_operation
async def delete_charge(session: AsyncSession, student_id: int, charge_id: int) -> bool:
    """Delete a charge; payments made towards it stay, unlinked"""
    student = await get_student_by_id(session, student_id)
    charge = await _get_charge(session, student_id, charge_id)

    await session.execute(
        update(StudentPayment)
        .where(StudentPayment.charge_id == charge_id)
        .values(charge_id=None)
    )
    await session.delete(charge)
    await recalculate_balance(session, student)
    await session.commit()

    log_business_event("charge_deleted", "student", student_id, {"charge_id": charge_id})
    return True


@db_operation
async def get_balance_summary(session: AsyncSession, student_id: int) -> BalanceSummary:
    student = await get_student_by_id(session, student_id)
    payments_total, charges_total, charges_unpaid = await ledger_totals(session, student_id)

    return BalanceSummary(
        student_id=student.id,
        total_training_fee=student.total_training_fee or 0,
        downpayment=student.downpayment or 0,
        total_payments=payments_total,
        total_charges=charges_total,
        unpaid_charges=charges_unpaid,
        remaining_balance=calculate_balance(
            student.total_training_fee, student.downpayment, payments_total, charges_unpaid
        ),
    )
