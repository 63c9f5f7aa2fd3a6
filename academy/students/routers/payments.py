import math
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin
from academy.staff.models.coaches import Coach
from academy.students.schemas.payments import (
    PaymentCreate,
    PaymentRead,
    PaymentListResponse,
    ChargeCreate,
    ChargeUpdate,
    ChargeRead,
    ChargeListResponse,
    BalanceSummary,
)
from academy.students.crud.payments import (
    get_payments_paginated,
    create_payment,
    delete_payment,
    get_charges_paginated,
    create_charge,
    update_charge,
    delete_charge,
    get_balance_summary,
)

router = APIRouter(prefix="/students/{student_id}", tags=["Payments"])


@router.get("/payments", response_model=PaymentListResponse)
@limiter.limit("30/minute")
async def get_student_payments(
    request: Request,
    student_id: int,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    package_history_id: Optional[int] = Query(None, description="Payments of an archived package"),
    current_only: bool = Query(False, description="Only payments of the current package"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """Payments of a student, newest first"""
    skip = (page - 1) * size
    payments, total = await get_payments_paginated(
        db,
        student_id,
        skip=skip,
        limit=size,
        package_history_id=package_history_id,
        current_only=current_only,
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return PaymentListResponse(
        payments=[PaymentRead.model_validate(p) for p in payments],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.post("/payments", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_student_payment(
    request: Request,
    student_id: int,
    data: PaymentCreate,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Record a payment.

    - **payment_for**: balance (default) or extra_charge
    - **charge_id**: Required for extra_charge; the payment cannot exceed
      what is still owed on the charge
    """
    return await create_payment(db, student_id, data)


@router.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_student_payment(
    request: Request,
    student_id: int,
    payment_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Delete a payment and undo its effect on a charge. Administrators only."""
    await delete_payment(db, student_id, payment_id)


@router.get("/charges", response_model=ChargeListResponse)
@limiter.limit("30/minute")
async def get_student_charges(
    request: Request,
    student_id: int,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    package_history_id: Optional[int] = Query(None, description="Charges of an archived package"),
    current_only: bool = Query(False, description="Only charges of the current package"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    skip = (page - 1) * size
    charges, total = await get_charges_paginated(
        db,
        student_id,
        skip=skip,
        limit=size,
        package_history_id=package_history_id,
        current_only=current_only,
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return ChargeListResponse(
        charges=[ChargeRead.from_charge(c) for c in charges],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.post("/charges", response_model=ChargeRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_student_charge(
    request: Request,
    student_id: int,
    data: ChargeCreate,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Add an extra charge (uniform, tournament fee...). The amount is added to
    the student's balance.
    """
    charge = await create_charge(db, student_id, data)
    return ChargeRead.from_charge(charge)


@router.put("/charges/{charge_id}", response_model=ChargeRead)
@limiter.limit("10/minute")
async def update_student_charge(
    request: Request,
    student_id: int,
    charge_id: int,
    data: ChargeUpdate,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """Edit description, notes or amount; the amount cannot drop below what is paid"""
    charge = await update_charge(db, student_id, charge_id, data)
    return ChargeRead.from_charge(charge)


@router.delete("/charges/{charge_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_student_charge(
    request: Request,
    student_id: int,
    charge_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Delete a charge. Payments made towards it are kept. Administrators only."""
    await delete_charge(db, student_id, charge_id)


@router.get("/balance", response_model=BalanceSummary)
@limiter.limit("30/minute")
async def get_student_balance(
    request: Request,
    student_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Balance of the current package: fee - downpayment - balance payments +
    extra charges, never below zero.
    """
    return await get_balance_summary(db, student_id)
