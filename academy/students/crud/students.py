from typing import Optional
from sqlalchemy import func, and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from academy.core.database import db_operation
from academy.core.exceptions import NotFoundError, ValidationError
from academy.core.logging_utils import log_business_event
from academy.core.validations import ensure_positive_id
from academy.students.models.students import Student
from academy.students.schemas.students import StudentCreate, StudentUpdate
from academy.staff.crud.branches import get_branch_by_id
from academy.students.crud.calculations import (
    calculate_balance,
    recalculate_balance,
    recalculate_remaining_sessions,
)

FEE_FIELDS = ("total_training_fee", "downpayment")


@db_operation
async def get_student_by_id(session: AsyncSession, student_id: int) -> Student:
    ensure_positive_id(student_id, "Student ID")

    result = await session.execute(
        select(Student)
        .options(selectinload(Student.branch))
        .where(Student.id == student_id)
        .execution_options(populate_existing=True)
    )
    student = result.scalar_one_or_none()

    if not student:
        raise NotFoundError("Student", str(student_id))

    return student


@db_operation
async def get_students_paginated(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 6,
    search: Optional[str] = None,
    branch_id: Optional[int] = None,
    package_type: Optional[str] = None,
):
    """Students ordered by name"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    conditions = []
    if search and search.strip():
        conditions.append(Student.name.ilike(f"%{search.strip()}%"))
    if branch_id:
        ensure_positive_id(branch_id, "Branch ID")
        conditions.append(Student.branch_id == branch_id)
    if package_type and package_type.strip():
        conditions.append(Student.package_type == package_type.strip())

    base_query = select(Student).options(selectinload(Student.branch))
    count_query = select(func.count(Student.id))
    if conditions:
        base_query = base_query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await session.execute(count_query)).scalar() or 0

    result = await session.execute(
        base_query.order_by(Student.name, Student.id).offset(skip).limit(limit)
    )
    return result.scalars().all(), total


@db_operation
async def create_student(session: AsyncSession, student: StudentCreate) -> Student:
    if student.branch_id:
        await get_branch_by_id(session, student.branch_id)

    data = student.model_dump(exclude={"remaining_sessions"})
    remaining = student.remaining_sessions
    if remaining is None and student.sessions is not None:
        remaining = float(student.sessions)

    db_student = Student(
        **data,
        remaining_sessions=remaining,
        remaining_balance=calculate_balance(
            student.total_training_fee, student.downpayment, 0, 0
        ),
    )
    session.add(db_student)
    await session.commit()

    log_business_event(
        "student_enrolled",
        "student",
        db_student.id,
        {"name": db_student.name, "package_type": db_student.package_type},
    )
    return await get_student_by_id(session, db_student.id)


@db_operation
async def update_student(
    session: AsyncSession, student_id: int, student_update: StudentUpdate
) -> Student:
    """
    Partial update. A new session total re-derives remaining_sessions from
    attendance; fee changes re-derive the balance.
    """
    db_student = await get_student_by_id(session, student_id)
    changes = student_update.model_dump(exclude_unset=True)

    if changes.get("name", "") is None:
        raise ValidationError("Student name cannot be empty")
    if changes.get("branch_id"):
        await get_branch_by_id(session, changes["branch_id"])

    for key, value in changes.items():
        setattr(db_student, key, value)

    if "sessions" in changes:
        await recalculate_remaining_sessions(session, db_student)
    if any(field in changes for field in FEE_FIELDS):
        await recalculate_balance(session, db_student)

    await session.commit()
    return await get_student_by_id(session, student_id)


@db_operation
async def delete_student(session: AsyncSession, student_id: int) -> bool:
    db_student = await get_student_by_id(session, student_id)

    await session.delete(db_student)
    await session.commit()

    log_business_event("student_deleted", "student", student_id, {"name": db_student.name})
    return True
