from typing import Optional
from sqlalchemy import func, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import db_operation
from academy.core.exceptions import NotFoundError, ValidationError, BusinessLogicError
from academy.core.logging_utils import log_business_event
from academy.core.validations import ensure_positive_id
from academy.staff.models.branches import Branch
from academy.staff.models.sessions import TrainingSession
from academy.students.models.students import Student
from academy.staff.schemas.branches import BranchCreate, BranchUpdate


@db_operation
async def get_branch_by_id(session: AsyncSession, branch_id: int) -> Branch:
    ensure_positive_id(branch_id, "Branch ID")

    result = await session.execute(select(Branch).where(Branch.id == branch_id))
    branch = result.scalar_one_or_none()

    if not branch:
        raise NotFoundError("Branch", str(branch_id))

    return branch


@db_operation
async def get_branches_paginated(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 6,
    search: Optional[str] = None,
):
    """Branches ordered by name, optionally filtered by name or city substring"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    base_query = select(Branch)
    count_query = select(func.count(Branch.id))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        condition = or_(Branch.name.ilike(pattern), Branch.city.ilike(pattern))
        base_query = base_query.where(condition)
        count_query = count_query.where(condition)

    total = (await session.execute(count_query)).scalar() or 0

    result = await session.execute(
        base_query.order_by(Branch.name, Branch.id).offset(skip).limit(limit)
    )
    return result.scalars().all(), total


@db_operation
async def create_branch(session: AsyncSession, branch: BranchCreate) -> Branch:
    db_branch = Branch(**branch.model_dump())
    session.add(db_branch)
    await session.commit()
    await session.refresh(db_branch)

    log_business_event("branch_created", "branch", db_branch.id, {"name": db_branch.name})
    return db_branch


@db_operation
async def update_branch(
    session: AsyncSession, branch_id: int, branch_update: BranchUpdate
) -> Branch:
    db_branch = await get_branch_by_id(session, branch_id)

    for key, value in branch_update.model_dump(exclude_unset=True).items():
        if key in ("name", "address", "city") and value is None:
            raise ValidationError(f"Branch {key} cannot be empty")
        setattr(db_branch, key, value)

    await session.commit()
    await session.refresh(db_branch)
    return db_branch


@db_operation
async def delete_branch(session: AsyncSession, branch_id: int) -> bool:
    """Delete a branch that no session or student refers to"""
    db_branch = await get_branch_by_id(session, branch_id)

    session_count = (
        await session.execute(
            select(func.count(TrainingSession.id)).where(
                TrainingSession.branch_id == branch_id
            )
        )
    ).scalar() or 0
    student_count = (
        await session.execute(
            select(func.count(Student.id)).where(Student.branch_id == branch_id)
        )
    ).scalar() or 0

    if session_count or student_count:
        raise BusinessLogicError(
            f"Branch '{db_branch.name}' is still in use",
            {"sessions": session_count, "students": student_count},
        )

    await session.delete(db_branch)
    await session.commit()

    log_business_event("branch_deleted", "branch", branch_id, {"name": db_branch.name})
    return True
