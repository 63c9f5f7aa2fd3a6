import math
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin
from academy.staff.models.coaches import Coach
from academy.staff.schemas.branches import (
    BranchCreate,
    BranchUpdate,
    BranchRead,
    BranchListResponse,
)
from academy.staff.crud.branches import (
    get_branch_by_id,
    get_branches_paginated,
    create_branch,
    update_branch,
    delete_branch,
)

router = APIRouter(prefix="/branches", tags=["Branches"])


@router.get("/", response_model=BranchListResponse)
@limiter.limit("30/minute")
async def get_branches_list(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    search: Optional[str] = Query(None, description="Search by name or city"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Get paginated list of branches ordered by name.

    - **page**: Page number (starts from 1)
    - **size**: Number of branches per page (max 100)
    - **search**: Case-insensitive substring of the name or city
    """
    skip = (page - 1) * size
    branches, total = await get_branches_paginated(db, skip=skip, limit=size, search=search)

    pages = math.ceil(total / size) if total > 0 else 1
    return BranchListResponse(
        branches=[BranchRead.model_validate(b) for b in branches],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.get("/{branch_id}", response_model=BranchRead)
@limiter.limit("30/minute")
async def get_branch(
    request: Request,
    branch_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    return await get_branch_by_id(db, branch_id)


@router.post("/", response_model=BranchRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_new_branch(
    request: Request,
    branch: BranchCreate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Create a branch. Administrators only.

    - **name**: Branch name (required)
    - **address**: Street address (required)
    - **city**: City (required)
    - **contact_info**: Phone, email or contact person (optional)
    """
    return await create_branch(db, branch)


@router.put("/{branch_id}", response_model=BranchRead)
@limiter.limit("10/minute")
async def update_branch_route(
    request: Request,
    branch_id: int,
    branch_update: BranchUpdate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Update provided branch fields. Administrators only."""
    return await update_branch(db, branch_id, branch_update)


@router.delete("/{branch_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_branch_route(
    request: Request,
    branch_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete a branch. Administrators only.

    **Warning**: a branch that still has sessions or students cannot be deleted.
    """
    await delete_branch(db, branch_id)
