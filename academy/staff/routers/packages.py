import math
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin
from academy.staff.models.coaches import Coach
from academy.staff.schemas.packages import (
    PackageCreate,
    PackageUpdate,
    PackageRead,
    PackageListResponse,
)
from academy.staff.crud.packages import (
    get_package_by_id,
    get_packages_paginated,
    create_package,
    update_package,
    disable_package,
)

router = APIRouter(prefix="/packages", tags=["Packages"])


@router.get("/", response_model=PackageListResponse)
@limiter.limit("30/minute")
async def get_packages_list(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    search: Optional[str] = Query(None, description="Search by package name"),
    include_inactive: bool = Query(False, description="Include disabled packages"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Get paginated list of packages, newest first.

    - **search**: Case-insensitive substring of the name
    - **include_inactive**: Also list disabled packages
    """
    skip = (page - 1) * size
    packages, total = await get_packages_paginated(
        db, skip=skip, limit=size, search=search, include_inactive=include_inactive
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return PackageListResponse(
        packages=[PackageRead.model_validate(p) for p in packages],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.get("/{package_id}", response_model=PackageRead)
@limiter.limit("30/minute")
async def get_package(
    request: Request,
    package_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    return await get_package_by_id(db, package_id)


@router.post("/", response_model=PackageRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_new_package(
    request: Request,
    package: PackageCreate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Create a package. Administrators only.

    - **name**: Package name (required)
    - **session_count**: Sessions included (>= 0)
    - **price**: Price (>= 0)
    """
    return await create_package(db, package)


@router.put("/{package_id}", response_model=PackageRead)
@limiter.limit("10/minute")
async def update_package_route(
    request: Request,
    package_id: int,
    package_update: PackageUpdate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return await update_package(db, package_id, package_update)


@router.delete("/{package_id}", response_model=PackageRead)
@limiter.limit("5/minute")
async def disable_package_route(
    request: Request,
    package_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Disable a package. The row is kept for students who already bought it
    and is hidden from the default list.
    """
    return await disable_package(db, package_id)
