from typing import Optional
from sqlalchemy import func, and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import db_operation
from academy.core.exceptions import NotFoundError, ValidationError
from academy.core.logging_utils import log_business_event
from academy.core.validations import ensure_positive_id
from academy.staff.models.packages import Package
from academy.staff.schemas.packages import PackageCreate, PackageUpdate


@db_operation
async def get_package_by_id(session: AsyncSession, package_id: int) -> Package:
    ensure_positive_id(package_id, "Package ID")

    result = await session.execute(select(Package).where(Package.id == package_id))
    package = result.scalar_one_or_none()

    if not package:
        raise NotFoundError("Package", str(package_id))

    return package


@db_operation
async def get_packages_paginated(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 6,
    search: Optional[str] = None,
    include_inactive: bool = False,
):
    """Packages newest first; disabled ones are hidden unless asked for"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    conditions = []
    if not include_inactive:
        conditions.append(Package.is_active == True)
    if search and search.strip():
        conditions.append(Package.name.ilike(f"%{search.strip()}%"))

    base_query = select(Package)
    count_query = select(func.count(Package.id))
    if conditions:
        base_query = base_query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await session.execute(count_query)).scalar() or 0

    result = await session.execute(
        base_query.order_by(Package.created_at.desc(), Package.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all(), total


@db_operation
async def create_package(session: AsyncSession, package: PackageCreate) -> Package:
    db_package = Package(**package.model_dump(), is_active=True)
    session.add(db_package)
    await session.commit()
    await session.refresh(db_package)

    log_business_event("package_created", "package", db_package.id, {"name": db_package.name})
    return db_package


@db_operation
async def update_package(
    session: AsyncSession, package_id: int, package_update: PackageUpdate
) -> Package:
    db_package = await get_package_by_id(session, package_id)

    for key, value in package_update.model_dump(exclude_unset=True).items():
        if key == "name" and not value:
            raise ValidationError("Package name cannot be empty")
        setattr(db_package, key, value)

    await session.commit()
    await session.refresh(db_package)
    return db_package


@db_operation
async def disable_package(session: AsyncSession, package_id: int) -> Package:
    """Packages are never removed, only hidden from selection"""
    db_package = await get_package_by_id(session, package_id)
    db_package.is_active = False

    await session.commit()
    await session.refresh(db_package)

    log_business_event("package_disabled", "package", package_id, {"name": db_package.name})
    return db_package
