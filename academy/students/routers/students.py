import math
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin
from academy.staff.models.coaches import Coach
from academy.students.schemas.students import (
    StudentCreate,
    StudentUpdate,
    StudentRead,
    StudentListResponse,
)
from academy.students.schemas.packages import (
    PackageProgress,
    PackageRenewal,
    PackageEdit,
    PackageRetrieve,
    PackageHistoryListResponse,
)
from academy.students.crud.students import (
    get_student_by_id,
    get_students_paginated,
    create_student,
    update_student,
    delete_student,
)
from academy.students.crud.packages import (
    get_package_progress,
    renew_package,
    edit_package,
    expire_package,
    retrieve_package,
    get_package_history,
    delete_package_history,
)

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/", response_model=StudentListResponse)
@limiter.limit("30/minute")
async def get_students_list(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    search: Optional[str] = Query(None, description="Search by name"),
    branch_id: Optional[int] = Query(None, description="Filter by branch ID"),
    package_type: Optional[str] = Query(None, description="Filter by current package"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Get paginated list of students ordered by name.

    - **search**: Case-insensitive substring of the name
    - **branch_id**: Students of one branch
    - **package_type**: Students on this package
    """
    skip = (page - 1) * size
    students, total = await get_students_paginated(
        db,
        skip=skip,
        limit=size,
        search=search,
        branch_id=branch_id,
        package_type=package_type,
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return StudentListResponse(
        students=[StudentRead.from_student(s) for s in students],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.get("/{student_id}", response_model=StudentRead)
@limiter.limit("30/minute")
async def get_student(
    request: Request,
    student_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    student = await get_student_by_id(db, student_id)
    return StudentRead.from_student(student)


@router.post("/", response_model=StudentRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_new_student(
    request: Request,
    student: StudentCreate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Enroll a student. Administrators only.

    - **name**: Required
    - **sessions**: Sessions in the package; **remaining_sessions** defaults to it
    - **total_training_fee**, **downpayment**: The opening balance is fee minus downpayment
    """
    db_student = await create_student(db, student)
    return StudentRead.from_student(db_student)


@router.put("/{student_id}", response_model=StudentRead)
@limiter.limit("10/minute")
async def update_student_route(
    request: Request,
    student_id: int,
    student_update: StudentUpdate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Update provided student fields. Administrators only.

    Changing **sessions** recomputes the remaining sessions from attendance;
    changing the fee or downpayment recomputes the balance.
    """
    db_student = await update_student(db, student_id, student_update)
    return StudentRead.from_student(db_student)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_student_route(
    request: Request,
    student_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete a student. Administrators only.

    **Warning**: attendance, payments, charges and package history of the
    student are deleted too.
    """
    await delete_student(db, student_id)


@router.get("/{student_id}/progress", response_model=PackageProgress)
@limiter.limit("30/minute")
async def get_student_progress(
    request: Request,
    student_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Usage of the current package.

    - **used_sessions**: Hours of present attendance in the current cycle
    - **package_status**: completed, expired or ongoing
    """
    return await get_package_progress(db, student_id)


@router.post("/{student_id}/package", response_model=StudentRead)
@limiter.limit("10/minute")
async def renew_student_package(
    request: Request,
    student_id: int,
    data: PackageRenewal,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Start a new package.

    The current package, if any, is archived with its balance and a reason
    (renewal - completed / expired / early); its payments and charges move
    with it, so the new package starts with a clean ledger.
    """
    db_student = await renew_package(db, student_id, data)
    return StudentRead.from_student(db_student)


@router.put("/{student_id}/package", response_model=StudentRead)
@limiter.limit("10/minute")
async def edit_student_package(
    request: Request,
    student_id: int,
    data: PackageEdit,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    db_student = await edit_package(db, student_id, data)
    return StudentRead.from_student(db_student)


@router.post("/{student_id}/package/expire", response_model=StudentRead)
@limiter.limit("10/minute")
async def expire_student_package(
    request: Request,
    student_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """End the current package today and zero its remaining sessions"""
    db_student = await expire_package(db, student_id)
    return StudentRead.from_student(db_student)


@router.post("/{student_id}/package/retrieve", response_model=StudentRead)
@limiter.limit("10/minute")
async def retrieve_student_package(
    request: Request,
    student_id: int,
    data: PackageRetrieve,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Reactivate an expired package.

    - **extend_days**: Added to the expiration date (or to today when unset)
    - **allowed_sessions**: When > 0, the new session total and remaining count
    """
    db_student = await retrieve_package(db, student_id, data)
    return StudentRead.from_student(db_student)


@router.get("/{student_id}/package-history", response_model=PackageHistoryListResponse)
@limiter.limit("30/minute")
async def get_student_package_history(
    request: Request,
    student_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    history = await get_package_history(db, student_id)
    return PackageHistoryListResponse(history=history, total=len(history))


@router.delete(
    "/{student_id}/package-history/{history_id}", status_code=status.HTTP_204_NO_CONTENT
)
@limiter.limit("5/minute")
async def delete_student_package_history(
    request: Request,
    student_id: int,
    history_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete an archived package. Administrators only.

    Its payments and charges are kept and count towards the current package again.
    """
    await delete_package_history(db, student_id, history_id)
