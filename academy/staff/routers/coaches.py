import math
from datetime import date
from fastapi import APIRouter, Depends, Query, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from academy.core.config import DEFAULT_PAGE_SIZE
from academy.core.database import get_session
from academy.core.limits import limiter
from academy.core.dependencies import get_current_coach, require_admin
from academy.staff.models.coaches import Coach
from academy.staff.models.sessions import SessionStatus
from academy.staff.schemas.coaches import (
    CoachCreate,
    CoachUpdate,
    CoachRead,
    CoachListResponse,
    CoachSessionRecord,
)
from academy.staff.services.provisioning import (
    CoachProvisioningClient,
    get_provisioning_client,
)
from academy.staff.crud.coaches import (
    get_coach_by_id,
    get_coaches_paginated,
    create_coach,
    update_coach,
    delete_coach,
    get_coach_sessions,
)

router = APIRouter(prefix="/coaches", tags=["Coaches"])


@router.get("/", response_model=CoachListResponse)
@limiter.limit("30/minute")
async def get_coaches_list(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100, description="Number of items per page"),
    search: Optional[str] = Query(None, description="Search by name"),
    package_type: Optional[str] = Query(
        None, description="Coaches who ran or specialise in this package type"
    ),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Get paginated list of coaches ordered by name.

    - **search**: Case-insensitive substring of the name
    - **package_type**: Keep coaches assigned to a session of this package
      type, or whose speciality it is
    """
    skip = (page - 1) * size
    coaches, total = await get_coaches_paginated(
        db, skip=skip, limit=size, search=search, package_type=package_type
    )

    pages = math.ceil(total / size) if total > 0 else 1
    return CoachListResponse(
        coaches=[CoachRead.from_coach(c) for c in coaches],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


@router.get("/{coach_id}", response_model=CoachRead)
@limiter.limit("30/minute")
async def get_coach(
    request: Request,
    coach_id: int,
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    coach = await get_coach_by_id(db, coach_id)
    return CoachRead.from_coach(coach)


@router.get("/{coach_id}/sessions", response_model=List[CoachSessionRecord])
@limiter.limit("30/minute")
async def get_coach_sessions_route(
    request: Request,
    coach_id: int,
    status: Optional[SessionStatus] = Query(None, description="Filter by session status"),
    date_from: Optional[date] = Query(None, description="First session date (inclusive)"),
    date_to: Optional[date] = Query(None, description="Last session date (inclusive)"),
    current_coach: Coach = Depends(get_current_coach),
    db: AsyncSession = Depends(get_session),
):
    """
    Sessions assigned to a coach, newest first.

    Each record carries the coach's time in/out, a **display_status**
    (absent when marked absent, present once timed in and out, otherwise
    pending) and **is_late** when the time in is after the start time.
    """
    return await get_coach_sessions(
        db,
        coach_id,
        status=status.value if status else None,
        date_from=date_from,
        date_to=date_to,
    )


@router.post("/", response_model=CoachRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def create_new_coach(
    request: Request,
    coach: CoachCreate,
    current_coach: Coach = Depends(require_admin),
    provisioning_client: Optional[CoachProvisioningClient] = Depends(get_provisioning_client),
    db: AsyncSession = Depends(get_session),
):
    """
    Create a coach together with the login account. Administrators only.

    - **name**, **email**: Required; the email must be unique
    - **role**: admin or coach (default coach)
    - **availability**: Weekdays the coach is available
    - **password**: Initial password of the login account (a default is used when omitted)
    - **auth_id**: Existing account id, used only when provisioning is not configured
    """
    db_coach = await create_coach(db, coach, provisioning_client)
    return CoachRead.from_coach(db_coach)


@router.put("/{coach_id}", response_model=CoachRead)
@limiter.limit("10/minute")
async def update_coach_route(
    request: Request,
    coach_id: int,
    coach_update: CoachUpdate,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Update provided coach fields. Administrators only.

    - **availability**: When given, replaces the whole weekday set
    """
    db_coach = await update_coach(db, coach_id, coach_update)
    return CoachRead.from_coach(db_coach)


@router.delete("/{coach_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
async def delete_coach_route(
    request: Request,
    coach_id: int,
    current_coach: Coach = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete a coach. Administrators only.

    **Warning**: session assignments, time records and attendance marks of
    the coach are deleted too.
    """
    await delete_coach(db, coach_id)
