from datetime import date, datetime, time
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from academy.core.validations import clean_phone_number
from academy.staff.models.coaches import CoachRole, DayOfWeek


def _unique_days(days):
    seen = []
    for day in days:
        if day not in seen:
            seen.append(day)
    return seen


class CoachBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    email: EmailStr = Field(..., description="Login email, unique per coach")
    phone: Optional[str] = Field(None, max_length=32)
    role: CoachRole = Field(CoachRole.coach, description="admin or coach")
    package_type: Optional[str] = Field(
        None, max_length=200, description="Package type the coach specialises in"
    )

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Coach name cannot be empty")
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return clean_phone_number(v)


class CoachCreate(CoachBase):
    availability: List[DayOfWeek] = Field(
        default_factory=list, description="Weekdays the coach is available"
    )
    auth_id: Optional[str] = Field(
        None,
        max_length=255,
        description="Existing identity-provider user id, when provisioning is disabled",
    )
    password: Optional[str] = Field(
        None, min_length=8, max_length=128, description="Initial account password"
    )

    @field_validator("availability")
    @classmethod
    def dedupe_days(cls, v):
        return _unique_days(v)


class CoachUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    role: Optional[CoachRole] = None
    package_type: Optional[str] = Field(None, max_length=200)
    availability: Optional[List[DayOfWeek]] = Field(
        None, description="Replaces the weekday set when provided"
    )

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if v else v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return clean_phone_number(v)

    @field_validator("availability")
    @classmethod
    def dedupe_days(cls, v):
        return _unique_days(v) if v is not None else v


class CoachRead(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    package_type: Optional[str] = None
    auth_id: Optional[str] = None
    availability: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_coach(cls, coach):
        return cls(
            id=coach.id,
            name=coach.name,
            email=coach.email,
            phone=coach.phone,
            role=coach.role,
            package_type=coach.package_type,
            auth_id=coach.auth_id,
            availability=coach.availability_days,
            created_at=coach.created_at,
            updated_at=coach.updated_at,
        )


class CoachListResponse(BaseModel):
    coaches: List[CoachRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)


class CoachSessionRecord(BaseModel):
    """One session from a coach's point of view"""

    session_id: int
    date: date
    start_time: time
    end_time: time
    status: str
    package_type: Optional[str] = None
    branch_id: int
    branch_name: Optional[str] = None
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    display_status: str = Field(..., description="present, absent or pending")
    is_late: bool = False
    participant_count: int = 0
