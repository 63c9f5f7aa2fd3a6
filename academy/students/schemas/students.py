from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from academy.core.validations import clean_phone_number


def _check_dates(enrollment_date, expiration_date):
    if enrollment_date and expiration_date and expiration_date < enrollment_date:
        raise ValueError("Expiration date cannot be before enrollment date")


class StudentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    branch_id: Optional[int] = Field(None, gt=0, description="Home branch")

    package_type: Optional[str] = Field(None, max_length=200, description="Current package")
    sessions: Optional[int] = Field(None, ge=0, description="Sessions in the current package")
    enrollment_date: Optional[date] = None
    expiration_date: Optional[date] = None

    total_training_fee: float = Field(0, ge=0)
    downpayment: float = Field(0, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Student name cannot be empty")
        return v.strip()

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return clean_phone_number(v)

    @field_validator("package_type")
    @classmethod
    def empty_package_is_none(cls, v):
        return v or None


class StudentCreate(StudentBase):
    remaining_sessions: Optional[float] = Field(
        None, ge=0, description="Defaults to sessions"
    )

    @model_validator(mode="after")
    def validate_package(self):
        _check_dates(self.enrollment_date, self.expiration_date)
        return self


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    branch_id: Optional[int] = Field(None, gt=0)
    package_type: Optional[str] = Field(None, max_length=200)
    sessions: Optional[int] = Field(None, ge=0)
    enrollment_date: Optional[date] = None
    expiration_date: Optional[date] = None
    total_training_fee: Optional[float] = Field(None, ge=0)
    downpayment: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return clean_phone_number(v)

    @model_validator(mode="after")
    def validate_package(self):
        _check_dates(self.enrollment_date, self.expiration_date)
        return self


class StudentRead(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    branch_id: Optional[int] = None
    branch_name: Optional[str] = None
    package_type: Optional[str] = None
    sessions: Optional[int] = None
    remaining_sessions: Optional[float] = None
    enrollment_date: Optional[date] = None
    expiration_date: Optional[date] = None
    total_training_fee: float = 0
    downpayment: float = 0
    remaining_balance: float = 0
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_student(cls, student):
        return cls(
            id=student.id,
            name=student.name,
            email=student.email,
            phone=student.phone,
            branch_id=student.branch_id,
            branch_name=student.branch.name if student.branch else None,
            package_type=student.package_type,
            sessions=student.sessions,
            remaining_sessions=student.remaining_sessions,
            enrollment_date=student.enrollment_date,
            expiration_date=student.expiration_date,
            total_training_fee=student.total_training_fee or 0,
            downpayment=student.downpayment or 0,
            remaining_balance=student.remaining_balance or 0,
            notes=student.notes,
            created_at=student.created_at,
            updated_at=student.updated_at,
        )


class StudentListResponse(BaseModel):
    students: List[StudentRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)
