from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PackageProgress(BaseModel):
    package_type: Optional[str] = None
    total_sessions: int = 0
    used_sessions: float = 0
    remaining_sessions: float = 0
    progress_percentage: float = Field(0, ge=0, le=100)
    package_status: str = Field(..., description="ongoing, completed or expired")
    current_cycle: int = Field(..., ge=1)
    enrollment_date: Optional[date] = None
    expiration_date: Optional[date] = None


class PackageRenewal(BaseModel):
    """New package for a student; the current one is archived first"""

    package_type: str = Field(..., min_length=1, max_length=200)
    sessions: int = Field(..., ge=0)
    enrollment_date: date
    expiration_date: date
    total_training_fee: float = Field(0, ge=0)
    downpayment: float = Field(0, ge=0)

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.expiration_date < self.enrollment_date:
            raise ValueError("Expiration date cannot be before enrollment date")
        return self


class PackageEdit(BaseModel):
    package_type: Optional[str] = Field(None, min_length=1, max_length=200)
    sessions: Optional[int] = Field(None, ge=0)
    enrollment_date: Optional[date] = None
    expiration_date: Optional[date] = None
    total_training_fee: Optional[float] = Field(None, ge=0)
    downpayment: Optional[float] = Field(None, ge=0)

    model_config = ConfigDict(str_strip_whitespace=True)


class PackageRetrieve(BaseModel):
    extend_days: int = Field(30, ge=1, le=365, description="Days added to the expiration date")
    allowed_sessions: int = Field(
        0, ge=0, description="When > 0, resets the session count to this value"
    )


class PackageHistoryRead(BaseModel):
    id: int
    student_id: int
    cycle: int = Field(..., ge=1, description="Ordinal of the archived package")
    package_type: Optional[str] = None
    sessions: Optional[int] = None
    remaining_sessions: Optional[float] = None
    used_sessions: float = 0
    enrollment_date: Optional[date] = None
    expiration_date: Optional[date] = None
    total_training_fee: float = 0
    downpayment: float = 0
    remaining_balance: float = Field(0, description="Balance at the time of archiving")
    current_balance: float = Field(0, description="Balance from the archived ledger now")
    reason: Optional[str] = None
    captured_at: Optional[datetime] = None


class PackageHistoryListResponse(BaseModel):
    history: List[PackageHistoryRead]
    total: int = Field(..., ge=0)
