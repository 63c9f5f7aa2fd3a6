from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _required_text(value: str, field: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"Branch {field} cannot be empty")
    return value.strip()


class BranchBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Branch name")
    address: str = Field(..., min_length=1, max_length=500, description="Street address")
    city: str = Field(..., min_length=1, max_length=100, description="City")
    contact_info: Optional[str] = Field(
        None, max_length=1000, description="Phone, email or contact person"
    )

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("name", "address", "city")
    @classmethod
    def validate_required_text(cls, v, info):
        return _required_text(v, info.field_name)


class BranchCreate(BranchBase):
    pass


class BranchUpdate(BaseModel):
    """All fields optional; only the provided ones are changed"""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    contact_info: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("name", "address", "city")
    @classmethod
    def validate_required_text(cls, v, info):
        if v is None:
            return v
        return _required_text(v, info.field_name)


class BranchRead(BranchBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BranchListResponse(BaseModel):
    branches: List[BranchRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)
