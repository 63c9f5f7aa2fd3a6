from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PackageBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Package name")
    description: Optional[str] = Field(None, max_length=2000)
    session_count: int = Field(0, ge=0, description="Sessions included")
    price: float = Field(0, ge=0, description="Price of the package")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Package name cannot be empty")
        return v.strip()

    @field_validator("description")
    @classmethod
    def empty_description_is_none(cls, v):
        return v or None


class PackageCreate(PackageBase):
    pass


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    session_count: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class PackageRead(PackageBase):
    id: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PackageListResponse(BaseModel):
    packages: List[PackageRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)
