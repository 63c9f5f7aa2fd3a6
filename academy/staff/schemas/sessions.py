from datetime import date as date_type, datetime, time
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from academy.staff.models.sessions import SessionStatus


def _unique_ids(ids):
    seen = []
    for value in ids:
        if value > 0 and value not in seen:
            seen.append(value)
    return seen


class SessionCreate(BaseModel):
    date: date_type = Field(..., description="Session date")
    start_time: time
    end_time: time
    branch_id: int = Field(..., gt=0)
    package_type: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)
    coach_ids: List[int] = Field(..., description="At least one coach")
    student_ids: List[int] = Field(..., description="At least one student")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("coach_ids", "student_ids")
    @classmethod
    def validate_ids(cls, v, info):
        ids = _unique_ids(v)
        if not ids:
            label = "coach" if info.field_name == "coach_ids" else "student"
            raise ValueError(f"At least one {label} is required")
        return ids

    @model_validator(mode="after")
    def validate_times(self):
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self


class SessionUpdate(BaseModel):
    """Links are replaced only when coach_ids / student_ids are given"""

    date: Optional[date_type] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    branch_id: Optional[int] = Field(None, gt=0)
    package_type: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)
    status: Optional[SessionStatus] = None
    coach_ids: Optional[List[int]] = None
    student_ids: Optional[List[int]] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("coach_ids", "student_ids")
    @classmethod
    def validate_ids(cls, v, info):
        if v is None:
            return v
        ids = _unique_ids(v)
        if not ids:
            label = "coach" if info.field_name == "coach_ids" else "student"
            raise ValueError(f"At least one {label} is required")
        return ids


class ConflictCheckRequest(BaseModel):
    date: date_type
    start_time: time
    end_time: time
    coach_ids: List[int] = Field(default_factory=list)
    student_ids: List[int] = Field(default_factory=list)
    exclude_session_id: Optional[int] = Field(
        None, description="Session being edited, ignored by the check"
    )


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[str]


class SessionPerson(BaseModel):
    id: int
    name: str


class SessionRead(BaseModel):
    id: int
    date: date_type
    start_time: time
    end_time: time
    branch_id: int
    branch_name: Optional[str] = None
    package_type: Optional[str] = None
    notes: Optional[str] = None
    status: str
    coaches: List[SessionPerson] = Field(default_factory=list)
    participants: List[SessionPerson] = Field(default_factory=list)
    participant_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session):
        coaches = [
            SessionPerson(id=link.coach_id, name=link.coach.name)
            for link in session.coach_links
        ]
        participants = [
            SessionPerson(id=link.student_id, name=link.student.name)
            for link in session.participants
        ]
        return cls(
            id=session.id,
            date=session.date,
            start_time=session.start_time,
            end_time=session.end_time,
            branch_id=session.branch_id,
            branch_name=session.branch.name if session.branch else None,
            package_type=session.package_type,
            notes=session.notes,
            status=session.status,
            coaches=sorted(coaches, key=lambda c: c.name),
            participants=sorted(participants, key=lambda p: p.name),
            participant_count=len(participants),
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class SessionListResponse(BaseModel):
    sessions: List[SessionRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)
