from datetime import date, datetime, time
from typing import Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field


class CoachSessionTimeRead(BaseModel):
    id: int
    session_id: int
    coach_id: int
    coach_name: Optional[str] = None
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    is_present: bool = False

    @classmethod
    def from_record(cls, record):
        duration = None
        if record.time_in and record.time_out:
            duration = int((record.time_out - record.time_in).total_seconds() // 60)
        return cls(
            id=record.id,
            session_id=record.session_id,
            coach_id=record.coach_id,
            coach_name=record.coach.name if record.coach else None,
            time_in=record.time_in,
            time_out=record.time_out,
            duration_minutes=duration,
            is_present=record.is_complete,
        )


class CoachAttendanceUpdate(BaseModel):
    status: Literal["present", "absent", "pending"]


class CoachAttendanceRead(BaseModel):
    id: int
    session_id: int
    coach_id: int
    status: str
    marked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ActivityLogRead(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    user_type: str
    session_id: Optional[int] = None
    activity_type: str
    activity_description: Optional[str] = None
    created_at: Optional[datetime] = None
    session_date: Optional[date] = None
    session_start_time: Optional[time] = None
    branch_name: Optional[str] = None

    @classmethod
    def from_log(cls, log):
        session = log.session
        return cls(
            id=log.id,
            user_id=log.user_id,
            user_name=log.user.name if log.user else None,
            user_type=log.user_type,
            session_id=log.session_id,
            activity_type=log.activity_type,
            activity_description=log.activity_description,
            created_at=log.created_at,
            session_date=session.date if session else None,
            session_start_time=session.start_time if session else None,
            branch_name=session.branch.name if session and session.branch else None,
        )


class ActivityLogListResponse(BaseModel):
    activities: List[ActivityLogRead] = Field(default_factory=list)
