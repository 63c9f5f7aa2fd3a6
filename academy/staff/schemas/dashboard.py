from datetime import date, time
from typing import Optional, List

from pydantic import BaseModel, Field

from academy.staff.schemas.coach_attendance import ActivityLogRead


class AdminDashboardStats(BaseModel):
    total_students: int = 0
    total_coaches: int = 0
    total_sessions: int = 0
    total_branches: int = 0
    upcoming_sessions: int = 0
    active_packages: int = 0
    recent_activities: List[ActivityLogRead] = Field(default_factory=list)


class RecentSession(BaseModel):
    id: int
    date: date
    start_time: time
    end_time: time
    status: str
    branch_name: Optional[str] = None
    package_type: Optional[str] = None


class CoachDashboardStats(BaseModel):
    coach_id: int
    coach_name: str
    total_sessions: int = 0
    upcoming_sessions: int = 0
    completed_sessions: int = 0
    attendance_rate: int = Field(0, ge=0, le=100, description="Percent of present students")
    recent_sessions: List[RecentSession] = Field(default_factory=list)
