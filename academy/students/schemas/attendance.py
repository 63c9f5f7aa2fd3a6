from datetime import date, datetime, time
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from academy.students.models.attendance import AttendanceStatus


class AttendanceUpdate(BaseModel):
    status: AttendanceStatus
    session_duration: Optional[float] = Field(
        None, gt=0, description="Hours counted against the package when present"
    )


class AttendanceRecordRead(BaseModel):
    id: int
    session_id: int
    student_id: int
    student_name: Optional[str] = None
    student_package_type: Optional[str] = None
    status: str
    marked_at: Optional[datetime] = None
    session_duration: Optional[float] = None
    package_cycle: Optional[int] = None

    @classmethod
    def from_record(cls, record):
        student = record.student
        return cls(
            id=record.id,
            session_id=record.session_id,
            student_id=record.student_id,
            student_name=student.name if student else None,
            student_package_type=student.package_type if student else None,
            status=record.status,
            marked_at=record.marked_at,
            session_duration=record.session_duration,
            package_cycle=record.package_cycle,
        )


class AttendanceSessionSummary(BaseModel):
    id: int
    date: date
    start_time: time
    end_time: time
    status: str
    branch_id: int
    branch_name: Optional[str] = None
    package_type: Optional[str] = None
    coach_names: List[str] = Field(default_factory=list)
    participant_count: int = 0
    present_count: int = 0
    absent_count: int = 0
    pending_count: int = 0


class AttendanceSessionListResponse(BaseModel):
    sessions: List[AttendanceSessionSummary]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)


class SessionAttendanceResponse(BaseModel):
    session: AttendanceSessionSummary
    records: List[AttendanceRecordRead]


class StudentAttendanceRead(BaseModel):
    id: int
    session_id: int
    status: str
    marked_at: Optional[datetime] = None
    session_duration: Optional[float] = None
    package_cycle: Optional[int] = None
    session_date: date
    start_time: time
    end_time: time
    session_status: str
    branch_name: Optional[str] = None
    package_type: Optional[str] = None


class StudentAttendanceListResponse(BaseModel):
    records: List[StudentAttendanceRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)


class DurationOptions(BaseModel):
    options: List[float]
    default: float = 1.0

    model_config = ConfigDict(frozen=True)
