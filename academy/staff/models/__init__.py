from academy.core.database import Base
from .branches import Branch
from .coaches import Coach, CoachAvailability, CoachRole, DayOfWeek
from .packages import Package
from .sessions import TrainingSession, SessionCoach, SessionParticipant, SessionStatus
from .coach_attendance import (
    CoachSessionTime,
    CoachAttendanceRecord,
    ActivityLog,
    ActivityType,
)

__all__ = [
    "Base",
    "Branch",
    "Coach",
    "CoachAvailability",
    "CoachRole",
    "DayOfWeek",
    "Package",
    "TrainingSession",
    "SessionCoach",
    "SessionParticipant",
    "SessionStatus",
    "CoachSessionTime",
    "CoachAttendanceRecord",
    "ActivityLog",
    "ActivityType",
]
