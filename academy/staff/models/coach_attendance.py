"""Coach check-in/check-out per session and admin-marked coach attendance"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class ActivityType(str, Enum):
    time_in = "time_in"
    time_out = "time_out"
    session_completed = "session_completed"


class CoachSessionTime(Base):
    __tablename__ = "coach_session_times"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        Integer,
        ForeignKey("training_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    coach_id = Column(
        Integer,
        ForeignKey("coaches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    time_in = Column(DateTime(timezone=True), nullable=True)
    time_out = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    coach = relationship("Coach")
    session = relationship("TrainingSession")

    __table_args__ = (
        UniqueConstraint("session_id", "coach_id", name="uq_coach_session_time"),
    )

    @property
    def is_complete(self) -> bool:
        """A coach counts as present once both stamps are recorded"""
        return self.time_in is not None and self.time_out is not None

    def __repr__(self):
        return (
            f"<CoachSessionTime(session_id={self.session_id}, coach_id={self.coach_id}, "
            f"in={self.time_in}, out={self.time_out})>"
        )


class CoachAttendanceRecord(Base):
    __tablename__ = "coach_attendance_records"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        Integer,
        ForeignKey("training_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    coach_id = Column(
        Integer,
        ForeignKey("coaches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # present | absent | pending
    status = Column(String(20), nullable=False, default="pending")
    marked_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("session_id", "coach_id", name="uq_coach_attendance"),
    )

    def __repr__(self):
        return (
            f"<CoachAttendanceRecord(session_id={self.session_id}, "
            f"coach_id={self.coach_id}, status='{self.status}')>"
        )


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("coaches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # coach | admin
    user_type = Column(String(20), nullable=False)
    session_id = Column(
        Integer,
        ForeignKey("training_sessions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    activity_type = Column(String(50), nullable=False)
    activity_description = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    user = relationship("Coach")
    session = relationship("TrainingSession")

    def __repr__(self):
        return (
            f"<ActivityLog(id={self.id}, user_id={self.user_id}, "
            f"type='{self.activity_type}')>"
        )
