from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    Time,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class SessionStatus(str, Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class TrainingSession(Base):
    __tablename__ = "training_sessions"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    branch_id = Column(
        Integer, ForeignKey("branches.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    package_type = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    # scheduled | completed | cancelled
    status = Column(String(20), nullable=False, default=SessionStatus.scheduled.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    branch = relationship("Branch", back_populates="sessions")
    coach_links = relationship(
        "SessionCoach",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    participants = relationship(
        "SessionParticipant",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    attendance_records = relationship(
        "AttendanceRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_training_sessions_date_status", "date", "status"),)

    def __repr__(self):
        return (
            f"<TrainingSession(id={self.id}, date={self.date}, "
            f"{self.start_time}-{self.end_time}, status='{self.status}')>"
        )


class SessionCoach(Base):
    """Coach assigned to a session"""

    __tablename__ = "session_coaches"

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
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("TrainingSession", back_populates="coach_links")
    coach = relationship("Coach", back_populates="session_links")

    __table_args__ = (
        UniqueConstraint("session_id", "coach_id", name="uq_session_coach"),
    )

    def __repr__(self):
        return f"<SessionCoach(session_id={self.session_id}, coach_id={self.coach_id})>"


class SessionParticipant(Base):
    """Student enrolled in a session"""

    __tablename__ = "session_participants"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        Integer,
        ForeignKey("training_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("TrainingSession", back_populates="participants")
    student = relationship("Student")

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_session_participant"),
    )

    def __repr__(self):
        return (
            f"<SessionParticipant(session_id={self.session_id}, "
            f"student_id={self.student_id})>"
        )
