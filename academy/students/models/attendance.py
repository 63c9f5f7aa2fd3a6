"""Student attendance per training session"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class AttendanceStatus(str, Enum):
    present = "present"
    absent = "absent"
    pending = "pending"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

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

    # present | absent | pending
    status = Column(String(20), nullable=False, default=AttendanceStatus.pending.value)
    marked_at = Column(DateTime(timezone=True), nullable=True)

    # Hours of training counted against the package when present
    session_duration = Column(Float, nullable=True, default=1.0)

    # Ordinal of the student's package this record was counted against
    package_cycle = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    session = relationship("TrainingSession", back_populates="attendance_records")
    student = relationship("Student", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_attendance_session_student"),
    )

    def __repr__(self):
        return (
            f"<AttendanceRecord(session_id={self.session_id}, "
            f"student_id={self.student_id}, status='{self.status}')>"
        )
