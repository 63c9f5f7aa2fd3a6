from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class CoachRole(str, Enum):
    admin = "admin"
    coach = "coach"


class DayOfWeek(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"


class Coach(Base):
    __tablename__ = "coaches"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(32), nullable=True)

    # admin | coach
    role = Column(String(20), nullable=False, default=CoachRole.coach.value)

    # Subject of the identity-provider account linked to this coach
    auth_id = Column(String(255), nullable=True, unique=True, index=True)

    # Speciality, e.g. the package type the coach usually runs
    package_type = Column(String(200), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    availability = relationship(
        "CoachAvailability",
        back_populates="coach",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CoachAvailability.id",
    )
    session_links = relationship(
        "SessionCoach",
        back_populates="coach",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def availability_days(self):
        return [slot.day_of_week for slot in self.availability]

    def __repr__(self):
        return f"<Coach(id={self.id}, name='{self.name}', role='{self.role}')>"


class CoachAvailability(Base):
    """Weekday a coach is available to run sessions"""

    __tablename__ = "coach_availability"

    id = Column(Integer, primary_key=True)
    coach_id = Column(
        Integer,
        ForeignKey("coaches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week = Column(String(10), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    coach = relationship("Coach", back_populates="availability")

    __table_args__ = (
        UniqueConstraint("coach_id", "day_of_week", name="uq_coach_availability_day"),
    )

    def __repr__(self):
        return f"<CoachAvailability(coach_id={self.coach_id}, day='{self.day_of_week}')>"
