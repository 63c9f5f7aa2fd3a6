from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    Float,
    Numeric,
    DateTime,
    ForeignKey,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class Student(Base):
    """
    A player enrolled at the academy.

    The package fields describe the current package only; earlier packages
    are archived in StudentPackageHistory.
    """

    __tablename__ = "students"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)

    branch_id = Column(
        Integer, ForeignKey("branches.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    # Current package
    package_type = Column(String(200), nullable=True)
    sessions = Column(Integer, nullable=True)
    remaining_sessions = Column(Float, nullable=True)
    enrollment_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True)

    # Current package financials
    total_training_fee = Column(Numeric(10, 2), nullable=False, default=0)
    downpayment = Column(Numeric(10, 2), nullable=False, default=0)
    remaining_balance = Column(Numeric(10, 2), nullable=False, default=0)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    branch = relationship("Branch", back_populates="students")
    package_history = relationship(
        "StudentPackageHistory",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    attendance_records = relationship(
        "AttendanceRecord",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    payments = relationship(
        "StudentPayment",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    charges = relationship(
        "StudentCharge",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def has_package(self) -> bool:
        return bool(
            self.package_type
            or self.sessions is not None
            or self.remaining_sessions is not None
            or self.enrollment_date
            or self.expiration_date
        )

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.name}', package='{self.package_type}')>"
