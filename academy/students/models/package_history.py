from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    Float,
    Numeric,
    DateTime,
    ForeignKey,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class StudentPackageHistory(Base):
    """Snapshot of a student's package taken when it was replaced"""

    __tablename__ = "student_package_history"

    id = Column(Integer, primary_key=True)
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    package_type = Column(String(200), nullable=True)
    sessions = Column(Integer, nullable=True)
    remaining_sessions = Column(Float, nullable=True)
    enrollment_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True)

    total_training_fee = Column(Numeric(10, 2), nullable=False, default=0)
    downpayment = Column(Numeric(10, 2), nullable=False, default=0)
    remaining_balance = Column(Numeric(10, 2), nullable=False, default=0)

    # "renewal - completed", "renewal - expired", "renewal - early"
    reason = Column(String(100), nullable=True)
    captured_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    student = relationship("Student", back_populates="package_history")

    def __repr__(self):
        return (
            f"<StudentPackageHistory(id={self.id}, student_id={self.student_id}, "
            f"package='{self.package_type}', reason='{self.reason}')>"
        )
