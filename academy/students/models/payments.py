"""Student payments and extra charges"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    Boolean,
    Numeric,
    DateTime,
    ForeignKey,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from academy.core.database import Base


class PaymentFor(str, Enum):
    balance = "balance"
    extra_charge = "extra_charge"


class StudentCharge(Base):
    """Extra amount owed on top of the training fee (uniform, tournament fee...)"""

    __tablename__ = "student_charges"

    id = Column(Integer, primary_key=True)
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(10, 2), nullable=False)
    charge_type = Column(String(50), nullable=False, default="extra_charge")
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    charge_date = Column(Date, nullable=False)

    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)

    # NULL while it belongs to the current package
    package_history_id = Column(
        Integer,
        ForeignKey("student_package_history.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    student = relationship("Student", back_populates="charges")

    def __repr__(self):
        return (
            f"<StudentCharge(id={self.id}, student_id={self.student_id}, "
            f"amount={self.amount}, paid={self.is_paid})>"
        )


class StudentPayment(Base):
    __tablename__ = "student_payments"

    id = Column(Integer, primary_key=True)
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text, nullable=True)

    # balance | extra_charge
    payment_for = Column(String(20), nullable=False, default=PaymentFor.balance.value)
    charge_id = Column(
        Integer,
        ForeignKey("student_charges.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    package_history_id = Column(
        Integer,
        ForeignKey("student_package_history.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Informational extra-charge amount and label entered with the payment
    extra_charges = Column(Numeric(10, 2), nullable=True)
    charge_description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    student = relationship("Student", back_populates="payments")
    charge = relationship("StudentCharge")

    def __repr__(self):
        return (
            f"<StudentPayment(id={self.id}, student_id={self.student_id}, "
            f"amount={self.payment_amount}, for='{self.payment_for}')>"
        )
