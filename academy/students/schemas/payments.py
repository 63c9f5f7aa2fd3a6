from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from academy.students.models.payments import PaymentFor


class PaymentCreate(BaseModel):
    payment_amount: float = Field(..., gt=0)
    payment_date: Optional[datetime] = Field(None, description="Defaults to now")
    notes: Optional[str] = Field(None, max_length=2000)
    payment_for: PaymentFor = PaymentFor.balance
    charge_id: Optional[int] = Field(None, gt=0)
    extra_charges: Optional[float] = Field(None, ge=0)
    charge_description: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def validate_target(self):
        if self.payment_for == PaymentFor.extra_charge and not self.charge_id:
            raise ValueError("charge_id is required when paying an extra charge")
        if self.payment_for == PaymentFor.balance and self.charge_id:
            raise ValueError("charge_id is only allowed when paying an extra charge")
        return self


class PaymentRead(BaseModel):
    id: int
    student_id: int
    payment_amount: float
    payment_date: datetime
    notes: Optional[str] = None
    payment_for: str
    charge_id: Optional[int] = None
    package_history_id: Optional[int] = None
    extra_charges: Optional[float] = None
    charge_description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentListResponse(BaseModel):
    payments: List[PaymentRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)


class ChargeCreate(BaseModel):
    amount: float = Field(..., gt=0)
    charge_type: str = Field("extra_charge", min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=2000)
    charge_date: Optional[date] = Field(None, description="Defaults to today")

    model_config = ConfigDict(str_strip_whitespace=True)


class ChargeUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)


class ChargeRead(BaseModel):
    id: int
    student_id: int
    amount: float
    charge_type: str
    description: Optional[str] = None
    notes: Optional[str] = None
    charge_date: date
    is_paid: bool
    paid_at: Optional[datetime] = None
    paid_amount: float = 0
    outstanding: float = 0
    package_history_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_charge(cls, charge):
        amount = float(charge.amount or 0)
        paid = float(charge.paid_amount or 0)
        return cls(
            id=charge.id,
            student_id=charge.student_id,
            amount=amount,
            charge_type=charge.charge_type,
            description=charge.description,
            notes=charge.notes,
            charge_date=charge.charge_date,
            is_paid=charge.is_paid,
            paid_at=charge.paid_at,
            paid_amount=paid,
            outstanding=round(max(0.0, amount - paid), 2),
            package_history_id=charge.package_history_id,
            created_at=charge.created_at,
        )


class ChargeListResponse(BaseModel):
    charges: List[ChargeRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1)
    pages: int = Field(..., ge=1)


class BalanceSummary(BaseModel):
    student_id: int
    total_training_fee: float = 0
    downpayment: float = 0
    total_payments: float = Field(0, description="Payments made against the balance")
    total_charges: float = 0
    unpaid_charges: float = Field(0, description="Outstanding part of extra charges")
    remaining_balance: float = 0
