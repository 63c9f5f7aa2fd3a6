from academy.core.database import Base
from .students import Student
from .package_history import StudentPackageHistory
from .attendance import AttendanceRecord, AttendanceStatus
from .payments import StudentPayment, StudentCharge, PaymentFor

__all__ = [
    "Base",
    "Student",
    "StudentPackageHistory",
    "AttendanceRecord",
    "AttendanceStatus",
    "StudentPayment",
    "StudentCharge",
    "PaymentFor",
]
