from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Numeric,
    DateTime,
)
from sqlalchemy.sql import func
from academy.core.database import Base


class Package(Base):
    """Catalogue entry for a bundle of sessions a student can buy"""

    __tablename__ = "packages"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)

    session_count = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Disabled packages stay for history but are hidden from selection
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<Package(id={self.id}, name='{self.name}', active={self.is_active})>"
