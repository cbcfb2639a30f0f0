"""Customer model definition."""

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class Customer(Base):
    """The party a booking is made for. Only what the booking core reads."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_customer_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}')>"
