"""Resource model definition."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class ResourceType(str, Enum):
    """Kinds of schedulable resources."""
    STAFF = "staff"
    ROOM = "room"
    EQUIPMENT = "equipment"
    VEHICLE = "vehicle"


class Resource(Base):
    """A schedulable entity owned by a tenant."""

    __tablename__ = "resources"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to tenant
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Resource details
    type: Mapped[ResourceType] = mapped_column(String(20), nullable=False, default=ResourceType.STAFF)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Pricing adjustments applied when this resource is chosen
    hourly_rate_diff: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    nomination_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Bumped by every hold issuance and booking commit to serialize writers
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("type IN ('staff', 'room', 'equipment', 'vehicle')", name="ck_resource_type"),
        CheckConstraint("nomination_fee >= 0", name="ck_resource_nomination_fee_non_negative"),
        CheckConstraint("length(name) > 0", name="ck_resource_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, tenant_id={self.tenant_id}, type={self.type}, name='{self.name}')>"
