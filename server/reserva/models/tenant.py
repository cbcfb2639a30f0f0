"""Tenant and business-calendar model definitions."""

from datetime import date, datetime, time

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, String, Time, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class Tenant(Base):
    """Tenant entity; every other row is partitioned by it."""

    __tablename__ = "tenants"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Tenant details
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    slot_granularity_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    max_advance_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

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

    # Constraints
    __table_args__ = (
        CheckConstraint(
            "slot_granularity_minutes >= 5 AND slot_granularity_minutes <= 60",
            name="ck_tenant_slot_granularity_range"
        ),
        CheckConstraint("max_advance_days > 0", name="ck_tenant_max_advance_days_positive"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', granularity={self.slot_granularity_minutes})>"


class BusinessHours(Base):
    """
    Weekly opening hours.

    Rows without a resource are the tenant's business hours; rows with a
    resource override that resource's working hours for the weekday.
    """

    __tablename__ = "business_hours"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    resource_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    opens_at: Mapped[time | None] = mapped_column(Time, nullable=True)
    closes_at: Mapped[time | None] = mapped_column(Time, nullable=True)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_business_hours_weekday_range"),
        CheckConstraint(
            "is_closed OR (opens_at IS NOT NULL AND closes_at IS NOT NULL AND closes_at > opens_at)",
            name="ck_business_hours_window"
        ),
        UniqueConstraint("tenant_id", "resource_id", "weekday", name="uq_business_hours_tenant_resource_weekday"),
    )

    def __repr__(self) -> str:
        return (
            f"<BusinessHours(tenant_id={self.tenant_id}, resource_id={self.resource_id}, "
            f"weekday={self.weekday}, {self.opens_at}-{self.closes_at}, closed={self.is_closed})>"
        )


class CalendarEntry(Base):
    """Dated exception: a blackout (``closed``) or ``special_hours`` for one day."""

    __tablename__ = "calendar_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    resource_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=True
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    opens_at: Mapped[time | None] = mapped_column(Time, nullable=True)
    closes_at: Mapped[time | None] = mapped_column(Time, nullable=True)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("kind IN ('closed', 'special_hours')", name="ck_calendar_entry_kind"),
        CheckConstraint(
            "kind = 'closed' OR (opens_at IS NOT NULL AND closes_at IS NOT NULL AND closes_at > opens_at)",
            name="ck_calendar_entry_hours"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CalendarEntry(tenant_id={self.tenant_id}, resource_id={self.resource_id}, "
            f"date={self.entry_date}, kind={self.kind})>"
        )
