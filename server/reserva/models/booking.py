"""Booking and booking option model definitions."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from ..scheduling.intervals import Interval


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that occupy their interval
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class Booking(Base):
    """Booking entity occupying a resource for a half-open interval on one date."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Tenant scope
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Human-facing identifier, unique per tenant
    booking_number: Mapped[str] = mapped_column(String(32), nullable=False)

    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    menu_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("menus.id", ondelete="RESTRICT"),
        nullable=False
    )
    resource_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("resources.id", ondelete="RESTRICT"),
        nullable=True
    )

    # Interval
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    total_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True
    )

    # Hold-derived origin
    hold_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Lifecycle markers
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

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
        CheckConstraint("end_time > start_time", name="ck_booking_end_after_start"),
        CheckConstraint("duration_minutes > 0", name="ck_booking_duration_positive"),
        CheckConstraint("total_price >= 0", name="ck_booking_total_price_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed', 'no_show')",
            name="ck_booking_status"
        ),
        UniqueConstraint("tenant_id", "booking_number", name="uq_bookings_tenant_booking_number"),
        Index("ix_bookings_tenant_resource_date", "tenant_id", "resource_id", "booking_date"),
    )

    # Relationships
    options: Mapped[list["BookingOption"]] = relationship(
        "BookingOption",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BookingOption.id"
    )

    @property
    def interval(self) -> Interval:
        return Interval.on_day(self.booking_date, self.start_time, self.end_time)

    @property
    def is_active(self) -> bool:
        """True while the booking occupies its interval."""
        return self.deleted_at is None and self.status in ACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, number='{self.booking_number}', resource_id={self.resource_id}, "
            f"date={self.booking_date}, {self.start_time}-{self.end_time}, status={self.status})>"
        )


class BookingOption(Base):
    """Snapshot of a menu option as priced when the booking was committed."""

    __tablename__ = "booking_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    menu_option_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("menu_options.id", ondelete="SET NULL"),
        nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="options")

    def __repr__(self) -> str:
        return f"<BookingOption(booking_id={self.booking_id}, name='{self.name}', price={self.price})>"
