"""Hold token model definition."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Time, func
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from ..scheduling.intervals import Interval


class HoldState(str, Enum):
    """Derived state of a hold token at a given instant. Never stored."""
    ACTIVE = "active"
    EXPIRED = "expired"
    CONSUMED = "consumed"
    RELEASED = "released"


class HoldToken(Base):
    """Short-lived, single-use exclusive lock on a resource interval."""

    __tablename__ = "hold_tokens"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PgUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    # Opaque key handed to the client
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # Scope
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    resource_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False
    )
    menu_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("menus.id", ondelete="SET NULL"),
        nullable=True
    )
    customer_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True
    )
    option_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    # Interval
    hold_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    # Lifetime, all naive UTC
    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    extension_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_hold_token_end_after_start"),
        CheckConstraint("expires_at > issued_at", name="ck_hold_token_expiry_after_issue"),
        CheckConstraint("length(token) > 0", name="ck_hold_token_token_not_empty"),
        Index("ix_hold_tokens_tenant_resource_date", "tenant_id", "resource_id", "hold_date"),
    )

    @property
    def interval(self) -> Interval:
        return Interval.on_day(self.hold_date, self.start_time, self.end_time)

    def state(self, now: datetime) -> HoldState:
        if self.consumed_at is not None:
            return HoldState.CONSUMED
        if self.released_at is not None:
            return HoldState.RELEASED
        if now >= self.expires_at:
            return HoldState.EXPIRED
        return HoldState.ACTIVE

    def is_live(self, now: datetime) -> bool:
        """Valid iff not consumed, not released and ``now`` is before expiry."""
        return self.state(now) is HoldState.ACTIVE

    def remaining_seconds(self, now: datetime) -> int:
        if not self.is_live(now):
            return 0
        return int((self.expires_at - now).total_seconds())

    def __repr__(self) -> str:
        return (
            f"<HoldToken(id={self.id}, resource_id={self.resource_id}, date={self.hold_date}, "
            f"{self.start_time}-{self.end_time}, expires_at={self.expires_at})>"
        )
