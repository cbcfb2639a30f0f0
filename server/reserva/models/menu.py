"""Menu, option and combination-discount model definitions."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class PriceType(str, Enum):
    """How a menu option contributes to the price."""
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    DURATION_BASED = "duration_based"
    FREE = "free"


class Menu(Base):
    """A bookable service definition."""

    __tablename__ = "menus"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign key to tenant
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Durations in minutes
    base_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    prep_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cleanup_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Price in minor units
    base_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Booking rules
    minimum_advance_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    require_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allowed_resource_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
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

    __table_args__ = (
        CheckConstraint("base_duration > 0", name="ck_menu_base_duration_positive"),
        CheckConstraint("prep_duration >= 0", name="ck_menu_prep_duration_non_negative"),
        CheckConstraint("cleanup_duration >= 0", name="ck_menu_cleanup_duration_non_negative"),
        CheckConstraint("base_price >= 0", name="ck_menu_base_price_non_negative"),
        CheckConstraint("minimum_advance_hours >= 0", name="ck_menu_minimum_advance_non_negative"),
    )

    def allows_resource_type(self, resource_type: str) -> bool:
        """An empty allow-list accepts every resource type."""
        return not self.allowed_resource_types or resource_type in self.allowed_resource_types

    def __repr__(self) -> str:
        return f"<Menu(id={self.id}, tenant_id={self.tenant_id}, name='{self.name}')>"


class MenuOption(Base):
    """Add-on for a menu with its own duration delta and pricing rule."""

    __tablename__ = "menu_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    menu_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("menus.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price_type: Mapped[PriceType] = mapped_column(String(20), nullable=False, default=PriceType.FIXED)
    price_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "price_type IN ('fixed', 'percentage', 'duration_based', 'free')",
            name="ck_menu_option_price_type"
        ),
        CheckConstraint("price_value >= 0", name="ck_menu_option_price_value_non_negative"),
        CheckConstraint("duration_minutes >= 0", name="ck_menu_option_duration_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<MenuOption(id={self.id}, menu_id={self.menu_id}, price_type={self.price_type})>"


class ComboDiscount(Base):
    """Discount applied when a combination of options is selected together."""

    __tablename__ = "combo_discounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # NULL applies to every menu of the tenant
    menu_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("menus.id", ondelete="CASCADE"),
        nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    option_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    min_options: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_combo_discount_amount_positive"),
        CheckConstraint("min_options >= 0", name="ck_combo_discount_min_options_non_negative"),
    )

    def applies_to(self, selected_option_ids: set[int]) -> bool:
        if not self.option_ids and self.min_options == 0:
            return False
        if not set(self.option_ids).issubset(selected_option_ids):
            return False
        return len(selected_option_ids) >= self.min_options

    def __repr__(self) -> str:
        return f"<ComboDiscount(id={self.id}, name='{self.name}', amount={self.amount})>"
