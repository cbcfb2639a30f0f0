"""Duration and price resolution for a menu selection."""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ValidationError
from ..models.menu import ComboDiscount, Menu, MenuOption, PriceType
from ..models.resource import Resource
from .catalog_service import CatalogService, require_tenant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteLine:
    kind: str
    name: str
    amount: int
    duration_minutes: int = 0
    option_id: int | None = None


@dataclass(frozen=True)
class PriceQuote:
    """Total interval length and price of a menu selection."""

    menu_id: int
    total_duration: int
    total_price: int
    lines: tuple[QuoteLine, ...]
    option_ids: tuple[int, ...]
    resource_id: int | None = None

    @property
    def option_lines(self) -> list[QuoteLine]:
        return [line for line in self.lines if line.kind == "option"]


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def option_price(option: MenuOption, base_price: int) -> int:
    """Price contribution of one option under its pricing rule."""
    price_type = PriceType(option.price_type)
    if price_type is PriceType.FIXED:
        return option.price_value
    if price_type is PriceType.PERCENTAGE:
        return round_half_up(Decimal(base_price) * Decimal(option.price_value) / Decimal(100))
    if price_type is PriceType.DURATION_BASED:
        # Charged only when the option actually extends the booking
        return option.price_value if option.duration_minutes > 0 else 0
    return 0


def compute_quote(
    menu: Menu,
    available_options: Sequence[MenuOption],
    option_ids: Iterable[int],
    discounts: Sequence[ComboDiscount] = (),
    resource: Resource | None = None,
) -> PriceQuote:
    """
    Pure duration/price computation.

    total duration = base + prep + cleanup + option durations
    total price = base + option prices - combination discounts + resource differential

    Raises:
        ValidationError: If an option id is unknown, inactive or belongs to another menu
    """
    by_id = {option.id: option for option in available_options}
    requested = list(dict.fromkeys(option_ids))
    unknown = [option_id for option_id in requested if option_id not in by_id]
    if unknown:
        raise ValidationError(
            detail=f"Unknown options for menu {menu.id}: {unknown}",
            errors={"option_ids": unknown},
        )

    selected_ids = set(requested)
    selected_ids.update(option.id for option in available_options if option.is_required)
    selected = [option for option in available_options if option.id in selected_ids]

    lines = [
        QuoteLine(
            kind="base",
            name=menu.name,
            amount=menu.base_price,
            duration_minutes=menu.base_duration + menu.prep_duration + menu.cleanup_duration,
        )
    ]
    for option in selected:
        lines.append(
            QuoteLine(
                kind="option",
                name=option.name,
                amount=option_price(option, menu.base_price),
                duration_minutes=option.duration_minutes,
                option_id=option.id,
            )
        )

    for discount in discounts:
        if discount.menu_id not in (None, menu.id):
            continue
        if discount.applies_to(selected_ids):
            lines.append(QuoteLine(kind="discount", name=discount.name, amount=-discount.amount))

    total_duration = sum(line.duration_minutes for line in lines)

    if resource is not None:
        differential = round_half_up(Decimal(resource.hourly_rate_diff) * Decimal(total_duration) / Decimal(60))
        surcharge = differential + resource.nomination_fee
        if surcharge:
            lines.append(QuoteLine(kind="resource", name=resource.name, amount=surcharge))

    total_price = max(0, sum(line.amount for line in lines))

    return PriceQuote(
        menu_id=menu.id,
        total_duration=total_duration,
        total_price=total_price,
        lines=tuple(lines),
        option_ids=tuple(sorted(selected_ids)),
        resource_id=resource.id if resource is not None else None,
    )


class DurationPriceResolver:
    """Single source of truth for how long and how much a menu selection is."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = CatalogService(db)

    async def resolve(
        self,
        tenant_id: int,
        menu_id: int,
        option_ids: Iterable[int] = (),
        resource_id: int | None = None,
        menu: Menu | None = None,
        resource: Resource | None = None,
    ) -> PriceQuote:
        """
        Resolve the total duration and price of a menu selection.

        Args:
            tenant_id: Tenant scope
            menu_id: Menu being booked
            option_ids: Selected options; required options are added automatically
            resource_id: Resource whose rate differential applies, if any
            menu: Already loaded menu, to skip a query
            resource: Already loaded resource, to skip a query

        Returns:
            PriceQuote with total duration, total price and line breakdown
        """
        require_tenant(tenant_id)
        if menu is None:
            menu = await self.catalog.get_menu_or_raise(tenant_id, menu_id)
        if resource is None and resource_id is not None:
            resource = await self.catalog.get_resource_or_raise(tenant_id, resource_id)

        options = await self.catalog.get_menu_options(tenant_id, menu.id)
        discounts = await self.catalog.get_combo_discounts(tenant_id, menu.id)
        quote = compute_quote(menu, options, option_ids, discounts, resource)

        logger.debug(
            "Resolved menu quote",
            extra={
                "tenant_id": tenant_id,
                "menu_id": menu.id,
                "option_ids": list(quote.option_ids),
                "resource_id": quote.resource_id,
                "total_duration": quote.total_duration,
                "total_price": quote.total_price,
            }
        )
        return quote
