"""Unit tests for duration and price resolution."""

import pytest

from reserva.core.exceptions import NotFoundError, TenantRequiredError, ValidationError
from reserva.models import ComboDiscount, Menu, MenuOption, PriceType, Resource
from reserva.services.duration_price import DurationPriceResolver, compute_quote


def make_menu(**overrides) -> Menu:
    values = dict(
        id=1, tenant_id=1, name="Color", base_duration=90, prep_duration=10,
        cleanup_duration=15, base_price=8000,
    )
    values.update(overrides)
    return Menu(**values)


def make_option(option_id: int, price_type: PriceType, price_value: int, duration: int = 0, required: bool = False):
    return MenuOption(
        id=option_id, tenant_id=1, menu_id=1, name=f"option-{option_id}",
        price_type=price_type.value, price_value=price_value,
        duration_minutes=duration, is_required=required,
    )


def test_base_quote_includes_prep_and_cleanup():
    """total duration = base + prep + cleanup."""
    quote = compute_quote(make_menu(), [], [])
    assert quote.total_duration == 115
    assert quote.total_price == 8000
    assert quote.option_ids == ()


def test_option_pricing_rules():
    options = [
        make_option(1, PriceType.FIXED, 1500, duration=20),
        make_option(2, PriceType.PERCENTAGE, 25),
        make_option(3, PriceType.DURATION_BASED, 700, duration=30),
        make_option(4, PriceType.DURATION_BASED, 700, duration=0),
        make_option(5, PriceType.FREE, 999, duration=5),
    ]
    quote = compute_quote(make_menu(), options, [1, 2, 3, 4, 5])

    amounts = {line.option_id: line.amount for line in quote.option_lines}
    assert amounts == {1: 1500, 2: 2000, 3: 700, 4: 0, 5: 0}
    assert quote.total_duration == 115 + 20 + 30 + 5
    assert quote.total_price == 8000 + 1500 + 2000 + 700


def test_percentage_rounds_half_up():
    quote = compute_quote(make_menu(base_price=1250), [make_option(1, PriceType.PERCENTAGE, 10)], [1])
    assert quote.option_lines[0].amount == 125
    quote = compute_quote(make_menu(base_price=1255), [make_option(1, PriceType.PERCENTAGE, 10)], [1])
    assert quote.option_lines[0].amount == 126


def test_required_options_are_always_applied():
    options = [make_option(1, PriceType.FIXED, 300, duration=10, required=True)]
    quote = compute_quote(make_menu(), options, [])
    assert quote.option_ids == (1,)
    assert quote.total_duration == 125


def test_duplicate_option_ids_count_once():
    options = [make_option(1, PriceType.FIXED, 300, duration=10)]
    quote = compute_quote(make_menu(), options, [1, 1, 1])
    assert quote.total_price == 8300
    assert quote.total_duration == 125


def test_unknown_option_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        compute_quote(make_menu(), [make_option(1, PriceType.FREE, 0)], [1, 42])
    assert exc_info.value.problem_details["errors"] == {"option_ids": [42]}


def test_combo_discount_applies_when_all_options_selected():
    options = [make_option(1, PriceType.FIXED, 1000), make_option(2, PriceType.FIXED, 1000)]
    discount = ComboDiscount(id=1, tenant_id=1, menu_id=None, name="Pair", option_ids=[1, 2], min_options=0, amount=500)

    assert compute_quote(make_menu(), options, [1, 2], [discount]).total_price == 9500
    assert compute_quote(make_menu(), options, [1], [discount]).total_price == 9000


def test_discount_for_another_menu_is_ignored():
    options = [make_option(1, PriceType.FIXED, 1000)]
    discount = ComboDiscount(id=1, tenant_id=1, menu_id=99, name="Other", option_ids=[1], min_options=0, amount=500)
    assert compute_quote(make_menu(), options, [1], [discount]).total_price == 9000


def test_price_never_goes_negative():
    options = [make_option(1, PriceType.FREE, 0)]
    big = ComboDiscount(id=2, tenant_id=1, menu_id=1, name="Huge", option_ids=[1], min_options=1, amount=100000)
    quote = compute_quote(make_menu(), options, [1], [big])
    assert quote.total_price == 0


def test_resource_differential_and_nomination_fee():
    """Hourly differential is prorated over the full duration; duration is unchanged."""
    resource = Resource(id=7, tenant_id=1, name="Senior", type="staff", hourly_rate_diff=1200, nomination_fee=500)
    without = compute_quote(make_menu(base_duration=60, prep_duration=0, cleanup_duration=0), [], [])
    with_resource = compute_quote(
        make_menu(base_duration=60, prep_duration=0, cleanup_duration=0), [], [], resource=resource
    )
    assert with_resource.total_duration == without.total_duration == 60
    assert with_resource.total_price == 8000 + 1200 + 500
    assert with_resource.resource_id == 7


@pytest.mark.asyncio
async def test_resolver_reads_catalog(test_session, seeded):
    """The resolver loads the menu, options and resource by tenant."""
    resolver = DurationPriceResolver(test_session)
    quote = await resolver.resolve(
        seeded.tenant.id,
        seeded.menu.id,
        [seeded.options["head_spa"].id, seeded.options["treatment"].id],
        resource_id=seeded.staff[1].id,
    )
    assert quote.total_duration == 90
    # 5000 base + 2000 spa + 1500 treatment + 1000 * 1.5h + 500 nomination
    assert quote.total_price == 10500


@pytest.mark.asyncio
async def test_resolver_is_tenant_scoped(test_session, seeded, other_tenant):
    resolver = DurationPriceResolver(test_session)
    with pytest.raises(NotFoundError):
        await resolver.resolve(other_tenant.tenant.id, seeded.menu.id)
    with pytest.raises(TenantRequiredError):
        await resolver.resolve(None, seeded.menu.id)
