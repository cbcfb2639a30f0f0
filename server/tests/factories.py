"""Shared test data builders."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from reserva.core.database import Base
from reserva.models import BusinessHours, Customer, Menu, MenuOption, PriceType, Resource, Tenant

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Tuesday morning, six days before the date most tests book on
FIXED_NOW = datetime(2030, 1, 1, 8, 0)
BOOKING_DAY = date(2030, 1, 7)


class FrozenClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass(frozen=True)
class Ref:
    """Id of a seeded row; stays readable after a service rolls the session back."""

    id: int
    name: str = ""


@dataclass
class SeededTenant:
    tenant: Ref
    staff: list[Ref]
    room: Ref
    menu: Ref
    options: dict[str, Ref]
    customer: Ref


async def create_engine_with_schema(url: str = TEST_DATABASE_URL):
    """Engine with every table created; in-memory URLs share one connection."""
    if ":memory:" in url:
        engine = create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        # One connection per session so writers really contend for the file lock
        engine = create_async_engine(url, poolclass=NullPool, connect_args={"timeout": 30})

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def seed_tenant(
    session: AsyncSession,
    name: str = "Test Salon",
    opens_at: time = time(9, 0),
    closes_at: time = time(21, 0),
    granularity: int = 30,
    base_duration: int = 60,
    timezone: str = "UTC",
) -> SeededTenant:
    """
    A tenant open every day, two staff members, a room, a staff-only menu
    with two options and one customer.
    """
    tenant = Tenant(
        name=name,
        timezone=timezone,
        slot_granularity_minutes=granularity,
        max_advance_days=90,
        is_active=True,
    )
    session.add(tenant)
    await session.flush()

    for weekday in range(7):
        session.add(
            BusinessHours(
                tenant_id=tenant.id,
                weekday=weekday,
                opens_at=opens_at,
                closes_at=closes_at,
                is_closed=False,
            )
        )

    staff = [
        Resource(tenant_id=tenant.id, name="Aiko", type="staff", sort_order=1,
                 is_active=True, hourly_rate_diff=0, nomination_fee=0, lock_version=0),
        Resource(tenant_id=tenant.id, name="Ren", type="staff", sort_order=2,
                 is_active=True, hourly_rate_diff=1000, nomination_fee=500, lock_version=0),
    ]
    room = Resource(tenant_id=tenant.id, name="Room A", type="room", sort_order=3,
                    is_active=True, hourly_rate_diff=0, nomination_fee=0, lock_version=0)
    session.add_all([*staff, room])

    menu = Menu(
        tenant_id=tenant.id,
        name="Cut",
        base_duration=base_duration,
        prep_duration=0,
        cleanup_duration=0,
        base_price=5000,
        minimum_advance_hours=0,
        require_approval=False,
        allowed_resource_types=["staff"],
        is_active=True,
    )
    session.add(menu)
    await session.flush()

    options = {
        "head_spa": MenuOption(
            tenant_id=tenant.id, menu_id=menu.id, name="Head spa",
            price_type=PriceType.FIXED.value, price_value=2000, duration_minutes=30,
            is_required=False, is_active=True, sort_order=1,
        ),
        "treatment": MenuOption(
            tenant_id=tenant.id, menu_id=menu.id, name="Treatment",
            price_type=PriceType.PERCENTAGE.value, price_value=30, duration_minutes=0,
            is_required=False, is_active=True, sort_order=2,
        ),
    }
    session.add_all(options.values())

    customer = Customer(tenant_id=tenant.id, name="Hanako")
    session.add(customer)

    await session.commit()
    return SeededTenant(
        tenant=Ref(tenant.id, tenant.name),
        staff=[Ref(resource.id, resource.name) for resource in staff],
        room=Ref(room.id, room.name),
        menu=Ref(menu.id, menu.name),
        options={key: Ref(option.id, option.name) for key, option in options.items()},
        customer=Ref(customer.id, customer.name),
    )


def slot_starts(day: date, first: time, last: time, step_minutes: int) -> list[time]:
    """Every start from ``first`` to ``last`` inclusive on the grid."""
    starts = []
    current = datetime.combine(day, first)
    end = datetime.combine(day, last)
    while current <= end:
        starts.append(current.time())
        current += timedelta(minutes=step_minutes)
    return starts
