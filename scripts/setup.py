#!/usr/bin/env python3
"""Setup script for the booking core: migrate the database and seed a demo tenant."""

import asyncio
import logging
from datetime import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from reserva.core.config import settings
from reserva.core.database import async_session_factory, init_db
from reserva.models import BusinessHours, Customer, Menu, MenuOption, PriceType, Resource, Tenant

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVER_DIR = Path(__file__).parent.parent / "server"


def run_migrations() -> None:
    """Upgrade the schema to the latest revision."""
    alembic_cfg = Config(str(SERVER_DIR / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(SERVER_DIR / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")


async def setup_database() -> None:
    """Create the schema; SQLite has no btree_gist, so it gets create_all instead of migrations."""
    logger.info("Setting up database...")
    if settings.database_url.startswith("sqlite"):
        await init_db()
    else:
        # alembic's env.py runs its own event loop
        await asyncio.to_thread(run_migrations)
    logger.info("Database schema is up to date")


async def create_sample_data() -> None:
    """Create one tenant with two staff members, a menu with options and a customer."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing = await db.execute(select(func.count()).select_from(Tenant))
            if existing.scalar() > 0:
                logger.info("Sample data already exists, skipping...")
                return

            tenant = Tenant(name="Demo Salon", timezone="Asia/Tokyo", slot_granularity_minutes=30)
            db.add(tenant)
            await db.flush()

            for weekday in range(7):
                closed = weekday == 1  # closed on Tuesdays
                db.add(
                    BusinessHours(
                        tenant_id=tenant.id,
                        weekday=weekday,
                        opens_at=None if closed else time(10, 0),
                        closes_at=None if closed else time(20, 0),
                        is_closed=closed,
                    )
                )

            db.add_all([
                Resource(tenant_id=tenant.id, name="Aiko", type="staff", sort_order=1, nomination_fee=500),
                Resource(tenant_id=tenant.id, name="Ren", type="staff", sort_order=2, hourly_rate_diff=1000),
                Resource(tenant_id=tenant.id, name="Private room", type="room", sort_order=3),
            ])

            menu = Menu(
                tenant_id=tenant.id,
                name="Cut and blow",
                base_duration=60,
                cleanup_duration=10,
                base_price=6000,
                minimum_advance_hours=2,
                allowed_resource_types=["staff"],
            )
            db.add(menu)
            await db.flush()

            db.add_all([
                MenuOption(
                    tenant_id=tenant.id, menu_id=menu.id, name="Head spa",
                    price_type=PriceType.FIXED.value, price_value=2000, duration_minutes=20,
                ),
                MenuOption(
                    tenant_id=tenant.id, menu_id=menu.id, name="Treatment",
                    price_type=PriceType.PERCENTAGE.value, price_value=30, duration_minutes=15,
                ),
            ])
            db.add(Customer(tenant_id=tenant.id, name="Demo Customer"))

            await db.commit()
            logger.info("Sample data created", extra={"tenant_id": tenant.id})

        except Exception:
            await db.rollback()
            logger.error("Failed to create sample data", exc_info=True)
            raise


async def main() -> None:
    """Main setup function."""
    await setup_database()
    await create_sample_data()
    logger.info("Setup completed. Start the API with: uvicorn reserva.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
