"""Tenant-scoped access to the reference data the booking core reads."""

import logging
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, TenantRequiredError, ValidationError
from ..models.customer import Customer
from ..models.menu import ComboDiscount, Menu, MenuOption
from ..models.resource import Resource
from ..models.tenant import Tenant

logger = logging.getLogger(__name__)


def require_tenant(tenant_id: int | None) -> int:
    """Fail closed unless an explicit, positive tenant id was supplied."""
    if tenant_id is None or isinstance(tenant_id, bool) or not isinstance(tenant_id, int) or tenant_id <= 0:
        raise TenantRequiredError()
    return tenant_id


class CatalogService:
    """Reads of tenants, menus, options, resources and customers; every query filters by tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tenant_or_raise(self, tenant_id: int) -> Tenant:
        """Get an active tenant or raise NotFoundError."""
        require_tenant(tenant_id)
        stmt = select(Tenant).where(Tenant.id == tenant_id, Tenant.is_active.is_(True))
        result = await self.db.execute(stmt)
        tenant = result.scalar_one_or_none()
        if not tenant:
            raise NotFoundError(resource_type="tenant", resource_id=str(tenant_id))
        return tenant

    async def get_menu_or_raise(self, tenant_id: int, menu_id: int) -> Menu:
        """Get an active menu of the tenant or raise NotFoundError."""
        require_tenant(tenant_id)
        stmt = select(Menu).where(
            Menu.tenant_id == tenant_id,
            Menu.id == menu_id,
            Menu.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        menu = result.scalar_one_or_none()
        if not menu:
            logger.warning("Menu not found", extra={"tenant_id": tenant_id, "menu_id": menu_id})
            raise NotFoundError(resource_type="menu", resource_id=str(menu_id))
        return menu

    async def get_menu_options(self, tenant_id: int, menu_id: int) -> list[MenuOption]:
        """Active options of a menu, in display order."""
        require_tenant(tenant_id)
        stmt = (
            select(MenuOption)
            .where(
                MenuOption.tenant_id == tenant_id,
                MenuOption.menu_id == menu_id,
                MenuOption.is_active.is_(True),
            )
            .order_by(MenuOption.sort_order, MenuOption.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_combo_discounts(self, tenant_id: int, menu_id: int) -> list[ComboDiscount]:
        """Active combination discounts that apply to the menu."""
        require_tenant(tenant_id)
        stmt = (
            select(ComboDiscount)
            .where(
                ComboDiscount.tenant_id == tenant_id,
                ComboDiscount.is_active.is_(True),
                (ComboDiscount.menu_id == menu_id) | ComboDiscount.menu_id.is_(None),
            )
            .order_by(ComboDiscount.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_resource_or_raise(self, tenant_id: int, resource_id: int) -> Resource:
        """Get a resource of the tenant or raise NotFoundError."""
        require_tenant(tenant_id)
        stmt = select(Resource).where(Resource.tenant_id == tenant_id, Resource.id == resource_id)
        result = await self.db.execute(stmt)
        resource = result.scalar_one_or_none()
        if not resource:
            logger.warning("Resource not found", extra={"tenant_id": tenant_id, "resource_id": resource_id})
            raise NotFoundError(resource_type="resource", resource_id=str(resource_id))
        return resource

    async def get_eligible_resource_or_raise(self, tenant_id: int, menu: Menu, resource_id: int) -> Resource:
        """Get a resource that may serve the menu, or raise."""
        resource = await self.get_resource_or_raise(tenant_id, resource_id)
        if not resource.is_active or not menu.allows_resource_type(resource.type):
            raise ValidationError(
                detail=f"Resource {resource_id} cannot serve menu {menu.id}",
                errors={"resource_id": resource_id, "menu_id": menu.id},
            )
        return resource

    async def list_eligible_resources(self, tenant_id: int, menu: Menu) -> list[Resource]:
        """Active resources of the tenant whose type the menu allows, in assignment order."""
        require_tenant(tenant_id)
        stmt = (
            select(Resource)
            .where(Resource.tenant_id == tenant_id, Resource.is_active.is_(True))
            .order_by(Resource.sort_order, Resource.id)
        )
        result = await self.db.execute(stmt)
        return [resource for resource in result.scalars() if menu.allows_resource_type(resource.type)]

    async def get_customer_or_raise(self, tenant_id: int, customer_id: int) -> Customer:
        """Get a customer of the tenant or raise NotFoundError."""
        require_tenant(tenant_id)
        stmt = select(Customer).where(Customer.tenant_id == tenant_id, Customer.id == customer_id)
        result = await self.db.execute(stmt)
        customer = result.scalar_one_or_none()
        if not customer:
            raise NotFoundError(resource_type="customer", resource_id=str(customer_id))
        return customer

    async def lock_resources(self, tenant_id: int, resource_ids: Iterable[int]) -> None:
        """
        Take a write lock on each resource row for the rest of the transaction.

        Bumping ``lock_version`` is a row lock on PostgreSQL and acquires the
        database write lock on SQLite, so the overlap check and insert that
        follow cannot interleave with another writer on the same resource.
        Rows are locked in ascending id order to avoid deadlocks.

        Raises:
            NotFoundError: If a resource does not belong to the tenant
        """
        require_tenant(tenant_id)
        ordered_ids = sorted(set(resource_ids))
        for resource_id in ordered_ids:
            stmt = (
                update(Resource)
                .where(Resource.tenant_id == tenant_id, Resource.id == resource_id)
                .values(lock_version=Resource.lock_version + 1)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                raise NotFoundError(resource_type="resource", resource_id=str(resource_id))

        logger.debug(
            "Acquired resource locks",
            extra={"tenant_id": tenant_id, "resource_ids": ordered_ids}
        )
