"""FastAPI dependencies for tenant scoping and the service clock."""

from typing import Optional

from fastapi import Header

from .clock import Clock, utcnow
from .exceptions import TenantRequiredError


async def get_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID")
) -> int:
    """
    Tenant dependency that reads the X-Tenant-ID header.

    There is no default tenant; a missing or malformed header fails the
    request before any data is read.

    Raises:
        TenantRequiredError: If the header is missing or not a positive integer
    """
    if x_tenant_id is None or not x_tenant_id.strip():
        raise TenantRequiredError()
    try:
        tenant_id = int(x_tenant_id.strip())
    except ValueError as e:
        raise TenantRequiredError(detail="X-Tenant-ID must be a positive integer") from e
    if tenant_id <= 0:
        raise TenantRequiredError(detail="X-Tenant-ID must be a positive integer")
    return tenant_id


def get_clock() -> Clock:
    """Clock the services compare expiries and lead times against."""
    return utcnow
