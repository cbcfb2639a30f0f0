"""Tagged variant for a booking's resource assignment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Assigned:
    """A request pinned to one concrete resource."""

    resource_id: int

    def __post_init__(self) -> None:
        if self.resource_id is None or self.resource_id <= 0:
            raise ValueError("Assigned requires a positive resource id")


@dataclass(frozen=True)
class Unassigned:
    """Any eligible resource of the tenant will do."""


ResourceRef = Union[Assigned, Unassigned]

UNASSIGNED = Unassigned()


def resource_ref(resource_id: int | None) -> ResourceRef:
    """Build the variant from an optional wire-level resource id."""
    if resource_id is None:
        return UNASSIGNED
    return Assigned(resource_id)
