# Overview: Closed role set and the capabilities each role carries.

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"

    @classmethod
    def parse(cls, value) -> "Role":
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"unknown role: {value}")


class Capability(str, enum.Enum):
    VIEW_PRODUCTS = "VIEW_PRODUCTS"
    MANAGE_PRODUCTS = "MANAGE_PRODUCTS"
    MANAGE_CATEGORIES = "MANAGE_CATEGORIES"
    DELETE_CATEGORIES = "DELETE_CATEGORIES"
    CREATE_SALE = "CREATE_SALE"
    VIEW_SALES = "VIEW_SALES"
    VIEW_INVENTORY = "VIEW_INVENTORY"
    ADJUST_INVENTORY = "ADJUST_INVENTORY"
    VIEW_REPORTS = "VIEW_REPORTS"
    VIEW_DASHBOARD = "VIEW_DASHBOARD"
    VIEW_SETTINGS = "VIEW_SETTINGS"
    MANAGE_SETTINGS = "MANAGE_SETTINGS"
    MANAGE_USERS = "MANAGE_USERS"


# Every authenticated user can ring up sales and look things up
_FLOOR_CAPABILITIES = frozenset({
    Capability.VIEW_PRODUCTS,
    Capability.CREATE_SALE,
    Capability.VIEW_SALES,
    Capability.VIEW_INVENTORY,
    Capability.ADJUST_INVENTORY,
    Capability.VIEW_REPORTS,
    Capability.VIEW_DASHBOARD,
    Capability.VIEW_SETTINGS,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CASHIER: _FLOOR_CAPABILITIES,
    Role.MANAGER: _FLOOR_CAPABILITIES | {
        Capability.MANAGE_PRODUCTS,
        Capability.MANAGE_CATEGORIES,
    },
    Role.ADMIN: frozenset(Capability),
}


def capabilities_for(role: Role) -> frozenset[Capability]:
    return ROLE_CAPABILITIES.get(role, frozenset())


def has_capability(role: Role, capability: Capability) -> bool:
    """Check whether a role carries a capability."""
    return capability in capabilities_for(role)
