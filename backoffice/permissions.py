# backoffice/permissions.py
import enum
from typing import Dict, FrozenSet


# Roles issued by the external auth service
class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"


class Capability(str, enum.Enum):
    MANAGE_STOCK = "manage_stock"
    VIEW_STOCK = "view_stock"
    CREATE_ORDERS = "create_orders"
    VIEW_ORDERS = "view_orders"
    VIEW_PRODUCTS = "view_products"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.SUPER_ADMIN: frozenset(Capability),
    Role.ADMIN: frozenset(Capability),
    Role.STAFF: frozenset({
        Capability.CREATE_ORDERS,
        Capability.VIEW_ORDERS,
        Capability.VIEW_PRODUCTS,
    }),
    Role.CUSTOMER: frozenset({Capability.VIEW_PRODUCTS}),
}


def parse_role(value) -> Role:
    """Map a raw role claim to a Role; unknown values raise ValueError."""
    if isinstance(value, Role):
        return value
    return Role((value or "").strip().lower())


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
