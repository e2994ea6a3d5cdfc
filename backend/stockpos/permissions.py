"""
Role -> capability table.

Capabilities are coarse, one per screen-level action. Admin implicitly has
every capability, including ones added later.
"""

from .models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF

WILDCARD = "*"

VIEW_REPORTS = "view-reports"
MANAGE_INVENTORY = "manage-inventory"
VIEW_INVENTORY = "view-inventory"
CREATE_SALES = "create-sales"
VIEW_CUSTOMERS = "view-customers"
ADD_EXPENSE = "add-expense"
MANAGE_USERS = "manage-users"
SYSTEM_ADMIN = "system-admin"

ALL_CAPABILITIES = (
    VIEW_REPORTS,
    MANAGE_INVENTORY,
    VIEW_INVENTORY,
    CREATE_SALES,
    VIEW_CUSTOMERS,
    ADD_EXPENSE,
    MANAGE_USERS,
    SYSTEM_ADMIN,
)

ROLE_CAPABILITIES = {
    ROLE_ADMIN: (WILDCARD,),
    ROLE_MANAGER: (
        VIEW_REPORTS,
        MANAGE_INVENTORY,
        CREATE_SALES,
        VIEW_CUSTOMERS,
        ADD_EXPENSE,
    ),
    ROLE_STAFF: (
        VIEW_INVENTORY,
        CREATE_SALES,
        VIEW_CUSTOMERS,
    ),
}


def has_capability(role: str | None, capability: str) -> bool:
    if not role:
        return False
    if role == ROLE_ADMIN:
        return True
    granted = ROLE_CAPABILITIES.get(role, ())
    return capability in granted or WILDCARD in granted


def capabilities_for(role: str) -> list[str]:
    if role == ROLE_ADMIN:
        return list(ALL_CAPABILITIES)
    return list(ROLE_CAPABILITIES.get(role, ()))
