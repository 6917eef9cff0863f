# sellfast/permissions.py
from .models import User

# Dashboard & profile
DASHBOARD_VIEW = "dashboard:view"
PROFILE_VIEW = "profile:view"
PROFILE_EDIT = "profile:edit"

# Listings
LISTINGS_VIEW_OWN = "listings:view:own"
LISTINGS_CREATE = "listings:create"
LISTINGS_EDIT_OWN = "listings:edit:own"
LISTINGS_DELETE_OWN = "listings:delete:own"
LISTINGS_VIEW_ALL = "listings:view:all"
LISTINGS_EDIT_ALL = "listings:edit:all"
LISTINGS_DELETE_ALL = "listings:delete:all"
LISTINGS_APPROVE = "listings:approve"

# Bidding & deals
BIDS_VIEW = "bids:view"
BIDS_CREATE = "bids:create"
DEALS_VIEW = "deals:view"
DEALS_MANAGE = "deals:manage"

# Admin
USERS_MANAGE = "users:manage"
CATALOG_MANAGE = "catalog:manage"
ROLES_MANAGE = "roles:manage"

ALL_PERMISSIONS = (
    DASHBOARD_VIEW, PROFILE_VIEW, PROFILE_EDIT,
    LISTINGS_VIEW_OWN, LISTINGS_CREATE, LISTINGS_EDIT_OWN, LISTINGS_DELETE_OWN,
    LISTINGS_VIEW_ALL, LISTINGS_EDIT_ALL, LISTINGS_DELETE_ALL, LISTINGS_APPROVE,
    BIDS_VIEW, BIDS_CREATE, DEALS_VIEW, DEALS_MANAGE,
    USERS_MANAGE, CATALOG_MANAGE, ROLES_MANAGE,
)

ROLE_PERMISSIONS = {
    "USER": [
        DASHBOARD_VIEW, PROFILE_VIEW, PROFILE_EDIT,
        LISTINGS_VIEW_OWN, LISTINGS_CREATE, LISTINGS_EDIT_OWN, LISTINGS_DELETE_OWN,
        DEALS_VIEW,
    ],
    "BUYER": [
        DASHBOARD_VIEW, PROFILE_VIEW, PROFILE_EDIT,
        LISTINGS_VIEW_ALL, BIDS_VIEW, BIDS_CREATE, DEALS_VIEW,
    ],
    "ADMIN": list(ALL_PERMISSIONS),
}


def permissions_for(user: User | None) -> list[str]:
    """An active custom role replaces the base role's grants."""
    if not user:
        return []
    role = user.custom_role
    if role is not None and role.is_active:
        return list(role.permissions or [])
    return list(ROLE_PERMISSIONS.get((user.role or "").upper(), []))


def has_permission(user: User | None, permission: str) -> bool:
    return permission in permissions_for(user)
