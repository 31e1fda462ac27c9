"""Authorization decisions over the permission catalog and a session's identity snapshot.

All functions are pure. `identity` is None for an anonymous caller, which is denied everywhere.
The route checks and the action check deliberately differ on missing configuration: an empty
caller-supplied role requirement allows, an unregistered action denies.
"""

from collections.abc import Collection

from app.schemas.auth import Role, User
from app.services.permissions import PermissionCatalog


def can_reach_route(catalog: PermissionCatalog, identity: User | None, route: str) -> bool:
    """True iff route is one of the prefixes configured for the identity's role."""
    if identity is None:
        return False
    return route in catalog.routes_for(identity.role)


def has_permission(identity: User | None, required_roles: Collection[Role]) -> bool:
    """Role gate for a resource; no required roles means no restriction."""
    if identity is None:
        return False
    if not required_roles:
        return True
    return identity.role in required_roles


def can_perform(catalog: PermissionCatalog, identity: User | None, action: str) -> bool:
    """True iff the identity's role is allowed the action; unknown actions are denied."""
    if identity is None:
        return False
    return identity.role in catalog.allowed_roles(action)
