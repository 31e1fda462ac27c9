"""Permission catalog: route access per role and allowed roles per action.

Both tables are process-wide static configuration, validated once at import. An inconsistent
catalog raises CatalogError so the process never starts with broken access rules.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from app.schemas.auth import Role
from app.services.errors import CatalogError

# Route prefixes reachable per role; matched by exact string membership, never globbed.
ROLE_ROUTE_ACCESS: dict[Role, tuple[str, ...]] = {
    Role.ADMIN: (
        "/",
        "/users",
        "/hr",
        "/vehicles",
        "/planning",
        "/orders",
        "/inventory",
        "/maintenance",
        "/reports",
        "/settings",
    ),
    Role.HR: ("/", "/hr"),
    Role.PLANNER: ("/", "/planning", "/vehicles"),
    Role.COMMERCIAL: ("/", "/orders", "/reports"),
    Role.PROCUREMENT: ("/", "/inventory", "/orders"),
    Role.OPERATIONS: ("/", "/vehicles", "/planning"),
    Role.MAINTENANCE: ("/", "/vehicles", "/maintenance"),
}

# Named actions and the roles allowed to perform them.
ACTION_PERMISSIONS: dict[str, tuple[Role, ...]] = {
    "add-user": (Role.ADMIN,),
    "edit-user": (Role.ADMIN,),
    "delete-user": (Role.ADMIN,),
    "manage-roles": (Role.ADMIN,),
    "add-vehicle": (Role.ADMIN, Role.OPERATIONS),
    "edit-vehicle": (Role.ADMIN, Role.OPERATIONS, Role.MAINTENANCE),
    "add-order": (Role.ADMIN, Role.COMMERCIAL),
    "edit-order": (Role.ADMIN, Role.COMMERCIAL),
    "add-inventory": (Role.ADMIN, Role.PROCUREMENT),
    "add-planning": (Role.ADMIN, Role.PLANNER),
    "edit-planning": (Role.ADMIN, Role.PLANNER),
    "manage-hr": (Role.ADMIN, Role.HR),
}

# Actions the auth service itself enforces.
ACTION_ADD_USER = "add-user"
ACTION_EDIT_USER = "edit-user"
ACTION_DELETE_USER = "delete-user"

# Route that gates listing the user directory.
USERS_ROUTE = "/users"


class PermissionCatalog:
    """Immutable lookup over the route-access and action-permission tables."""

    def __init__(
        self,
        route_access: Mapping[Role, Iterable[str]],
        action_permissions: Mapping[str, Iterable[Role]],
    ) -> None:
        routes = {role: frozenset(prefixes) for role, prefixes in route_access.items()}
        actions = {action: frozenset(roles) for action, roles in action_permissions.items()}
        _validate(routes, actions)
        self._routes: Mapping[Role, frozenset[str]] = MappingProxyType(routes)
        self._actions: Mapping[str, frozenset[Role]] = MappingProxyType(actions)

    def routes_for(self, role: Role) -> frozenset[str]:
        """Configured route prefixes for role. Unknown role is a caller error."""
        try:
            return self._routes[role]
        except KeyError:
            raise ValueError(f"Unknown role: {role!r}") from None

    def allowed_roles(self, action: str) -> frozenset[Role]:
        """Roles allowed to perform action; empty for unregistered actions (fail closed)."""
        return self._actions.get(action, frozenset())

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(self._actions)


def _validate(
    routes: Mapping[object, frozenset[str]],
    actions: Mapping[str, frozenset[object]],
) -> None:
    """Check every table key and value against the declared roles."""
    for role in routes:
        if not isinstance(role, Role):
            raise CatalogError(f"Route table references undeclared role {role!r}")
    missing = [role.value for role in Role if role not in routes]
    if missing:
        raise CatalogError(f"Route table has no entry for roles: {', '.join(missing)}")
    for role, prefixes in routes.items():
        for prefix in prefixes:
            if not isinstance(prefix, str) or not prefix.startswith("/"):
                raise CatalogError(f"Invalid route {prefix!r} for role {role.value!r}")
    for action, roles in actions.items():
        if not isinstance(action, str) or not action.strip():
            raise CatalogError(f"Invalid action name {action!r}")
        for role in roles:
            if not isinstance(role, Role):
                raise CatalogError(f"Action {action!r} references undeclared role {role!r}")


DEFAULT_CATALOG = PermissionCatalog(ROLE_ROUTE_ACCESS, ACTION_PERMISSIONS)
