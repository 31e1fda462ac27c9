"""Unit tests for app.services.permissions: catalog lookups and startup validation."""

import unittest

from app.schemas.auth import Role
from app.services.errors import CatalogError
from app.services.permissions import (
    ACTION_PERMISSIONS,
    DEFAULT_CATALOG,
    ROLE_ROUTE_ACCESS,
    PermissionCatalog,
)


class TestRoutesFor(unittest.TestCase):
    """routes_for returns exactly the configured prefixes."""

    def test_admin_routes(self) -> None:
        routes = DEFAULT_CATALOG.routes_for(Role.ADMIN)
        self.assertIn("/users", routes)
        self.assertIn("/settings", routes)
        self.assertEqual(len(routes), 10)

    def test_hr_routes(self) -> None:
        self.assertEqual(DEFAULT_CATALOG.routes_for(Role.HR), frozenset({"/", "/hr"}))

    def test_every_role_reaches_root(self) -> None:
        for role in Role:
            self.assertIn("/", DEFAULT_CATALOG.routes_for(role))

    def test_unknown_role_is_caller_error(self) -> None:
        with self.assertRaises(ValueError):
            DEFAULT_CATALOG.routes_for("superuser")  # type: ignore[arg-type]


class TestAllowedRoles(unittest.TestCase):
    """allowed_roles fails closed for unregistered actions."""

    def test_user_management_is_admin_only(self) -> None:
        for action in ("add-user", "edit-user", "delete-user", "manage-roles"):
            self.assertEqual(DEFAULT_CATALOG.allowed_roles(action), frozenset({Role.ADMIN}))

    def test_edit_vehicle_roles(self) -> None:
        self.assertEqual(
            DEFAULT_CATALOG.allowed_roles("edit-vehicle"),
            frozenset({Role.ADMIN, Role.OPERATIONS, Role.MAINTENANCE}),
        )

    def test_unregistered_action_is_empty(self) -> None:
        self.assertEqual(DEFAULT_CATALOG.allowed_roles("launch-rockets"), frozenset())

    def test_actions_lists_registered_names(self) -> None:
        self.assertEqual(DEFAULT_CATALOG.actions, frozenset(ACTION_PERMISSIONS))


class TestCatalogValidation(unittest.TestCase):
    """Inconsistent catalogs fail loudly at construction."""

    def test_missing_role_in_route_table(self) -> None:
        routes = {role: prefixes for role, prefixes in ROLE_ROUTE_ACCESS.items() if role != Role.HR}
        with self.assertRaises(CatalogError) as ctx:
            PermissionCatalog(routes, ACTION_PERMISSIONS)
        self.assertIn("hr", ctx.exception.message)

    def test_action_with_undeclared_role(self) -> None:
        actions = {**ACTION_PERMISSIONS, "add-user": ("admin", "root")}
        with self.assertRaises(CatalogError):
            PermissionCatalog(ROLE_ROUTE_ACCESS, actions)

    def test_route_table_with_undeclared_role(self) -> None:
        routes = {**ROLE_ROUTE_ACCESS, "root": ("/",)}
        with self.assertRaises(CatalogError):
            PermissionCatalog(routes, ACTION_PERMISSIONS)

    def test_route_must_start_with_slash(self) -> None:
        routes = {**ROLE_ROUTE_ACCESS, Role.HR: ("/", "hr")}
        with self.assertRaises(CatalogError):
            PermissionCatalog(routes, ACTION_PERMISSIONS)

    def test_tables_are_immutable(self) -> None:
        source = {role: list(prefixes) for role, prefixes in ROLE_ROUTE_ACCESS.items()}
        catalog = PermissionCatalog(source, ACTION_PERMISSIONS)
        source[Role.HR].append("/settings")
        self.assertNotIn("/settings", catalog.routes_for(Role.HR))


if __name__ == "__main__":
    unittest.main()
