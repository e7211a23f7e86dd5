# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for PermissionCatalog: permission CRUD, role mappings and persistence snapshots."""

from __future__ import annotations

import threading

import pytest

from aumos_compliance.catalog import CatalogSnapshot, Permission, PermissionCatalog, default_catalog
from aumos_compliance.config import CatalogConfig
from aumos_compliance.errors import (
    ConflictError,
    ForbiddenSystemMutation,
    NotFoundError,
    ValidationError,
)
from aumos_compliance.types import Role


# ---------------------------------------------------------------------------
# TestCatalogReads
# ---------------------------------------------------------------------------


class TestCatalogReads:
    def test_defaults_are_seeded(self, catalog: PermissionCatalog) -> None:
        assert catalog.count() == len(default_catalog().permissions)
        assert catalog.get_permission_by_id("manage_users") is not None

    def test_unseeded_catalog_is_empty(self) -> None:
        catalog = PermissionCatalog(CatalogConfig(seed_defaults=False))
        assert catalog.count() == 0
        assert catalog.get_all_permissions() == []

    def test_unknown_id_returns_none(self, catalog: PermissionCatalog) -> None:
        assert catalog.get_permission_by_id("does_not_exist") is None

    def test_categories_are_distinct_and_sorted(self, catalog: PermissionCatalog) -> None:
        categories = catalog.get_permission_categories()
        assert categories == sorted(set(categories))
        assert "reporting" in categories

    def test_permissions_by_category(self, catalog: PermissionCatalog) -> None:
        system = catalog.get_permissions_by_category("system")
        assert {p.id for p in system} == {"manage_permissions", "manage_system_settings"}
        assert catalog.get_permissions_by_category("nope") == []


# ---------------------------------------------------------------------------
# TestPermissionWrites
# ---------------------------------------------------------------------------


class TestPermissionWrites:
    def test_add_then_read(self, catalog: PermissionCatalog, widget_permission: Permission) -> None:
        before = catalog.count()
        catalog.add_permission(widget_permission)
        assert catalog.count() == before + 1
        assert catalog.get_permission_by_id("manage_widgets") == widget_permission

    def test_adding_same_id_twice_conflicts(
        self, catalog: PermissionCatalog, widget_permission: Permission
    ) -> None:
        catalog.add_permission(widget_permission)
        with pytest.raises(ConflictError):
            catalog.add_permission(widget_permission)

    def test_add_reports_every_violation(self, catalog: PermissionCatalog) -> None:
        bad = Permission(id="Bad-Id", name="", description=" ", category="")
        with pytest.raises(ValidationError) as exc_info:
            catalog.add_permission(bad)
        assert exc_info.value.violations == [
            "Permission name is required",
            "Permission description is required",
            "Permission category is required",
            "Permission ID must contain only lowercase letters and underscores",
        ]
        assert catalog.get_permission_by_id("Bad-Id") is None

    def test_validate_flags_duplicate_on_insert_only(
        self, catalog: PermissionCatalog, widget_permission: Permission
    ) -> None:
        catalog.add_permission(widget_permission)
        assert catalog.validate_permission_structure(widget_permission) == []
        assert catalog.validate_permission_structure(widget_permission, for_insert=True) == [
            "Permission ID 'manage_widgets' is already in use"
        ]

    def test_missing_id_is_required(self, catalog: PermissionCatalog) -> None:
        violations = catalog.validate_permission_structure(
            Permission(id="", name="n", description="d", category="c")
        )
        assert violations == ["Permission ID is required"]

    def test_update_keeps_id_and_system_flag(
        self, catalog: PermissionCatalog, widget_permission: Permission
    ) -> None:
        catalog.add_permission(widget_permission)
        updated = catalog.update_permission(
            Permission(
                id="manage_widgets",
                name="Manage All Widgets",
                description="Everything widgets",
                category="widgets",
                is_system_permission=True,
            )
        )
        assert updated.name == "Manage All Widgets"
        assert updated.is_system_permission is False
        assert catalog.get_permission_by_id("manage_widgets") == updated

    def test_update_system_permission_is_forbidden(self, catalog: PermissionCatalog) -> None:
        before = catalog.snapshot()
        with pytest.raises(ForbiddenSystemMutation):
            catalog.update_permission(
                Permission(id="manage_users", name="x", description="y", category="z")
            )
        assert catalog.snapshot() == before

    def test_update_unknown_permission_is_not_found(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(NotFoundError):
            catalog.update_permission(Permission(id="ghost", name="x", description="y", category="z"))

    def test_trailing_newline_in_id_is_rejected(self, catalog: PermissionCatalog) -> None:
        permission = Permission(id="manage_widgets\n", name="n", description="d", category="c")
        assert catalog.validate_permission_structure(permission) == [
            "Permission ID must contain only lowercase letters and underscores"
        ]
        with pytest.raises(ValidationError):
            catalog.add_permission(permission)

    def test_delete_strips_id_from_roles(self, catalog: PermissionCatalog) -> None:
        assert "view_logs" in catalog.get_role_permissions(Role.AUDITOR)
        deleted = catalog.delete_permission("view_logs")
        assert deleted.id == "view_logs"
        assert catalog.get_permission_by_id("view_logs") is None
        assert "view_logs" not in catalog.get_role_permissions(Role.AUDITOR)

    def test_delete_system_permission_is_forbidden(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(ForbiddenSystemMutation):
            catalog.delete_permission("manage_permissions")
        assert catalog.get_permission_by_id("manage_permissions") is not None

    def test_delete_unknown_permission_is_not_found(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(NotFoundError):
            catalog.delete_permission("ghost")


# ---------------------------------------------------------------------------
# TestRolePermissions
# ---------------------------------------------------------------------------


class TestRolePermissions:
    def test_replace_role_permissions(self, catalog: PermissionCatalog) -> None:
        granted = catalog.update_role_permissions("auditor", ["view_reports", "view_logs"])
        assert granted == frozenset({"view_reports", "view_logs"})
        assert catalog.get_role_permissions("auditor") == granted

    def test_unknown_permission_id_rejects_whole_update(self, catalog: PermissionCatalog) -> None:
        before = catalog.get_role_permissions("auditor")
        with pytest.raises(ValidationError) as exc_info:
            catalog.update_role_permissions("auditor", ["view_reports", "nonexistent_id"])
        assert any("nonexistent_id" in v for v in exc_info.value.violations)
        assert catalog.get_role_permissions("auditor") == before

    def test_unknown_role_is_rejected(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(ValidationError, match="Invalid role permissions"):
            catalog.update_role_permissions("janitor", ["view_logs"])

    def test_super_admin_mapping_is_immutable(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(ForbiddenSystemMutation):
            catalog.update_role_permissions(Role.SUPER_ADMIN, [])

    def test_super_admin_holds_everything(self, catalog: PermissionCatalog) -> None:
        all_ids = {p.id for p in catalog.get_all_permissions()}
        assert catalog.get_role_permissions("super_admin") == all_ids
        assert catalog.has_permission("super_admin", "not_even_registered") is True

    def test_unknown_role_holds_nothing(self, catalog: PermissionCatalog) -> None:
        assert catalog.get_role_permissions("janitor") == frozenset()
        assert catalog.has_permission("janitor", "view_logs") is False

    def test_any_and_all_checks(self, catalog: PermissionCatalog) -> None:
        assert catalog.has_any_permission("auditor", ["manage_users", "view_logs"]) is True
        assert catalog.has_all_permissions("auditor", ["manage_users", "view_logs"]) is False
        assert catalog.has_all_permissions("auditor", ["upload_evidence", "view_logs"]) is True

    def test_list_covers_every_role(self, catalog: PermissionCatalog) -> None:
        rows = {row.role: row.permissions for row in catalog.list_role_permissions()}
        assert set(rows) == {role.value for role in Role}
        assert len(rows["super_admin"]) == catalog.count()
        assert rows["auditor"] == sorted(rows["auditor"])


# ---------------------------------------------------------------------------
# TestCatalogSnapshots
# ---------------------------------------------------------------------------


class TestCatalogSnapshots:
    def test_snapshot_never_stores_super_admin(self, catalog: PermissionCatalog) -> None:
        assert "super_admin" not in catalog.snapshot().role_permissions

    def test_load_restores_snapshot(
        self, catalog: PermissionCatalog, widget_permission: Permission
    ) -> None:
        saved = catalog.snapshot()
        catalog.add_permission(widget_permission)
        catalog.update_role_permissions("client", [])
        catalog.load(saved)
        assert catalog.snapshot() == saved

    def test_load_prunes_dangling_and_ignored_roles(self) -> None:
        snapshot = CatalogSnapshot(
            permissions=[Permission(id="view_logs", name="n", description="d", category="logs")],
            role_permissions={
                "auditor": ["view_logs", "vanished"],
                "super_admin": ["view_logs"],
                "janitor": ["view_logs"],
            },
        )
        catalog = PermissionCatalog(snapshot=snapshot)
        assert catalog.get_role_permissions("auditor") == frozenset({"view_logs"})
        assert set(catalog.snapshot().role_permissions) == {"auditor"}

    def test_snapshot_uses_camel_case_on_the_wire(self, catalog: PermissionCatalog) -> None:
        payload = catalog.snapshot().model_dump(by_alias=True)
        assert "rolePermissions" in payload
        assert "isSystemPermission" in payload["permissions"][0]


# ---------------------------------------------------------------------------
# TestConcurrentEdits
# ---------------------------------------------------------------------------


class TestConcurrentEdits:
    def test_delete_racing_role_grants_leaves_no_dangling_id(
        self, catalog: PermissionCatalog, widget_permission: Permission
    ) -> None:
        catalog.add_permission(widget_permission)
        roles = [role for role in Role if role is not Role.SUPER_ADMIN]
        start = threading.Barrier(len(roles) + 1)

        def grant(role: Role) -> None:
            start.wait()
            for _ in range(500):
                try:
                    catalog.update_role_permissions(role, ["view_reports", "manage_widgets"])
                except ValidationError:
                    return

        def delete() -> None:
            start.wait()
            catalog.delete_permission("manage_widgets")

        threads = [threading.Thread(target=grant, args=(role,)) for role in roles]
        threads.append(threading.Thread(target=delete))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert catalog.get_permission_by_id("manage_widgets") is None
        for role in roles:
            assert "manage_widgets" not in catalog.get_role_permissions(role)
        snapshot = catalog.snapshot()
        known = {p.id for p in snapshot.permissions}
        for ids in snapshot.role_permissions.values():
            assert set(ids) <= known
