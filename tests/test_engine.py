# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for ComplianceEngine lifecycle, audited catalog edits and request auditing."""

from __future__ import annotations

import asyncio

import pytest

from aumos_compliance import ComplianceConfig, ComplianceEngine
from aumos_compliance.audit.query import AuditTrailFilter
from aumos_compliance.catalog import CatalogSnapshot, Permission
from aumos_compliance.config import CatalogConfig
from aumos_compliance.errors import (
    AuthorizationError,
    ConflictError,
    ForbiddenSystemMutation,
    StorageUnavailable,
    ValidationError,
)
from aumos_compliance.guard import ActorIdentity, PermissionRequirement
from aumos_compliance.storage.memory import MemoryStorage
from aumos_compliance.types import RiskLevel, Role

from conftest import FlakyStorage


# ---------------------------------------------------------------------------
# TestLifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_start_seeds_empty_store(self) -> None:
        async def scenario() -> None:
            storage = MemoryStorage()
            engine = ComplianceEngine(storage=storage)
            await engine.start()
            saved = await storage.load_catalog()
            await engine.shutdown()
            assert saved is not None
            assert len(saved.permissions) == engine.catalog.count()

        asyncio.run(scenario())

    def test_start_loads_saved_catalog(self) -> None:
        async def scenario() -> None:
            storage = MemoryStorage()
            await storage.save_catalog(
                CatalogSnapshot(
                    permissions=[Permission(id="only_one", name="n", description="d", category="c")],
                    role_permissions={"client": ["only_one"]},
                )
            )
            engine = ComplianceEngine(storage=storage)
            await engine.start()
            await engine.shutdown()
            assert engine.catalog.count() == 1
            assert engine.catalog.has_permission("client", "only_one")

        asyncio.run(scenario())

    def test_start_without_seeding_leaves_store_empty(self) -> None:
        async def scenario() -> None:
            storage = MemoryStorage()
            engine = ComplianceEngine(
                config=ComplianceConfig(catalog=CatalogConfig(seed_defaults=False)),
                storage=storage,
            )
            await engine.start()
            await engine.shutdown()
            assert await storage.load_catalog() is None
            assert engine.catalog.count() == 0

        asyncio.run(scenario())

    def test_seed_failure_is_storage_unavailable(self, flaky_storage: FlakyStorage) -> None:
        async def scenario() -> None:
            flaky_storage.fail_saves = True
            engine = ComplianceEngine(storage=flaky_storage)
            with pytest.raises(StorageUnavailable):
                await engine.start()

        asyncio.run(scenario())

    def test_health(self) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            health = engine.health()
            await engine.shutdown()
            assert health["status"] == "ok"
            assert health["permissions"] == engine.catalog.count()
            assert health["outbox"]["running"] is True
            assert "queueDepth" in health["outbox"]

        asyncio.run(scenario())


# ---------------------------------------------------------------------------
# TestCatalogEdits
# ---------------------------------------------------------------------------


class TestCatalogEdits:
    def test_create_is_persisted_and_audited(
        self,
        super_admin: ActorIdentity,
        widget_permission: Permission,
        flaky_storage: FlakyStorage,
    ) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine(storage=flaky_storage)
            await engine.start()
            await engine.create_permission(super_admin, widget_permission)

            saved = await flaky_storage.load_catalog()
            assert saved is not None
            assert "manage_widgets" in {p.id for p in saved.permissions}

            [entry] = await engine.audit.get_entries(AuditTrailFilter(resource="permissions"))
            await engine.shutdown()
            assert entry.user_id == super_admin.id
            assert entry.risk_level is RiskLevel.HIGH
            assert entry.metadata == {"permission_id": "manage_widgets", "operation": "create"}
            assert entry.after_state is not None

        asyncio.run(scenario())

    def test_creating_twice_conflicts(
        self, super_admin: ActorIdentity, widget_permission: Permission
    ) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            await engine.create_permission(super_admin, widget_permission)
            with pytest.raises(ConflictError):
                await engine.create_permission(super_admin, widget_permission)
            await engine.shutdown()

        asyncio.run(scenario())

    def test_only_super_admin_may_edit(
        self, auditor: ActorIdentity, widget_permission: Permission
    ) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            with pytest.raises(AuthorizationError):
                await engine.create_permission(auditor, widget_permission)
            await engine.shutdown()
            assert engine.catalog.get_permission_by_id("manage_widgets") is None

        asyncio.run(scenario())

    def test_system_permission_update_is_forbidden(self, super_admin: ActorIdentity) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            before = engine.catalog.snapshot()
            with pytest.raises(ForbiddenSystemMutation):
                await engine.update_permission(
                    super_admin,
                    Permission(id="view_all_logs", name="x", description="y", category="z"),
                )
            await engine.shutdown()
            assert engine.catalog.snapshot() == before

        asyncio.run(scenario())

    def test_role_update_with_unknown_id_changes_nothing(self, super_admin: ActorIdentity) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            before = engine.catalog.get_role_permissions("auditor")
            with pytest.raises(ValidationError) as exc_info:
                await engine.update_role_permissions(
                    super_admin, "auditor", ["view_reports", "nonexistent_id"]
                )
            await engine.shutdown()
            assert "Unknown permission id 'nonexistent_id'" in exc_info.value.violations
            assert engine.catalog.get_role_permissions("auditor") == before

        asyncio.run(scenario())

    def test_role_update_is_audited_with_before_and_after(self, super_admin: ActorIdentity) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            await engine.update_role_permissions(super_admin, "client", ["view_notifications"])
            [entry] = await engine.audit.get_entries(AuditTrailFilter(resource="roles"))
            await engine.shutdown()
            assert entry.resource_id == "client"
            assert entry.after_state == ["view_notifications"]
            assert "download_reports" in entry.before_state
            assert entry.metadata == {"role": "client", "operation": "update"}

        asyncio.run(scenario())

    def test_update_and_delete(self, super_admin: ActorIdentity, widget_permission: Permission) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            await engine.create_permission(super_admin, widget_permission)
            await engine.update_role_permissions(super_admin, "auditor", ["manage_widgets"])
            updated = await engine.update_permission(
                super_admin,
                widget_permission.model_copy(update={"name": "Widgets"}),
            )
            deleted = await engine.delete_permission(super_admin, "manage_widgets")
            await engine.shutdown()

            assert updated.name == "Widgets"
            assert deleted.id == "manage_widgets"
            assert engine.catalog.get_role_permissions("auditor") == frozenset()

        asyncio.run(scenario())

    def test_delete_racing_role_grants_leaves_no_dangling_id(
        self, super_admin: ActorIdentity, widget_permission: Permission
    ) -> None:
        async def scenario() -> None:
            storage = MemoryStorage()
            engine = ComplianceEngine(storage=storage)
            await engine.start()
            await engine.create_permission(super_admin, widget_permission)
            roles = [role for role in Role if role is not Role.SUPER_ADMIN]
            edits = [
                engine.update_role_permissions(super_admin, role, ["manage_widgets"])
                for role in roles
            ]
            edits.insert(len(edits) // 2, engine.delete_permission(super_admin, "manage_widgets"))
            results = await asyncio.gather(*edits, return_exceptions=True)
            saved = await storage.load_catalog()
            await engine.shutdown()

            errors = [r for r in results if isinstance(r, BaseException)]
            assert all(isinstance(error, ValidationError) for error in errors)
            for role in roles:
                assert "manage_widgets" not in engine.catalog.get_role_permissions(role)
            assert saved is not None
            for ids in saved.role_permissions.values():
                assert "manage_widgets" not in ids

        asyncio.run(scenario())

    def test_role_audit_before_state_matches_the_replaced_set(
        self, super_admin: ActorIdentity
    ) -> None:
        class SlowSaves(MemoryStorage):
            async def save_catalog(self, snapshot: CatalogSnapshot) -> None:
                await asyncio.sleep(0.01)
                await super().save_catalog(snapshot)

        async def scenario() -> None:
            engine = ComplianceEngine(storage=SlowSaves())
            await engine.start()
            await asyncio.gather(
                engine.update_role_permissions(super_admin, "client", ["view_notifications"]),
                engine.update_role_permissions(super_admin, "client", ["view_reports"]),
                engine.update_role_permissions(super_admin, "client", ["download_reports"]),
            )
            entries = await engine.audit.get_entries(AuditTrailFilter(resource="roles"))
            await engine.shutdown()

            ordered = sorted(entries, key=lambda e: e.timestamp)
            assert len(ordered) == 3
            for previous, current in zip(ordered, ordered[1:]):
                assert current.before_state == previous.after_state

        asyncio.run(scenario())

    def test_failed_save_rolls_back(
        self,
        super_admin: ActorIdentity,
        widget_permission: Permission,
        flaky_storage: FlakyStorage,
    ) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine(storage=flaky_storage)
            await engine.start()
            flaky_storage.fail_saves = True
            with pytest.raises(StorageUnavailable):
                await engine.create_permission(super_admin, widget_permission)
            entries = await engine.audit.get_entries(AuditTrailFilter(resource="permissions"))
            await engine.shutdown()

            assert engine.catalog.get_permission_by_id("manage_widgets") is None
            assert entries == []

        asyncio.run(scenario())


# ---------------------------------------------------------------------------
# TestRequestAuditing
# ---------------------------------------------------------------------------


class TestRequestAuditing:
    def test_denied_request_is_still_audited(self, client_user: ActorIdentity) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.start()
            decision = engine.authorize(
                client_user, PermissionRequirement(required_permissions=frozenset({"manage_users"}))
            )
            entry_id = await engine.audit_request(
                client_user, "DELETE", "/api/users/9", decision.status_code, ip_address="10.1.1.1"
            )
            [entry] = await engine.audit.get_entries()
            await engine.shutdown()

            assert decision.allowed is False
            assert entry.id == entry_id
            assert entry.status_code == 403
            assert entry.resource_id == "9"
            assert entry.risk_level is RiskLevel.CRITICAL
            assert entry.description == "DELETE /api/users/9 -> 403"

        asyncio.run(scenario())

    def test_anonymous_request(self) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            await engine.audit_request(None, "GET", "/api/reports", 401)
            [entry] = await engine.audit.get_entries()
            await engine.shutdown()
            assert entry.user_id == "anonymous"

        asyncio.run(scenario())

    def test_skipped_paths_are_not_audited(self) -> None:
        async def scenario() -> None:
            engine = ComplianceEngine()
            assert await engine.audit_request(None, "GET", "/api/health", 200) is None
            assert await engine.audit_request(None, "GET", "/_next/static/chunk.js", 200) is None
            assert await engine.audit.get_entries() == []
            await engine.shutdown()

        asyncio.run(scenario())
