# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for AuthorizationGuard decisions and the raising ``require`` variant."""

from __future__ import annotations

import pytest

from aumos_compliance.catalog import PermissionCatalog
from aumos_compliance.errors import AuthenticationError, AuthorizationError
from aumos_compliance.guard import (
    ADMIN_TIER,
    SUPER_ADMIN_ONLY,
    ActorIdentity,
    AuthorizationGuard,
    PermissionRequirement,
)


def needs(*permission_ids: str, **kwargs: bool) -> PermissionRequirement:
    return PermissionRequirement(required_permissions=frozenset(permission_ids), **kwargs)


# ---------------------------------------------------------------------------
# TestCheck
# ---------------------------------------------------------------------------


class TestCheck:
    def test_missing_identity_is_unauthenticated(self, guard: AuthorizationGuard) -> None:
        decision = guard.check(None, needs("view_logs"))
        assert decision.allowed is False
        assert decision.reason == "unauthenticated"
        assert decision.status_code == 401

    def test_super_admin_bypasses_everything(
        self, guard: AuthorizationGuard, super_admin: ActorIdentity
    ) -> None:
        decision = guard.check(super_admin, needs("not_even_registered"))
        assert decision.allowed is True
        assert decision.reason == "super_admin"

    def test_super_admin_bypass_can_be_disabled(
        self, guard: AuthorizationGuard, super_admin: ActorIdentity
    ) -> None:
        requirement = PermissionRequirement(
            required_roles=frozenset({"auditor"}),
            allow_super_admin=False,
        )
        decision = guard.check(super_admin, requirement)
        assert decision.allowed is False
        assert decision.reason == "insufficient_role"

    def test_admin_access_lets_admin_tier_through(
        self, guard: AuthorizationGuard, auditor: ActorIdentity
    ) -> None:
        decision = guard.check(auditor, needs("manage_users", allow_admin_access=True))
        assert decision.allowed is True
        assert decision.reason == "admin_access"

    def test_admin_access_does_not_cover_clients(
        self, guard: AuthorizationGuard, client_user: ActorIdentity
    ) -> None:
        decision = guard.check(client_user, needs("manage_users", allow_admin_access=True))
        assert decision.allowed is False
        assert decision.reason == "insufficient_permission"

    def test_role_outside_required_roles_is_denied(
        self, guard: AuthorizationGuard, client_user: ActorIdentity
    ) -> None:
        decision = guard.check(client_user, ADMIN_TIER)
        assert decision.allowed is False
        assert decision.reason == "insufficient_role"
        assert decision.status_code == 403

    def test_missing_permission_is_denied(
        self, guard: AuthorizationGuard, auditor: ActorIdentity
    ) -> None:
        decision = guard.check(auditor, needs("view_logs", "manage_users"))
        assert decision.allowed is False
        assert decision.reason == "insufficient_permission"

    def test_held_permissions_are_granted(
        self, guard: AuthorizationGuard, auditor: ActorIdentity
    ) -> None:
        decision = guard.check(auditor, needs("view_logs", "upload_evidence"))
        assert decision.allowed is True
        assert decision.reason == "granted"
        assert decision.identity == auditor

    def test_asserted_permissions_are_not_trusted(self, guard: AuthorizationGuard) -> None:
        actor = ActorIdentity(id="u-x", role="client", permissions=frozenset({"manage_users"}))
        assert guard.check(actor, needs("manage_users")).allowed is False

    def test_unknown_role_holds_nothing(self, guard: AuthorizationGuard) -> None:
        actor = ActorIdentity(id="u-x", role="janitor")
        assert guard.check(actor, needs("view_logs")).allowed is False
        assert guard.check(actor).allowed is True

    def test_decision_follows_catalog_changes(
        self, guard: AuthorizationGuard, auditor: ActorIdentity, catalog: PermissionCatalog
    ) -> None:
        assert guard.check(auditor, needs("view_reports")).allowed is False
        catalog.update_role_permissions("auditor", ["view_reports"])
        assert guard.check(auditor, needs("view_reports")).allowed is True


# ---------------------------------------------------------------------------
# TestRequire
# ---------------------------------------------------------------------------


class TestRequire:
    def test_returns_identity_when_allowed(
        self, guard: AuthorizationGuard, super_admin: ActorIdentity
    ) -> None:
        assert guard.require(super_admin, SUPER_ADMIN_ONLY) is super_admin

    def test_raises_authentication_error_without_identity(self, guard: AuthorizationGuard) -> None:
        with pytest.raises(AuthenticationError):
            guard.require(None)

    def test_denial_message_does_not_name_permission(
        self, guard: AuthorizationGuard, auditor: ActorIdentity
    ) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            guard.require(auditor, needs("manage_users"))
        assert exc_info.value.reason == "insufficient_permission"
        assert "manage_users" not in str(exc_info.value)
        assert exc_info.value.http_status == 403

    def test_only_super_admin_passes_super_admin_only(
        self, guard: AuthorizationGuard, auditor: ActorIdentity
    ) -> None:
        with pytest.raises(AuthorizationError):
            guard.require(auditor, SUPER_ADMIN_ONLY)
