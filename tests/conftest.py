# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for aumos-compliance tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from aumos_compliance.audit.record import AuditEntryInput, AuditTrailEntry
from aumos_compliance.catalog.manager import PermissionCatalog
from aumos_compliance.catalog.permission import CatalogSnapshot, Permission
from aumos_compliance.errors import StorageUnavailable
from aumos_compliance.guard import ActorIdentity, AuthorizationGuard
from aumos_compliance.storage.memory import MemoryStorage


class FlakyStorage(MemoryStorage):
    """MemoryStorage whose writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_appends = False
        self.fail_saves = False
        self.append_calls = 0

    async def append(self, entry: AuditTrailEntry) -> None:
        self.append_calls += 1
        if self.fail_appends:
            raise ConnectionError("store offline")
        await super().append(entry)

    async def save_catalog(self, snapshot: CatalogSnapshot) -> None:
        if self.fail_saves:
            raise StorageUnavailable("catalog store offline")
        await super().save_catalog(snapshot)


@pytest.fixture
def catalog() -> PermissionCatalog:
    """A catalog seeded with the default permissions and role mappings."""
    return PermissionCatalog()


@pytest.fixture
def guard(catalog: PermissionCatalog) -> AuthorizationGuard:
    return AuthorizationGuard(catalog)


@pytest.fixture
def widget_permission() -> Permission:
    return Permission(
        id="manage_widgets",
        name="Manage Widgets",
        description="Create and delete widgets",
        category="widgets",
    )


@pytest.fixture
def super_admin() -> ActorIdentity:
    return ActorIdentity(id="u-root", name="Root", role="super_admin")


@pytest.fixture
def auditor() -> ActorIdentity:
    return ActorIdentity(id="u-aud", name="Ada", role="auditor")


@pytest.fixture
def client_user() -> ActorIdentity:
    return ActorIdentity(id="u-cli", name="Carl", role="client")


@pytest.fixture
def flaky_storage() -> FlakyStorage:
    return FlakyStorage()


@pytest.fixture
def make_input() -> Callable[..., AuditEntryInput]:
    """Factory for AuditEntryInput objects acting as user u-aud (auditor)."""

    def build(method: str, endpoint: str, **overrides: Any) -> AuditEntryInput:
        fields: dict[str, Any] = {
            "user_id": "u-aud",
            "user_role": "auditor",
            "method": method,
            "endpoint": endpoint,
        }
        fields.update(overrides)
        return AuditEntryInput(**fields)

    return build
