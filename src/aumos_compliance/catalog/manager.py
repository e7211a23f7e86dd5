# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from aumos_compliance.catalog.defaults import default_catalog
from aumos_compliance.catalog.permission import CatalogSnapshot, Permission, RolePermissions
from aumos_compliance.config import CatalogConfig
from aumos_compliance.errors import (
    ConflictError,
    ForbiddenSystemMutation,
    NotFoundError,
    ValidationError,
)
from aumos_compliance.types import Role

logger = logging.getLogger("aumos.compliance.catalog")

_PERMISSION_ID_PATTERN = re.compile(r"[a-z_]+")


@dataclass(frozen=True)
class _CatalogState:
    """Immutable view of the catalog; replaced wholesale on every write."""

    permissions: Mapping[str, Permission]
    roles: Mapping[Role, frozenset[str]]


def _freeze(
    permissions: dict[str, Permission],
    roles: dict[Role, frozenset[str]],
) -> _CatalogState:
    return _CatalogState(
        permissions=MappingProxyType(permissions),
        roles=MappingProxyType(roles),
    )


class PermissionCatalog:
    """
    Single source of truth for permissions and the role → permission map.

    Writes are serialised by a lock and publish a new immutable state;
    reads grab the current state reference and never block. No write can
    leave a role pointing at a permission id that is not in the catalog.

    The ``super_admin`` role is never stored: it implicitly holds every
    permission and cannot be edited.

    Example::

        catalog = PermissionCatalog()
        catalog.add_permission(Permission(
            id="manage_widgets",
            name="Manage Widgets",
            description="Create and delete widgets",
            category="widgets",
        ))
        catalog.update_role_permissions("auditor", ["view_logs", "manage_widgets"])
        assert catalog.has_permission("auditor", "manage_widgets")
    """

    def __init__(
        self,
        config: CatalogConfig | None = None,
        snapshot: CatalogSnapshot | None = None,
    ) -> None:
        self._config = config or CatalogConfig()
        self._lock = threading.Lock()
        self._state = _freeze({}, {})
        if snapshot is not None:
            self.load(snapshot)
        elif self._config.seed_defaults:
            self.load(default_catalog())

    # ------------------------------------------------------------------
    # Permission reads
    # ------------------------------------------------------------------

    def get_all_permissions(self) -> list[Permission]:
        """Return every permission in insertion order."""
        return list(self._state.permissions.values())

    def get_permission_by_id(self, permission_id: str) -> Permission | None:
        """Return the permission with ``permission_id``, or None."""
        return self._state.permissions.get(permission_id)

    def get_permissions_by_category(self, category: str) -> list[Permission]:
        """Return every permission in ``category``."""
        return [p for p in self._state.permissions.values() if p.category == category]

    def get_permission_categories(self) -> list[str]:
        """Return the distinct categories, sorted."""
        return sorted({p.category for p in self._state.permissions.values()})

    # ------------------------------------------------------------------
    # Permission writes
    # ------------------------------------------------------------------

    def validate_permission_structure(
        self,
        permission: Permission,
        for_insert: bool = False,
    ) -> list[str]:
        """
        Check a permission payload and return every violated rule.

        Args:
            permission: The payload to check.
            for_insert: When True, the id must not already exist.

        Returns:
            A list of human-readable violations; empty when the payload is valid.
        """
        violations: list[str] = []
        permission_id = (permission.id or "").strip()

        if not permission_id:
            violations.append("Permission ID is required")
        if not (permission.name or "").strip():
            violations.append("Permission name is required")
        if not (permission.description or "").strip():
            violations.append("Permission description is required")
        if not (permission.category or "").strip():
            violations.append("Permission category is required")
        if permission_id and not _PERMISSION_ID_PATTERN.fullmatch(permission.id):
            violations.append("Permission ID must contain only lowercase letters and underscores")
        if for_insert and permission_id and permission.id in self._state.permissions:
            violations.append(f"Permission ID '{permission.id}' is already in use")

        return violations

    def add_permission(self, permission: Permission) -> Permission:
        """
        Insert a new permission.

        Raises:
            ConflictError: If a permission with the same id exists.
            ValidationError: If the payload violates any structural rule.
        """
        with self._lock:
            state = self._state
            if permission.id in state.permissions:
                raise ConflictError(permission.id)

            violations = self.validate_permission_structure(permission, for_insert=True)
            if violations:
                raise ValidationError(violations, message="Invalid permission payload.")

            permissions = dict(state.permissions)
            permissions[permission.id] = permission
            self._state = _freeze(permissions, dict(state.roles))

        logger.info(
            "permission_added",
            extra={"permission_id": permission.id, "system": permission.is_system_permission},
        )
        return permission

    def update_permission(self, permission: Permission) -> Permission:
        """
        Replace the name, description and category of an existing permission.

        The id and the system flag of the stored record are preserved.

        Raises:
            ForbiddenSystemMutation: If the stored record is a system permission.
            NotFoundError: If no permission has this id.
            ValidationError: If the payload violates any structural rule.
        """
        with self._lock:
            state = self._state
            existing = state.permissions.get(permission.id)
            if existing is not None and existing.is_system_permission:
                raise ForbiddenSystemMutation(f"permission:{permission.id}")
            if existing is None:
                raise NotFoundError("Permission", permission.id)

            violations = self.validate_permission_structure(permission)
            if violations:
                raise ValidationError(violations, message="Invalid permission payload.")

            updated = existing.model_copy(
                update={
                    "name": permission.name,
                    "description": permission.description,
                    "category": permission.category,
                }
            )
            permissions = dict(state.permissions)
            permissions[updated.id] = updated
            self._state = _freeze(permissions, dict(state.roles))

        logger.info("permission_updated", extra={"permission_id": updated.id})
        return updated

    def delete_permission(self, permission_id: str) -> Permission:
        """
        Remove a permission and strip it from every role.

        Returns:
            The removed :class:`Permission`.

        Raises:
            ForbiddenSystemMutation: If the permission is a system permission.
            NotFoundError: If no permission has this id.
        """
        with self._lock:
            state = self._state
            existing = state.permissions.get(permission_id)
            if existing is not None and existing.is_system_permission:
                raise ForbiddenSystemMutation(f"permission:{permission_id}")
            if existing is None:
                raise NotFoundError("Permission", permission_id)

            permissions = {k: v for k, v in state.permissions.items() if k != permission_id}
            roles = {role: ids - {permission_id} for role, ids in state.roles.items()}
            self._state = _freeze(permissions, roles)

        logger.info("permission_deleted", extra={"permission_id": permission_id})
        return existing

    # ------------------------------------------------------------------
    # Role mapping
    # ------------------------------------------------------------------

    def get_role_permissions(self, role: Role | str) -> frozenset[str]:
        """
        Return the permission ids granted to ``role``.

        ``super_admin`` yields every id in the catalog; unknown roles yield
        an empty set.
        """
        parsed = Role.parse(role)
        state = self._state
        if parsed is Role.SUPER_ADMIN:
            return frozenset(state.permissions)
        if parsed is None:
            return frozenset()
        return state.roles.get(parsed, frozenset())

    def update_role_permissions(
        self,
        role: Role | str,
        permission_ids: Iterable[str],
    ) -> frozenset[str]:
        """
        Replace the permission set of ``role`` wholesale.

        Raises:
            ForbiddenSystemMutation: If ``role`` is ``super_admin``.
            ValidationError: If the role is unknown or any id is not in the catalog.
        """
        parsed = Role.parse(role)
        if parsed is Role.SUPER_ADMIN:
            raise ForbiddenSystemMutation(f"role:{Role.SUPER_ADMIN.value}")

        requested = list(dict.fromkeys(permission_ids))
        with self._lock:
            state = self._state
            violations: list[str] = []
            if parsed is None:
                violations.append(f"Unknown role '{role}'")
            for permission_id in requested:
                if permission_id not in state.permissions:
                    violations.append(f"Unknown permission id '{permission_id}'")
            if violations:
                raise ValidationError(violations, message="Invalid role permissions.")

            assert parsed is not None  # noqa: S101
            granted = frozenset(requested)
            roles = dict(state.roles)
            roles[parsed] = granted
            self._state = _freeze(dict(state.permissions), roles)

        logger.info(
            "role_permissions_updated",
            extra={"role": parsed.value, "permission_count": len(granted)},
        )
        return granted

    def list_role_permissions(self) -> list[RolePermissions]:
        """Return the mapping for every role, super_admin included."""
        return [
            RolePermissions(role=role.value, permissions=sorted(self.get_role_permissions(role)))
            for role in Role
        ]

    def has_permission(self, role: Role | str, permission_id: str) -> bool:
        """
        Return True if ``role`` holds ``permission_id``.

        Always True for ``super_admin``, without checking that the id exists.
        """
        if Role.parse(role) is Role.SUPER_ADMIN:
            return True
        return permission_id in self.get_role_permissions(role)

    def has_any_permission(self, role: Role | str, permission_ids: Iterable[str]) -> bool:
        """Return True if ``role`` holds at least one of ``permission_ids``."""
        return any(self.has_permission(role, p) for p in permission_ids)

    def has_all_permissions(self, role: Role | str, permission_ids: Iterable[str]) -> bool:
        """Return True if ``role`` holds every one of ``permission_ids``."""
        return all(self.has_permission(role, p) for p in permission_ids)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> CatalogSnapshot:
        """Return the current state as a serialisable :class:`CatalogSnapshot`."""
        state = self._state
        return CatalogSnapshot(
            permissions=list(state.permissions.values()),
            role_permissions={role.value: sorted(ids) for role, ids in state.roles.items()},
        )

    def load(self, snapshot: CatalogSnapshot) -> None:
        """
        Replace the whole catalog with ``snapshot``.

        Stored super_admin sets, unknown roles and references to missing
        permissions are dropped with a warning.
        """
        permissions: dict[str, Permission] = {}
        for permission in snapshot.permissions:
            permissions[permission.id] = permission

        roles: dict[Role, frozenset[str]] = {}
        for role_name, ids in snapshot.role_permissions.items():
            parsed = Role.parse(role_name)
            if parsed is None or parsed is Role.SUPER_ADMIN:
                logger.warning("catalog_role_ignored", extra={"role": role_name})
                continue
            dangling = [i for i in ids if i not in permissions]
            if dangling:
                logger.warning(
                    "catalog_dangling_references_pruned",
                    extra={"role": role_name, "permission_ids": dangling},
                )
            roles[parsed] = frozenset(i for i in ids if i in permissions)

        with self._lock:
            self._state = _freeze(permissions, roles)

    def count(self) -> int:
        """Return the number of permissions in the catalog."""
        return len(self._state.permissions)
