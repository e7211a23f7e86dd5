# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Mapping, TypeVar

from aumos_compliance.audit.logger import AuditTrailLogger
from aumos_compliance.audit.outbox import ErrorHandler
from aumos_compliance.audit.record import AuditEntryInput
from aumos_compliance.catalog.manager import PermissionCatalog
from aumos_compliance.catalog.permission import CatalogSnapshot, Permission
from aumos_compliance.classification import extract_resource_id, should_audit
from aumos_compliance.config import ComplianceConfig
from aumos_compliance.errors import AumOSComplianceError, StorageUnavailable
from aumos_compliance.guard import (
    SUPER_ADMIN_ONLY,
    ActorIdentity,
    AuthorizationDecision,
    AuthorizationGuard,
    PermissionRequirement,
)
from aumos_compliance.security.encryption import Encryptor
from aumos_compliance.storage.interface import ComplianceStorage
from aumos_compliance.storage.memory import MemoryStorage
from aumos_compliance.types import Role

logger = logging.getLogger("aumos.compliance")

T = TypeVar("T")

ANONYMOUS_USER_ID = "anonymous"


class ComplianceEngine:
    """
    Composes the PermissionCatalog, AuthorizationGuard and AuditTrailLogger
    around one storage backend.

    Build one engine per process and pass it to whatever needs it; there are
    no module-level singletons. Call :meth:`start` before serving requests
    and :meth:`shutdown` when stopping.

    Catalog edits made through the engine are checked for super_admin
    authority, persisted through the storage backend (rolled back in memory
    if the save fails) and recorded as system-change entries.

    Example::

        engine = ComplianceEngine(storage=FileStorage("audit.ndjson"))
        await engine.start()

        admin = ActorIdentity(id="u-1", name="Root", role="super_admin")
        await engine.update_role_permissions(admin, "auditor", ["view_logs"])
        engine.require(
            ActorIdentity(id="u-2", role="auditor"),
            PermissionRequirement(required_permissions=frozenset({"view_logs"})),
        )

        await engine.shutdown()
    """

    def __init__(
        self,
        config: ComplianceConfig | None = None,
        storage: ComplianceStorage | None = None,
        encryptor: Encryptor | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        cfg = config or ComplianceConfig()
        self._config = cfg
        self.storage: ComplianceStorage = storage or MemoryStorage()
        self.catalog = PermissionCatalog(cfg.catalog)
        self.guard = AuthorizationGuard(self.catalog)
        self.audit = AuditTrailLogger(
            self.storage,
            cfg.audit,
            encryptor=encryptor,
            error_handler=error_handler,
        )
        self._catalog_lock = asyncio.Lock()

    @property
    def config(self) -> ComplianceConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Load the permission catalog and start the audit outbox.

        When the store holds no catalog and ``seed_defaults`` is set, the
        default catalog is saved so later starts load it back.

        Raises:
            StorageUnavailable: If the catalog cannot be loaded or seeded.
        """
        try:
            stored = await self.storage.load_catalog()
        except AumOSComplianceError:
            raise
        except Exception as exc:
            raise StorageUnavailable(f"Could not load the permission catalog: {exc}") from exc

        if stored is not None:
            self.catalog.load(stored)
        elif self._config.catalog.seed_defaults:
            try:
                await self.storage.save_catalog(self.catalog.snapshot())
            except Exception as exc:
                raise StorageUnavailable(f"Could not seed the permission catalog: {exc}") from exc
            logger.info("catalog_seeded", extra={"permission_count": self.catalog.count()})

        await self.audit.start()
        logger.info("compliance_engine_started", extra={"permission_count": self.catalog.count()})

    async def shutdown(self) -> None:
        """Flush pending audit entries and stop the outbox worker."""
        await self.audit.shutdown()
        logger.info("compliance_engine_stopped")

    def health(self) -> dict[str, Any]:
        """Return a JSON-serialisable health summary."""
        return {
            "status": "ok",
            "permissions": self.catalog.count(),
            "outbox": self.audit.outbox_stats().model_dump(by_alias=True),
        }

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(
        self,
        identity: ActorIdentity | None,
        requirement: PermissionRequirement | None = None,
    ) -> AuthorizationDecision:
        """Return the guard's decision without raising."""
        return self.guard.check(identity, requirement)

    def require(
        self,
        identity: ActorIdentity | None,
        requirement: PermissionRequirement | None = None,
    ) -> ActorIdentity:
        """Return ``identity`` if authorised, otherwise raise."""
        return self.guard.require(identity, requirement)

    # ------------------------------------------------------------------
    # Request auditing
    # ------------------------------------------------------------------

    async def audit_request(
        self,
        identity: ActorIdentity | None,
        method: str,
        path: str,
        status_code: int,
        ip_address: str = "",
        user_agent: str = "",
        session_id: str = "",
        metadata: Mapping[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> str | None:
        """
        Record an observed request, whether it was allowed or denied.

        Static assets, health checks and session polling are skipped.

        Returns:
            The entry id, or None when the path is not audited.
        """
        if not should_audit(path):
            return None
        return await self.audit.log_entry(
            AuditEntryInput(
                user_id=identity.id if identity else ANONYMOUS_USER_ID,
                user_name=identity.name if identity else "",
                user_role=identity.role if identity else "",
                session_id=session_id or (identity.id if identity else ""),
                resource_id=extract_resource_id(path),
                ip_address=ip_address,
                user_agent=user_agent,
                endpoint=path,
                method=method,
                status_code=status_code,
                description=f"{method.upper()} {path} -> {status_code}",
                metadata=dict(metadata or {}),
                correlation_id=correlation_id,
            )
        )

    # ------------------------------------------------------------------
    # Catalog edits
    # ------------------------------------------------------------------

    async def create_permission(self, actor: ActorIdentity, permission: Permission) -> Permission:
        """Add a permission on behalf of ``actor``."""
        created = await self._edit_catalog(actor, lambda: self.catalog.add_permission(permission))
        await self.audit.log_system_change(
            actor,
            "permissions",
            created.id,
            before_state=None,
            after_state=created.model_dump(by_alias=True),
            metadata={"permission_id": created.id, "operation": "create"},
        )
        return created

    async def update_permission(self, actor: ActorIdentity, permission: Permission) -> Permission:
        """Update a permission's name, description and category on behalf of ``actor``."""

        def edit() -> tuple[Permission | None, Permission]:
            before = self.catalog.get_permission_by_id(permission.id)
            return before, self.catalog.update_permission(permission)

        before, updated = await self._edit_catalog(actor, edit)
        await self.audit.log_system_change(
            actor,
            "permissions",
            updated.id,
            before_state=before.model_dump(by_alias=True) if before else None,
            after_state=updated.model_dump(by_alias=True),
            metadata={"permission_id": updated.id, "operation": "update"},
        )
        return updated

    async def delete_permission(self, actor: ActorIdentity, permission_id: str) -> Permission:
        """Delete a permission, and strip it from every role, on behalf of ``actor``."""
        deleted = await self._edit_catalog(actor, lambda: self.catalog.delete_permission(permission_id))
        await self.audit.log_system_change(
            actor,
            "permissions",
            permission_id,
            before_state=deleted.model_dump(by_alias=True),
            after_state=None,
            metadata={"permission_id": permission_id, "operation": "delete"},
        )
        return deleted

    async def update_role_permissions(
        self,
        actor: ActorIdentity,
        role: Role | str,
        permission_ids: Iterable[str],
    ) -> frozenset[str]:
        """Replace ``role``'s permission set on behalf of ``actor``."""
        requested = list(permission_ids)

        def edit() -> tuple[list[str], frozenset[str]]:
            before = sorted(self.catalog.get_role_permissions(role))
            return before, self.catalog.update_role_permissions(role, requested)

        before, granted = await self._edit_catalog(actor, edit)
        role_name = role.value if isinstance(role, Role) else str(role)
        await self.audit.log_system_change(
            actor,
            "roles",
            role_name,
            before_state=before,
            after_state=sorted(granted),
            metadata={"role": role_name, "operation": "update"},
        )
        return granted

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _edit_catalog(self, actor: ActorIdentity, edit: Callable[[], T]) -> T:
        self.guard.require(actor, SUPER_ADMIN_ONLY)
        async with self._catalog_lock:
            previous = self.catalog.snapshot()
            result = edit()
            await self._save_or_rollback(previous)
        return result

    async def _save_or_rollback(self, previous: CatalogSnapshot) -> None:
        try:
            await self.storage.save_catalog(self.catalog.snapshot())
        except Exception as exc:
            self.catalog.load(previous)
            logger.error("catalog_save_failed", extra={"error": str(exc)})
            raise StorageUnavailable(f"Could not save the permission catalog: {exc}") from exc
