# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
aumos-compliance: audit trail classification and role-based authorization.

Quick start::

    import asyncio

    from aumos_compliance import ActorIdentity, AuditEntryInput, ComplianceEngine

    async def main() -> None:
        engine = ComplianceEngine()
        await engine.start()

        auditor = ActorIdentity(id="u-7", name="Ada", role="auditor")
        engine.require(auditor)
        await engine.audit.log_entry(AuditEntryInput(
            user_id=auditor.id,
            user_role=auditor.role,
            method="DELETE",
            endpoint="/api/documents/42",
        ))
        stats = await engine.audit.get_stats()
        print(stats.entries_by_risk_level)  # {'low': 0, 'medium': 0, 'high': 1, 'critical': 0}

        await engine.shutdown()

    asyncio.run(main())
"""
from __future__ import annotations

from aumos_compliance.audit.logger import AuditTrailLogger
from aumos_compliance.audit.outbox import AuditOutbox, OutboxStats, PersistenceFailure
from aumos_compliance.audit.query import AuditTrailFilter, AuditTrailStats, TimeRange
from aumos_compliance.audit.record import AuditEntryInput, AuditTrailEntry
from aumos_compliance.catalog.manager import PermissionCatalog
from aumos_compliance.catalog.permission import CatalogSnapshot, Permission, RolePermissions
from aumos_compliance.classification import Classification, classify, should_audit
from aumos_compliance.config import (
    AuditConfig,
    CatalogConfig,
    ComplianceConfig,
    HttpConfig,
    OutboxConfig,
)
from aumos_compliance.engine import ComplianceEngine
from aumos_compliance.errors import (
    AumOSComplianceError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ForbiddenSystemMutation,
    NotFoundError,
    StorageUnavailable,
    ValidationError,
)
from aumos_compliance.guard import (
    ActorIdentity,
    AuthorizationDecision,
    AuthorizationGuard,
    PermissionRequirement,
)
from aumos_compliance.security.encryption import AesGcmEncryptor, EncryptedEnvelope, Encryptor
from aumos_compliance.storage import ComplianceStorage, FileStorage, MemoryStorage
from aumos_compliance.types import (
    ADMIN_ROLES,
    ROLE_VALUES,
    DataClassification,
    RiskLevel,
    Role,
)

__version__ = "0.1.0"

__all__ = [
    # Core types
    "RiskLevel",
    "DataClassification",
    "Role",
    "ROLE_VALUES",
    "ADMIN_ROLES",
    # Configuration
    "ComplianceConfig",
    "AuditConfig",
    "OutboxConfig",
    "CatalogConfig",
    "HttpConfig",
    # Engine
    "ComplianceEngine",
    # Classification
    "Classification",
    "classify",
    "should_audit",
    # Audit
    "AuditTrailLogger",
    "AuditTrailEntry",
    "AuditEntryInput",
    "AuditTrailFilter",
    "AuditTrailStats",
    "TimeRange",
    "AuditOutbox",
    "OutboxStats",
    "PersistenceFailure",
    # Catalog and guard
    "PermissionCatalog",
    "Permission",
    "RolePermissions",
    "CatalogSnapshot",
    "AuthorizationGuard",
    "ActorIdentity",
    "PermissionRequirement",
    "AuthorizationDecision",
    # Storage and encryption
    "ComplianceStorage",
    "MemoryStorage",
    "FileStorage",
    "Encryptor",
    "AesGcmEncryptor",
    "EncryptedEnvelope",
    # Errors
    "AumOSComplianceError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ForbiddenSystemMutation",
    "NotFoundError",
    "ConflictError",
    "StorageUnavailable",
    "__version__",
]
