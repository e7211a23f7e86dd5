# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Basic compliance example.

Builds a ComplianceEngine on an NDJSON file store, edits the permission
catalog as a super admin, authorises a few requests and prints what the
audit trail recorded.

Run with:
    python examples/basic_compliance.py
"""
from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path

from aumos_compliance import (
    ActorIdentity,
    AesGcmEncryptor,
    AuditTrailFilter,
    AuthorizationError,
    ComplianceEngine,
    FileStorage,
    Permission,
    PermissionRequirement,
    RiskLevel,
)


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")

    # ------------------------------------------------------------------ #
    # 1. Build the engine on a file store
    # ------------------------------------------------------------------ #
    workdir = Path(tempfile.mkdtemp(prefix="aumos-compliance-"))
    engine = ComplianceEngine(
        storage=FileStorage(workdir / "audit.ndjson"),
        encryptor=AesGcmEncryptor(AesGcmEncryptor.generate_key()),
    )
    await engine.start()

    root = ActorIdentity(id="u-1", name="Root", role="super_admin")
    ada = ActorIdentity(id="u-2", name="Ada", role="auditor")
    carl = ActorIdentity(id="u-3", name="Carl", role="client")

    # ------------------------------------------------------------------ #
    # 2. Edit the catalog
    # ------------------------------------------------------------------ #
    await engine.create_permission(
        root,
        Permission(
            id="review_evidence",
            name="Review Evidence",
            description="Review evidence uploaded by departments",
            category="audit",
        ),
    )
    await engine.update_role_permissions(root, "auditor", ["view_logs", "review_evidence"])

    # ------------------------------------------------------------------ #
    # 3. Authorise and audit requests
    # ------------------------------------------------------------------ #
    print("=== Authorization ===")
    review = PermissionRequirement(required_permissions=frozenset({"review_evidence"}))
    for actor, method, path in (
        (ada, "GET", "/api/documents/42"),
        (carl, "DELETE", "/api/documents/42"),
    ):
        decision = engine.authorize(actor, review)
        print(f"  {actor.name:<5} {method:<6} {path}: {decision.reason}")
        await engine.audit_request(actor, method, path, decision.status_code)

    try:
        engine.require(carl, review)
    except AuthorizationError as exc:
        print(f"  require() raised: {exc.message}")

    # ------------------------------------------------------------------ #
    # 4. Inspect the trail
    # ------------------------------------------------------------------ #
    await engine.audit.flush()
    print()
    print("=== High-risk entries ===")
    for entry in await engine.audit.get_entries(AuditTrailFilter(risk_level=RiskLevel.HIGH)):
        print(f"  {entry.timestamp:%H:%M:%S} {entry.user_id} {entry.action} {entry.endpoint}")

    stats = await engine.audit.get_stats()
    print()
    print("=== Stats ===")
    print(f"  total: {stats.total_entries}")
    print(f"  by risk: {stats.entries_by_risk_level}")
    print(f"  compliance relevant: {stats.compliance_relevant_count}")
    print(f"  files in {workdir}: {sorted(p.name for p in workdir.iterdir())}")

    await engine.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
