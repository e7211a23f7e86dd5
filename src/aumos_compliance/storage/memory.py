# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Volatile in-memory storage backend.

Entries are held in a plain list in insertion order. Suitable for testing,
short-lived processes, and deployments that ship entries elsewhere. Data is
lost when the process exits. Appending an id that is already stored is a
no-op.
"""
from __future__ import annotations

from aumos_compliance.audit.query import AuditTrailFilter, apply_filter
from aumos_compliance.audit.record import AuditTrailEntry
from aumos_compliance.catalog.permission import CatalogSnapshot
from aumos_compliance.storage.interface import ComplianceStorage


class MemoryStorage(ComplianceStorage):
    """In-memory, non-persistent ComplianceStorage implementation."""

    def __init__(self) -> None:
        self._entries: list[AuditTrailEntry] = []
        self._ids: set[str] = set()
        self._catalog: CatalogSnapshot | None = None

    async def append(self, entry: AuditTrailEntry) -> None:
        if entry.id in self._ids:
            return
        self._ids.add(entry.id)
        self._entries.append(entry)

    async def query(self, audit_filter: AuditTrailFilter) -> list[AuditTrailEntry]:
        return apply_filter(self._entries, audit_filter)

    async def all(self) -> list[AuditTrailEntry]:
        return list(self._entries)

    async def count(self) -> int:
        return len(self._entries)

    async def load_catalog(self) -> CatalogSnapshot | None:
        return self._catalog

    async def save_catalog(self, snapshot: CatalogSnapshot) -> None:
        self._catalog = snapshot
