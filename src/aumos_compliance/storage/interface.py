# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Abstract base class that every storage backend must implement.

Implementations must guarantee append-only semantics for entries: records
written through ``append`` are never altered or deleted by the storage layer.
The permission catalog, by contrast, is saved and loaded as a whole.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from aumos_compliance.audit.query import AuditTrailFilter
from aumos_compliance.audit.record import AuditTrailEntry
from aumos_compliance.catalog.permission import CatalogSnapshot


class ComplianceStorage(ABC):
    """
    Contract for audit entry and permission catalog persistence.

    Any exception raised by a backend is treated as the store being
    unavailable: reads surface it as ``StorageUnavailable``, writes from the
    audit outbox are retried and then reported.
    """

    @abstractmethod
    async def append(self, entry: AuditTrailEntry) -> None:
        """
        Persist a fully-formed entry without modifying it.

        An id that is already stored must not be stored a second time.
        """
        ...

    @abstractmethod
    async def query(self, audit_filter: AuditTrailFilter) -> list[AuditTrailEntry]:
        """Return entries matching ``audit_filter``, newest first, paginated."""
        ...

    @abstractmethod
    async def all(self) -> list[AuditTrailEntry]:
        """Return every entry in the store, in insertion order."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of entries in the store."""
        ...

    @abstractmethod
    async def load_catalog(self) -> CatalogSnapshot | None:
        """Return the saved permission catalog, or None if nothing was saved yet."""
        ...

    @abstractmethod
    async def save_catalog(self, snapshot: CatalogSnapshot) -> None:
        """Replace the saved permission catalog with ``snapshot``."""
        ...
