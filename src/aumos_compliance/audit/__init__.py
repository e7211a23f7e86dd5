# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from aumos_compliance.audit.outbox import AuditOutbox, OutboxStats, PersistenceFailure
from aumos_compliance.audit.query import (
    AuditTrailFilter,
    AuditTrailStats,
    TimeRange,
    apply_filter,
    compute_stats,
    entry_matches,
)
from aumos_compliance.audit.record import (
    AuditEntryInput,
    AuditTrailEntry,
    build_entry,
    generate_entry_id,
)

__all__ = [
    "AuditEntryInput",
    "AuditOutbox",
    "AuditTrailEntry",
    "AuditTrailFilter",
    "AuditTrailStats",
    "OutboxStats",
    "PersistenceFailure",
    "TimeRange",
    "apply_filter",
    "build_entry",
    "compute_stats",
    "entry_matches",
    "generate_entry_id",
]
