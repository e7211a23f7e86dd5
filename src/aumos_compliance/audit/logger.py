# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from aumos_compliance.audit.outbox import AuditOutbox, ErrorHandler, OutboxStats, PersistenceFailure
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
from aumos_compliance.classification import determine_data_access_risk
from aumos_compliance.config import AuditConfig
from aumos_compliance.errors import AumOSComplianceError, StorageUnavailable
from aumos_compliance.guard import ActorIdentity
from aumos_compliance.security.encryption import Encryptor, open_value, seal_value
from aumos_compliance.storage.interface import ComplianceStorage
from aumos_compliance.storage.memory import MemoryStorage
from aumos_compliance.types import (
    DataAccessAction,
    DataClassification,
    RiskLevel,
)

logger = logging.getLogger("aumos.compliance.audit")

_ACTION_METHODS: dict[str, str] = {
    DataAccessAction.READ: "GET",
    DataAccessAction.CREATE: "POST",
    DataAccessAction.UPDATE: "PUT",
    DataAccessAction.DELETE: "DELETE",
    DataAccessAction.EXPORT: "GET",
}

_STATE_FIELDS = ("before_state", "after_state")


class AuditTrailLogger:
    """
    Classifies, records and queries audit trail entries.

    Logging is fire-and-forget: :meth:`log_entry` builds the entry, hands it
    to an :class:`AuditOutbox` and returns the id without waiting for the
    store. Entries still waiting in the outbox are visible to
    :meth:`get_entries` and :meth:`get_stats`, so reads observe every entry
    the logger has accepted.

    Logging methods never raise. Query methods raise
    :class:`~aumos_compliance.errors.StorageUnavailable` when the store
    cannot be read.

    Example::

        audit = AuditTrailLogger(MemoryStorage())
        entry_id = await audit.log_entry(AuditEntryInput(
            user_id="u-1",
            user_role="auditor",
            method="DELETE",
            endpoint="/api/documents/42",
        ))
        entries = await audit.get_entries(AuditTrailFilter(user_id="u-1"))
    """

    def __init__(
        self,
        storage: ComplianceStorage | None = None,
        config: AuditConfig | None = None,
        encryptor: Encryptor | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self._storage: ComplianceStorage = storage or MemoryStorage()
        self._config = config or AuditConfig()
        self._encryptor = encryptor if self._config.encrypt_states else None
        self._error_handler = error_handler

        self._clock_lock = threading.Lock()
        self._last_timestamp: datetime | None = None
        self._pending: dict[str, AuditTrailEntry] = {}

        self._outbox = AuditOutbox(
            self._storage,
            self._config.outbox,
            error_handler=error_handler,
            on_settled=self._settled,
        )

    @property
    def storage(self) -> ComplianceStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the persistence worker on the running event loop."""
        await self._outbox.start()

    async def flush(self) -> None:
        """Wait until every accepted entry has been persisted or reported."""
        await self._outbox.drain()

    async def shutdown(self) -> None:
        """Flush the outbox and stop the persistence worker."""
        await self._outbox.shutdown()

    def outbox_stats(self) -> OutboxStats:
        """Return the outbox counters and queue depth."""
        return self._outbox.stats()

    def failures(self) -> list[PersistenceFailure]:
        """Return the most recent persistence failure reports."""
        return self._outbox.failures()

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    async def log_entry(self, partial: AuditEntryInput | Mapping[str, Any]) -> str:
        """
        Record an entry.

        Fills ``id`` and ``timestamp``, derives any missing classification
        field from ``(method, endpoint, user_role)``, encrypts the state
        fields when an encryptor is configured, and queues the entry for
        persistence.

        This method never raises. A failure is reported through the error
        channel and the best-effort id is still returned.

        Args:
            partial: An :class:`AuditEntryInput`, or a mapping using either
                snake_case or camelCase keys.

        Returns:
            The id assigned to the entry.
        """
        entry_id = generate_entry_id()
        try:
            data = (
                partial
                if isinstance(partial, AuditEntryInput)
                else AuditEntryInput.model_validate(partial)
            )
            entry = build_entry(data, entry_id, self._next_timestamp())
            entry = self._seal_states(entry)
            self._pending[entry.id] = entry
            self._outbox.submit(entry)
        except Exception as exc:  # noqa: BLE001
            self._pending.pop(entry_id, None)
            failure = PersistenceFailure(
                entry_id=entry_id,
                error=f"{type(exc).__name__}: {exc}",
                attempts=0,
                dropped=True,
            )
            logger.exception("audit_entry_rejected", extra={"entry_id": entry_id})
            if self._error_handler is not None:
                try:
                    self._error_handler(failure)
                except Exception:  # noqa: BLE001
                    logger.exception("audit_error_handler_failed", extra={"entry_id": entry_id})
        return entry_id

    async def log_data_access(
        self,
        actor: ActorIdentity,
        resource: str,
        resource_id: str,
        resource_type: str,
        action: str,
        ip_address: str = "",
        user_agent: str = "",
        session_id: str = "",
        data_classification: DataClassification = DataClassification.INTERNAL,
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        """
        Record a read-path or data-access event.

        Risk follows the action and tier: deleting restricted data is
        critical; exporting sensitive data or updating restricted data is
        high; any other access to restricted data is medium; everything else
        is low.

        Returns:
            The id assigned to the entry.
        """
        return await self.log_entry(
            AuditEntryInput(
                user_id=actor.id,
                user_name=actor.name,
                user_role=actor.role,
                session_id=session_id,
                action=action,
                resource=resource,
                resource_id=resource_id,
                resource_type=resource_type,
                ip_address=ip_address,
                user_agent=user_agent,
                endpoint=f"/api/{resource}/{resource_id}",
                method=_ACTION_METHODS.get(action, "GET"),
                risk_level=determine_data_access_risk(action, data_classification),
                compliance_relevant=data_classification.is_sensitive,
                data_classification=data_classification,
                description=f"User {action} {resource_type} {resource_id}",
                metadata=dict(metadata or {}),
                tags=frozenset({"data_access", data_classification.value}),
            )
        )

    async def log_authentication(
        self,
        actor: ActorIdentity,
        action: str,
        ip_address: str = "",
        user_agent: str = "",
        session_id: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        """
        Record a sign-in, sign-out, failed sign-in, password change or lockout.

        Failed sign-ins and lockouts are high risk; the rest are low.
        """
        risky = action in ("login_failed", "account_locked")
        return await self.log_entry(
            AuditEntryInput(
                user_id=actor.id,
                user_name=actor.name,
                user_role=actor.role,
                session_id=session_id,
                action=action,
                resource="authentication",
                resource_type="user_session",
                ip_address=ip_address,
                user_agent=user_agent,
                endpoint="/api/auth",
                method="POST",
                status_code=401 if action == "login_failed" else 200,
                risk_level=RiskLevel.HIGH if risky else RiskLevel.LOW,
                compliance_relevant=True,
                data_classification=DataClassification.CONFIDENTIAL,
                description=f"User {action} for {actor.name or actor.id}",
                metadata=dict(metadata or {}),
                tags=frozenset({"authentication", "security"}),
            )
        )

    async def log_system_change(
        self,
        actor: ActorIdentity,
        resource: str,
        resource_id: str,
        before_state: Any,
        after_state: Any,
        ip_address: str = "",
        user_agent: str = "",
        session_id: str = "",
        metadata: Mapping[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> str:
        """Record a configuration change with its before and after state."""
        return await self.log_entry(
            AuditEntryInput(
                user_id=actor.id,
                user_name=actor.name,
                user_role=actor.role,
                session_id=session_id,
                action="update",
                resource=resource,
                resource_id=resource_id,
                resource_type="system_configuration",
                before_state=before_state,
                after_state=after_state,
                ip_address=ip_address,
                user_agent=user_agent,
                endpoint=f"/api/{resource}/{resource_id}",
                method="PUT",
                risk_level=RiskLevel.HIGH,
                compliance_relevant=True,
                data_classification=DataClassification.CONFIDENTIAL,
                description=f"System configuration change: {resource} {resource_id}",
                metadata=dict(metadata or {}),
                tags=frozenset({"system_change", "configuration"}),
                correlation_id=correlation_id,
            )
        )

    async def log_security_event(
        self,
        actor: ActorIdentity,
        action: str,
        resource: str,
        risk_level: RiskLevel,
        ip_address: str = "",
        user_agent: str = "",
        session_id: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        """Record a security event at a caller-chosen risk level."""
        return await self.log_entry(
            AuditEntryInput(
                user_id=actor.id,
                user_name=actor.name,
                user_role=actor.role,
                session_id=session_id,
                action=action,
                resource=resource,
                resource_type="security_event",
                ip_address=ip_address,
                user_agent=user_agent,
                endpoint="/api/security",
                method="POST",
                risk_level=risk_level,
                compliance_relevant=True,
                data_classification=DataClassification.RESTRICTED,
                description=f"Security event: {action}",
                metadata=dict(metadata or {}),
                tags=frozenset({"security", "compliance"}),
            )
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_entries(self, audit_filter: AuditTrailFilter | None = None) -> list[AuditTrailEntry]:
        """
        Return entries matching ``audit_filter``, newest first.

        Returns an empty list when nothing matches.

        Raises:
            StorageUnavailable: If the store cannot be read.
        """
        effective = audit_filter or AuditTrailFilter(limit=self._config.default_limit)
        unpaginated = effective.unpaginated()
        # Snapshot before the store read: the worker may settle an entry meanwhile.
        pending = list(self._pending.values())
        try:
            stored = await self._storage.query(unpaginated)
        except AumOSComplianceError:
            raise
        except Exception as exc:
            raise StorageUnavailable(f"Audit store query failed: {exc}") from exc

        matching = [entry for entry in pending if entry_matches(entry, unpaginated)]
        return apply_filter(_merge(stored, matching), effective)

    async def get_stats(self, time_range: TimeRange | None = None) -> AuditTrailStats:
        """
        Aggregate every accepted entry, optionally within ``time_range``.

        Raises:
            StorageUnavailable: If the store cannot be read.
        """
        pending = list(self._pending.values())
        try:
            stored = await self._storage.all()
        except AumOSComplianceError:
            raise
        except Exception as exc:
            raise StorageUnavailable(f"Audit store read failed: {exc}") from exc
        return compute_stats(_merge(stored, pending), time_range)

    def reveal(self, entry: AuditTrailEntry) -> AuditTrailEntry:
        """
        Return a copy of ``entry`` with encrypted state fields decrypted.

        Entries without encrypted fields are returned unchanged.

        Raises:
            ValueError: If an envelope fails to decrypt.
        """
        if self._encryptor is None:
            return entry
        update = {
            name: open_value(self._encryptor, getattr(entry, name), f"audit:{name}")
            for name in _STATE_FIELDS
        }
        return entry.model_copy(update=update)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _next_timestamp(self) -> datetime:
        with self._clock_lock:
            now = datetime.now(tz=timezone.utc)
            if self._last_timestamp is not None and now <= self._last_timestamp:
                now = self._last_timestamp + timedelta(microseconds=1)
            self._last_timestamp = now
            return now

    def _seal_states(self, entry: AuditTrailEntry) -> AuditTrailEntry:
        if self._encryptor is None:
            return entry
        update = {
            name: seal_value(self._encryptor, getattr(entry, name), f"audit:{name}")
            for name in _STATE_FIELDS
            if getattr(entry, name) is not None
        }
        return entry.model_copy(update=update) if update else entry

    def _settled(self, entry: AuditTrailEntry) -> None:
        self._pending.pop(entry.id, None)


def _merge(
    stored: list[AuditTrailEntry],
    pending: list[AuditTrailEntry],
) -> list[AuditTrailEntry]:
    merged: dict[str, AuditTrailEntry] = {}
    for entry in [*stored, *pending]:
        merged.setdefault(entry.id, entry)
    return list(merged.values())
