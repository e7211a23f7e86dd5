# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field


class OutboxConfig(BaseModel, frozen=True):
    """
    Configuration for the audit outbox that sits between ``log_entry`` and
    the storage collaborator.

    Attributes:
        max_queue_size: Capacity of the in-process queue. Entries logged while
            the queue is full are dropped and reported to the error channel.
        max_attempts: Total number of append attempts per entry, first try
            included.
        backoff_initial_seconds: Delay before the first retry. Doubles after
            every failed attempt.
        backoff_max_seconds: Upper bound on the retry delay.
        storage_timeout_seconds: Bound on a single ``append`` call so a stalled
            store cannot pile up unbounded work.
        failure_history: Number of recent failure reports kept for inspection.
    """

    max_queue_size: Annotated[int, Field(gt=0)] = 10_000
    max_attempts: Annotated[int, Field(ge=1)] = 3
    backoff_initial_seconds: Annotated[float, Field(ge=0)] = 0.05
    backoff_max_seconds: Annotated[float, Field(ge=0)] = 2.0
    storage_timeout_seconds: Annotated[float, Field(gt=0)] = 5.0
    failure_history: Annotated[int, Field(gt=0)] = 100


class AuditConfig(BaseModel, frozen=True):
    """
    Configuration for the AuditTrailLogger.

    Attributes:
        outbox: Settings for the asynchronous persistence outbox.
        default_limit: Page size used when a filter does not set ``limit``.
        max_limit: Largest page size accepted by the HTTP surface.
        encrypt_states: When True and an encryptor is configured,
            ``before_state`` and ``after_state`` are encrypted before
            persistence.
    """

    outbox: OutboxConfig = Field(default_factory=OutboxConfig)
    default_limit: Annotated[int, Field(gt=0)] = 100
    max_limit: Annotated[int, Field(gt=0)] = 1_000
    encrypt_states: bool = True


class CatalogConfig(BaseModel, frozen=True):
    """
    Configuration for the PermissionCatalog.

    Attributes:
        seed_defaults: When True, an empty store is seeded with the default
            permissions and role mappings on startup.
    """

    seed_defaults: bool = True


class HttpConfig(BaseModel, frozen=True):
    """
    Configuration for the FastAPI surface.

    Attributes:
        api_prefix: Path prefix under which the routes are mounted.
        audit_requests: When True, every non-skipped request is written to the
            audit trail by the HTTP middleware.
    """

    api_prefix: str = "/api"
    audit_requests: bool = True


class ComplianceConfig(BaseModel, frozen=True):
    """
    Top-level configuration for the ComplianceEngine.

    All fields are optional and default sensibly.

    Example::

        config = ComplianceConfig(
            audit=AuditConfig(outbox=OutboxConfig(max_queue_size=500)),
            catalog=CatalogConfig(seed_defaults=False),
        )
        engine = ComplianceEngine(config=config)
    """

    audit: AuditConfig = Field(default_factory=AuditConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
