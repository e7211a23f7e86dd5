# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from aumos_compliance.classification import (
    classify,
    determine_data_classification,
    determine_risk_level,
    is_compliance_relevant,
)
from aumos_compliance.types import DataClassification, RiskLevel, is_mutating

_WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class AuditTrailEntry(BaseModel):
    """
    One immutable record of an observed operation.

    Entries are append-only: nothing in this package updates or deletes an
    entry once it has been created.

    Attributes:
        id: Opaque unique identifier (``audit-<hex>``).
        timestamp: UTC creation time, strictly increasing per logger.
        user_id: Identity snapshot copied at log time.
        user_name: Display name of the actor.
        user_role: Role of the actor.
        session_id: Correlates the entries of one session.
        action: ``read``, ``create``, ``update``, ``delete``, ``login``, ...
        resource: Resource name (``document``, ``audit_trail``, ...).
        resource_id: Identifier of the touched item; absent for collections.
        resource_type: Resource category.
        before_state: State before a mutation. Encrypted when configured.
        after_state: State after a mutation. Encrypted when configured.
        ip_address: Client address.
        user_agent: Client user agent.
        endpoint: Request path.
        method: Upper-cased HTTP method.
        status_code: Response status observed for the operation.
        risk_level: Derived review priority.
        compliance_relevant: True whenever the tier is sensitive or the
            action mutates state.
        data_classification: Derived sensitivity tier.
        description: Human-readable summary.
        metadata: Open context map. Conventional keys: ``referer``,
            ``origin``, ``content_type``, ``query_params``, ``filter``,
            ``entry_count``, ``permission_id``, ``role``.
        tags: Derived tags plus any supplied by the caller.
        correlation_id: Links entries caused by the same request.
        parent_action_id: Id of the entry that caused this one.
    """

    model_config = _WIRE_CONFIG

    id: str
    timestamp: datetime
    user_id: str
    user_name: str = ""
    user_role: str = ""
    session_id: str = ""
    action: str
    resource: str
    resource_id: str | None = None
    resource_type: str
    before_state: Any = None
    after_state: Any = None
    ip_address: str = ""
    user_agent: str = ""
    endpoint: str = ""
    method: str = ""
    status_code: int = 200
    risk_level: RiskLevel
    compliance_relevant: bool
    data_classification: DataClassification
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: frozenset[str] = Field(default_factory=frozenset)
    correlation_id: str | None = None
    parent_action_id: str | None = None

    @field_serializer("tags")
    def serialize_tags(self, tags: frozenset[str]) -> list[str]:
        return sorted(tags)


class AuditEntryInput(BaseModel):
    """
    Caller-supplied part of an audit entry.

    Every classification field is optional. Whatever is left out is derived
    from ``(method, endpoint, user_role)`` when the entry is built.
    """

    model_config = _WIRE_CONFIG

    user_id: str
    user_name: str = ""
    user_role: str = ""
    session_id: str = ""
    action: str | None = None
    resource: str | None = None
    resource_id: str | None = None
    resource_type: str | None = None
    before_state: Any = None
    after_state: Any = None
    ip_address: str = ""
    user_agent: str = ""
    endpoint: str = ""
    method: str = ""
    status_code: int = 200
    risk_level: RiskLevel | None = None
    compliance_relevant: bool | None = None
    data_classification: DataClassification | None = None
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: frozenset[str] = Field(default_factory=frozenset)
    correlation_id: str | None = None
    parent_action_id: str | None = None


def generate_entry_id() -> str:
    """Return a new, never reused entry id."""
    return f"audit-{uuid.uuid4().hex}"


def build_entry(
    partial: AuditEntryInput,
    entry_id: str,
    timestamp: datetime,
) -> AuditTrailEntry:
    """
    Complete ``partial`` into an :class:`AuditTrailEntry`.

    Missing classification fields are derived from the request. Supplied
    tags are merged with the derived ones. ``compliance_relevant`` may be
    raised by the caller but never lowered below what the tier and action
    require.

    Args:
        partial: Caller-supplied fields.
        entry_id: Id assigned by the logger.
        timestamp: Timestamp assigned by the logger.

    Returns:
        A frozen :class:`AuditTrailEntry`.
    """
    method = (partial.method or "").upper()
    endpoint = partial.endpoint or "/"
    derived = classify(method, endpoint, partial.user_role or None)

    action = partial.action or derived.action
    tier = partial.data_classification or determine_data_classification(endpoint)
    if partial.risk_level is not None:
        risk = partial.risk_level
    else:
        risk = determine_risk_level(method, endpoint, tier)

    relevant = (
        bool(partial.compliance_relevant)
        or is_compliance_relevant(method, endpoint, tier)
        or is_mutating(action=action)
        or tier.is_sensitive
    )

    resource = partial.resource or derived.resource
    resource_type = partial.resource_type or derived.resource_type

    return AuditTrailEntry(
        id=entry_id,
        timestamp=timestamp,
        user_id=partial.user_id,
        user_name=partial.user_name,
        user_role=partial.user_role,
        session_id=partial.session_id,
        action=action,
        resource=resource,
        resource_id=partial.resource_id,
        resource_type=resource_type,
        before_state=partial.before_state,
        after_state=partial.after_state,
        ip_address=partial.ip_address,
        user_agent=partial.user_agent,
        endpoint=partial.endpoint,
        method=method,
        status_code=partial.status_code,
        risk_level=risk,
        compliance_relevant=relevant,
        data_classification=tier,
        description=partial.description or f"{action} {resource_type}",
        metadata=dict(partial.metadata),
        tags=derived.tags | partial.tags,
        correlation_id=partial.correlation_id,
        parent_action_id=partial.parent_action_id,
    )
