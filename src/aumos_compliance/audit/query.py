# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from aumos_compliance.audit.record import AuditTrailEntry
from aumos_compliance.types import DataClassification, RiskLevel

_WIRE_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuditTrailFilter(BaseModel):
    """
    Filter criteria for :meth:`AuditTrailLogger.get_entries`.

    All fields are optional. Multiple criteria are combined with AND logic:
    an entry must satisfy every provided criterion to be included.

    Attributes:
        user_id: Only include entries by this user.
        action: Only include entries with this action.
        resource: Only include entries on this resource.
        resource_type: Only include entries with this resource type.
        risk_level: Only include entries at this risk level.
        compliance_relevant: Tri-state. None means "either".
        data_classification: Only include entries in this tier.
        start_date: Inclusive lower bound on the timestamp.
        end_date: Inclusive upper bound on the timestamp.
        tags: The entry must carry every one of these tags.
        limit: Maximum number of entries to return. None means no limit.
        offset: Number of entries to skip, after sorting newest-first.
    """

    model_config = _WIRE_CONFIG

    user_id: str | None = None
    action: str | None = None
    resource: str | None = None
    resource_type: str | None = None
    risk_level: RiskLevel | None = None
    compliance_relevant: bool | None = None
    data_classification: DataClassification | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    tags: frozenset[str] | None = None
    limit: int | None = Field(default=100, ge=0)
    offset: int = Field(default=0, ge=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_dates_are_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def start_not_after_end(self) -> AuditTrailFilter:
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError("startDate must not be later than endDate")
        return self

    def unpaginated(self) -> AuditTrailFilter:
        """Return a copy of this filter without ``limit`` and ``offset``."""
        return self.model_copy(update={"limit": None, "offset": 0})


class TimeRange(BaseModel):
    """Earliest and latest timestamp of a set of entries; both None when empty."""

    model_config = _WIRE_CONFIG

    start: datetime | None = None
    end: datetime | None = None

    @field_validator("start", "end")
    @classmethod
    def naive_bounds_are_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class AuditTrailStats(BaseModel):
    """
    Aggregate statistics over the audit trail.

    ``sum(entries_by_risk_level.values())`` always equals ``total_entries``;
    every risk level is present, with a zero count when unused.
    """

    model_config = _WIRE_CONFIG

    total_entries: int
    entries_by_action: dict[str, int]
    entries_by_risk_level: dict[str, int]
    entries_by_user: dict[str, int]
    compliance_relevant_count: int
    critical_risk_count: int
    time_range: TimeRange


def entry_matches(entry: AuditTrailEntry, audit_filter: AuditTrailFilter) -> bool:
    """Return True if ``entry`` satisfies all criteria in ``audit_filter``."""
    if audit_filter.user_id is not None and entry.user_id != audit_filter.user_id:
        return False

    if audit_filter.action is not None and entry.action != audit_filter.action:
        return False

    if audit_filter.resource is not None and entry.resource != audit_filter.resource:
        return False

    if audit_filter.resource_type is not None and entry.resource_type != audit_filter.resource_type:
        return False

    if audit_filter.risk_level is not None and entry.risk_level != audit_filter.risk_level:
        return False

    if (
        audit_filter.compliance_relevant is not None
        and entry.compliance_relevant != audit_filter.compliance_relevant
    ):
        return False

    if (
        audit_filter.data_classification is not None
        and entry.data_classification != audit_filter.data_classification
    ):
        return False

    if audit_filter.start_date is not None and entry.timestamp < audit_filter.start_date:
        return False

    if audit_filter.end_date is not None and entry.timestamp > audit_filter.end_date:
        return False

    if audit_filter.tags and not audit_filter.tags <= entry.tags:
        return False

    return True


def apply_filter(
    entries: Iterable[AuditTrailEntry],
    audit_filter: AuditTrailFilter,
) -> list[AuditTrailEntry]:
    """
    Apply an :class:`AuditTrailFilter` to ``entries``.

    Matching entries are sorted newest-first and then sliced by
    ``offset`` and ``limit``.

    Args:
        entries: The entries to search.
        audit_filter: The filter criteria to apply.

    Returns:
        The matching page of entries; empty when nothing matches.
    """
    matched = [entry for entry in entries if entry_matches(entry, audit_filter)]
    matched.sort(key=lambda entry: entry.timestamp, reverse=True)

    paginated = matched[audit_filter.offset :]
    if audit_filter.limit is not None:
        paginated = paginated[: audit_filter.limit]
    return paginated


def compute_stats(
    entries: Iterable[AuditTrailEntry],
    time_range: TimeRange | None = None,
) -> AuditTrailStats:
    """
    Aggregate ``entries`` into an :class:`AuditTrailStats`.

    Args:
        entries: The entries to aggregate.
        time_range: Optional inclusive window. Entries outside it are ignored.

    Returns:
        The computed statistics.
    """
    selected = list(entries)
    if time_range is not None:
        if time_range.start is not None:
            selected = [e for e in selected if e.timestamp >= time_range.start]
        if time_range.end is not None:
            selected = [e for e in selected if e.timestamp <= time_range.end]

    by_risk: dict[str, int] = {level.value: 0 for level in RiskLevel}
    for entry in selected:
        by_risk[entry.risk_level.value] += 1

    timestamps = [entry.timestamp for entry in selected]

    return AuditTrailStats(
        total_entries=len(selected),
        entries_by_action=dict(Counter(entry.action for entry in selected)),
        entries_by_risk_level=by_risk,
        entries_by_user=dict(Counter(entry.user_id for entry in selected)),
        compliance_relevant_count=sum(1 for entry in selected if entry.compliance_relevant),
        critical_risk_count=by_risk[RiskLevel.CRITICAL.value],
        time_range=TimeRange(
            start=min(timestamps) if timestamps else None,
            end=max(timestamps) if timestamps else None,
        ),
    )
