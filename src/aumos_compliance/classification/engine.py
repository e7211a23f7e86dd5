# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import re

from pydantic import BaseModel

from aumos_compliance.classification.rules import (
    ACTION_RULES,
    CLASSIFICATION_RULES,
    COMPLIANCE_RESOURCES,
    DATA_ACCESS_RISK_RULES,
    DEFAULT_RESOURCE,
    RESOURCE_FALLBACKS,
    RESOURCE_KEYWORDS,
    RISK_RULES,
    SKIPPED_PATHS,
    SKIPPED_PREFIXES,
    RequestFacts,
    first_match,
)
from aumos_compliance.types import MUTATING_METHODS, DataClassification, RiskLevel

_RESOURCE_ID_PATTERN = re.compile(r"/([a-zA-Z]+)/([a-zA-Z0-9-]+)$")
_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


class Classification(BaseModel, frozen=True):
    """
    Derived classification of a single request.

    Attributes:
        action: Audit action (``read``, ``create``, ``login``, ...).
        resource: Resource name from the keyword table or a prefix fallback.
        resource_type: Resource type from the keyword table or a prefix fallback.
        data_classification: Sensitivity tier of the touched resource.
        risk_level: Review-priority severity of the operation.
        compliance_relevant: True if the entry is subject to compliance review.
        tags: Method, resource keywords, caller role and portal tags.
    """

    action: str
    resource: str
    resource_type: str
    data_classification: DataClassification
    risk_level: RiskLevel
    compliance_relevant: bool
    tags: frozenset[str]


def _normalise_path(path: object) -> str:
    text = str(path) if path else "/"
    for separator in ("?", "#"):
        text = text.split(separator, 1)[0]
    if not text.startswith("/"):
        text = "/" + text
    return text


def _normalise_method(method: object) -> str:
    return str(method).strip().upper() if method else ""


def _matched_resources(path: str) -> list[str]:
    return [resource for segment, resource in RESOURCE_KEYWORDS if segment in path]


def slugify_path(path: str) -> str:
    """Turn a path into a lowercase ``_``-separated slug (``root`` when empty)."""
    slug = _SLUG_PATTERN.sub("_", path.lower()).strip("_")
    return slug or "root"


def determine_action(method: str, path: str) -> str:
    """Return the audit action for a method/path pair."""
    facts = RequestFacts(method=_normalise_method(method), path=_normalise_path(path))
    action = first_match(ACTION_RULES, facts, default="")
    if action:
        return action
    if facts.path.startswith("/api/"):
        return facts.method.lower() or "unknown"
    return f"{facts.method.lower() or 'unknown'}_{slugify_path(facts.path)}"


def determine_resource(path: str) -> tuple[str, str]:
    """Return ``(resource, resource_type)`` for a path; the first keyword found wins."""
    normalised = _normalise_path(path)
    matched = _matched_resources(normalised)
    if matched:
        return matched[0], matched[0]
    facts = RequestFacts(method="", path=normalised)
    return first_match(RESOURCE_FALLBACKS, facts, default=DEFAULT_RESOURCE)


def determine_data_classification(path: str) -> DataClassification:
    """Return the highest sensitivity tier touched by a path."""
    facts = RequestFacts(method="", path=_normalise_path(path))
    return first_match(CLASSIFICATION_RULES, facts, default=DataClassification.PUBLIC)


def determine_risk_level(
    method: str,
    path: str,
    data_classification: DataClassification | None = None,
) -> RiskLevel:
    """Return the highest-severity risk rule that matches."""
    normalised = _normalise_path(path)
    tier = data_classification or determine_data_classification(normalised)
    facts = RequestFacts(
        method=_normalise_method(method),
        path=normalised,
        data_classification=tier,
    )
    return first_match(RISK_RULES, facts, default=RiskLevel.LOW)


def determine_data_access_risk(action: str, data_classification: DataClassification) -> RiskLevel:
    """Risk of an explicit data-access event, keyed by action and tier."""
    for predicate, level in DATA_ACCESS_RISK_RULES:
        if predicate(action, data_classification):
            return level
    return RiskLevel.LOW


def is_compliance_relevant(
    method: str,
    path: str,
    data_classification: DataClassification | None = None,
) -> bool:
    """
    Return True when the request must be retained for compliance review.

    Sensitive resources and every mutating method qualify, and so does any
    request touching confidential or restricted data.
    """
    normalised = _normalise_path(path)
    if any(resource in COMPLIANCE_RESOURCES for resource in _matched_resources(normalised)):
        return True
    if _normalise_method(method) in MUTATING_METHODS:
        return True
    tier = data_classification or determine_data_classification(normalised)
    return tier.is_sensitive


def generate_tags(method: str, path: str, caller_role: str | None = None) -> frozenset[str]:
    """Return the derived tag set for a request."""
    normalised = _normalise_path(path)
    tags: set[str] = set(_matched_resources(normalised))
    method_tag = _normalise_method(method).lower()
    if method_tag:
        tags.add(method_tag)
    if caller_role:
        tags.add(str(caller_role))
    if normalised.startswith("/admin"):
        tags.add("admin_portal")
    if normalised.startswith("/client"):
        tags.add("client_portal")
    return frozenset(tags)


def extract_resource_id(path: str) -> str | None:
    """Return the trailing id of paths shaped like ``/<collection>/<id>``."""
    match = _RESOURCE_ID_PATTERN.search(_normalise_path(path))
    if match is None:
        return None
    return match.group(2)


def should_audit(path: str) -> bool:
    """Return False for static assets, health checks and session polling."""
    normalised = _normalise_path(path)
    if normalised.startswith(SKIPPED_PREFIXES):
        return False
    if normalised in SKIPPED_PATHS:
        return False
    return "." not in normalised


def classify(method: str, path: str, caller_role: str | None = None) -> Classification:
    """
    Classify a request.

    This is a pure function. It performs no I/O, never raises for any
    ``(method, path, caller_role)`` and always returns the same
    :class:`Classification` for the same input.

    Args:
        method: HTTP method (any case).
        path: Request path; a query string or fragment is ignored.
        caller_role: Role of the acting identity, added to the tags.

    Returns:
        A frozen :class:`Classification`.
    """
    normalised_method = _normalise_method(method)
    normalised_path = _normalise_path(path)

    resource, resource_type = determine_resource(normalised_path)
    tier = determine_data_classification(normalised_path)

    return Classification(
        action=determine_action(normalised_method, normalised_path),
        resource=resource,
        resource_type=resource_type,
        data_classification=tier,
        risk_level=determine_risk_level(normalised_method, normalised_path, tier),
        compliance_relevant=is_compliance_relevant(normalised_method, normalised_path, tier),
        tags=generate_tags(normalised_method, normalised_path, caller_role),
    )
