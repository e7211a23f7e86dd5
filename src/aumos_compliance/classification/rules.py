# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Ordered classification rule tables.

Every table is a tuple of :class:`Rule` objects evaluated top-to-bottom; the
first rule whose predicate matches decides the result. Keeping the rules as
data rather than as if/else chains lets each table be audited and tested on
its own.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, TypeVar

from aumos_compliance.types import DataClassification, RiskLevel

T = TypeVar("T")


@dataclass(frozen=True)
class RequestFacts:
    """
    Normalised request facts that rule predicates are evaluated against.

    Attributes:
        method: Upper-cased HTTP method.
        path: Request path without query string or fragment.
        data_classification: Tier already derived for the path. Only the risk
            table reads it.
    """

    method: str
    path: str
    data_classification: DataClassification = DataClassification.PUBLIC

    def touches(self, *segments: str) -> bool:
        """Return True if any of ``segments`` occurs in the path."""
        return any(segment in self.path for segment in segments)


@dataclass(frozen=True)
class Rule(Generic[T]):
    """A named ``(predicate, result)`` pair."""

    name: str
    predicate: Callable[[RequestFacts], bool]
    result: T


def first_match(rules: Iterable[Rule[T]], facts: RequestFacts, default: T) -> T:
    """Return the result of the first matching rule, or ``default``."""
    for rule in rules:
        if rule.predicate(facts):
            return rule.result
    return default


# ---------------------------------------------------------------------------
# Resource keywords
# ---------------------------------------------------------------------------

# (path segment, resource name). Order matters: the first keyword found wins.
RESOURCE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("/documents", "document"),
    ("/audits", "audit"),
    ("/reports", "report"),
    ("/activities", "activity"),
    ("/notifications", "notification"),
    ("/users", "user"),
    ("/alerts", "alert"),
    ("/audit-trail", "audit_trail"),
)

RESOURCE_FALLBACKS: tuple[Rule[tuple[str, str]], ...] = (
    Rule("admin_prefix", lambda f: f.path.startswith("/admin"), ("admin_portal", "admin_page")),
    Rule("client_prefix", lambda f: f.path.startswith("/client"), ("client_portal", "client_page")),
    Rule("api_prefix", lambda f: f.path.startswith("/api"), ("api", "api_endpoint")),
    Rule("auth_segment", lambda f: "/auth" in f.path, ("authentication", "auth_endpoint")),
)

DEFAULT_RESOURCE: tuple[str, str] = ("page", "web_page")

# Resources whose every access is subject to compliance review.
COMPLIANCE_RESOURCES = frozenset({"document", "audit", "report", "user", "alert", "audit_trail"})


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _is_api(facts: RequestFacts) -> bool:
    return facts.path.startswith("/api/")


ACTION_RULES: tuple[Rule[str], ...] = (
    Rule("sign_in", lambda f: f.touches("/auth/signin", "/auth/login"), "login"),
    Rule("sign_out", lambda f: f.touches("/auth/signout", "/auth/logout"), "logout"),
    Rule("api_get", lambda f: _is_api(f) and f.method == "GET", "read"),
    Rule("api_post", lambda f: _is_api(f) and f.method == "POST", "create"),
    Rule("api_put", lambda f: _is_api(f) and f.method == "PUT", "update"),
    Rule("api_patch", lambda f: _is_api(f) and f.method == "PATCH", "update"),
    Rule("api_delete", lambda f: _is_api(f) and f.method == "DELETE", "delete"),
    Rule("admin_page", lambda f: f.path.startswith("/admin"), "admin_access"),
    Rule("client_page", lambda f: f.path.startswith("/client"), "client_access"),
)


# ---------------------------------------------------------------------------
# Data classification (highest tier first)
# ---------------------------------------------------------------------------

CLASSIFICATION_RULES: tuple[Rule[DataClassification], ...] = (
    Rule(
        "restricted_resources",
        lambda f: f.touches("/audit-trail", "/users", "/alerts"),
        DataClassification.RESTRICTED,
    ),
    Rule(
        "confidential_resources",
        lambda f: f.touches("/documents", "/audits", "/reports", "/notifications"),
        DataClassification.CONFIDENTIAL,
    ),
    Rule(
        "portal_or_api_prefix",
        lambda f: f.path.startswith(("/admin", "/client", "/api")),
        DataClassification.INTERNAL,
    ),
)


# ---------------------------------------------------------------------------
# Risk (highest severity first)
# ---------------------------------------------------------------------------

RISK_RULES: tuple[Rule[RiskLevel], ...] = (
    Rule(
        "delete_restricted",
        lambda f: f.method == "DELETE" and f.data_classification is DataClassification.RESTRICTED,
        RiskLevel.CRITICAL,
    ),
    Rule(
        "write_audit_trail",
        lambda f: f.touches("/audit-trail") and f.method != "GET",
        RiskLevel.CRITICAL,
    ),
    Rule(
        "delete_confidential",
        lambda f: f.method == "DELETE" and f.data_classification is DataClassification.CONFIDENTIAL,
        RiskLevel.HIGH,
    ),
    Rule(
        "create_user",
        lambda f: f.method == "POST" and f.touches("/users"),
        RiskLevel.HIGH,
    ),
    Rule("alerts_access", lambda f: f.touches("/alerts"), RiskLevel.HIGH),
    Rule(
        "write_confidential",
        lambda f: f.method in ("PUT", "POST")
        and f.data_classification is DataClassification.CONFIDENTIAL,
        RiskLevel.MEDIUM,
    ),
)


# ---------------------------------------------------------------------------
# Data-access risk (explicit action + tier, used by log_data_access)
# ---------------------------------------------------------------------------

_SENSITIVE = (DataClassification.CONFIDENTIAL, DataClassification.RESTRICTED)

DATA_ACCESS_RISK_RULES: tuple[tuple[Callable[[str, DataClassification], bool], RiskLevel], ...] = (
    (lambda a, c: a == "delete" and c is DataClassification.RESTRICTED, RiskLevel.CRITICAL),
    (lambda a, c: a == "export" and c in _SENSITIVE, RiskLevel.HIGH),
    (lambda a, c: a == "update" and c is DataClassification.RESTRICTED, RiskLevel.HIGH),
    (lambda a, c: c is DataClassification.RESTRICTED, RiskLevel.MEDIUM),
)


# ---------------------------------------------------------------------------
# Paths that are never audited
# ---------------------------------------------------------------------------

SKIPPED_PREFIXES: tuple[str, ...] = ("/_next", "/favicon", "/api/health")
SKIPPED_PATHS = frozenset({"/api/auth/session"})
