# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from enum import Enum


class RiskLevel(str, Enum):
    """
    Review-priority severity derived for every audit trail entry.

    Levels are ordered: ``LOW < MEDIUM < HIGH < CRITICAL``.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the ordinal position of this level (0 = low)."""
        return _RISK_ORDER.index(self)


_RISK_ORDER: tuple[RiskLevel, ...] = (
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
)


class DataClassification(str, Enum):
    """
    Sensitivity tier of the resource touched by an operation.

    Tiers are ordered: ``PUBLIC < INTERNAL < CONFIDENTIAL < RESTRICTED``.
    """

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"

    @property
    def is_sensitive(self) -> bool:
        """True for the confidential and restricted tiers."""
        return self in (DataClassification.CONFIDENTIAL, DataClassification.RESTRICTED)


class Role(str, Enum):
    """The closed set of actor roles known to the permission catalog."""

    SUPER_ADMIN = "super_admin"
    AUDIT_MANAGER = "audit_manager"
    AUDITOR = "auditor"
    MANAGEMENT = "management"
    CLIENT = "client"
    DEPARTMENT = "department"

    @classmethod
    def parse(cls, value: Role | str) -> Role | None:
        """Return the matching role, or None for an unknown role string."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


ROLE_VALUES = frozenset(role.value for role in Role)

# Roles allowed into admin-tier surfaces such as the audit trail viewer.
ADMIN_ROLES = frozenset(
    {
        Role.SUPER_ADMIN.value,
        Role.AUDIT_MANAGER.value,
        Role.AUDITOR.value,
        Role.MANAGEMENT.value,
    }
)

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})

MUTATING_ACTIONS = frozenset({"create", "update", "delete"})


class DataAccessAction(str):
    """Action constants accepted by ``AuditTrailLogger.log_data_access``."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"


DATA_ACCESS_ACTIONS = frozenset({"read", "create", "update", "delete", "export"})


class AuthenticationAction(str):
    """Action constants accepted by ``AuditTrailLogger.log_authentication``."""

    LOGIN = "login"
    LOGOUT = "logout"
    LOGIN_FAILED = "login_failed"
    PASSWORD_CHANGE = "password_change"
    ACCOUNT_LOCKED = "account_locked"


AUTHENTICATION_ACTIONS = frozenset(
    {"login", "logout", "login_failed", "password_change", "account_locked"}
)


def is_mutating(method: str | None = None, action: str | None = None) -> bool:
    """Return True when either the HTTP method or the audit action changes state."""
    if method is not None and method.upper() in MUTATING_METHODS:
        return True
    return action is not None and action in MUTATING_ACTIONS
