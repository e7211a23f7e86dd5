# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from typing import Any


class AumOSComplianceError(Exception):
    """
    Base class for all aumos-compliance errors.

    Every subclass carries a stable ``code`` and the HTTP status it maps to at
    the service boundary.
    """

    http_status: int = 500

    def __init__(self, message: str, code: str = "COMPLIANCE_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def details(self) -> Any:
        """Return structured detail for the error payload, or None."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(AumOSComplianceError):
    """
    Raised for a malformed filter, a malformed permission payload, or a role
    update that references unknown permission ids.

    Attributes:
        violations: Every rule that was violated, so callers can fix all of
            them in one round trip.
    """

    http_status = 400

    def __init__(self, violations: list[str], message: str = "Validation failed.") -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.violations = list(violations)

    def details(self) -> list[str]:
        return list(self.violations)


class AuthenticationError(AumOSComplianceError):
    """Raised when a protected operation is attempted without an identity."""

    http_status = 401

    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message, code="UNAUTHENTICATED")


class AuthorizationError(AumOSComplianceError):
    """
    Raised when the authorization guard denies a request.

    The message is deliberately generic and never names the missing permission.

    Attributes:
        reason: Machine-readable deny reason (e.g. ``insufficient_permission``).
    """

    http_status = 403

    def __init__(self, reason: str = "insufficient_permission") -> None:
        super().__init__("You are not allowed to perform this operation.", code="FORBIDDEN")
        self.reason = reason


class ForbiddenSystemMutation(AumOSComplianceError):
    """Raised on any attempt to edit or delete a system permission or the super_admin role."""

    http_status = 403

    def __init__(self, target: str) -> None:
        super().__init__(
            f"'{target}' is protected and cannot be modified.",
            code="SYSTEM_MUTATION_FORBIDDEN",
        )
        self.target = target


class NotFoundError(AumOSComplianceError):
    """Raised when a referenced permission or entry does not exist."""

    http_status = 404

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} '{identifier}' was not found.", code="NOT_FOUND")
        self.kind = kind
        self.identifier = identifier


class ConflictError(AumOSComplianceError):
    """Raised when adding a permission whose id already exists."""

    http_status = 409

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Permission '{identifier}' already exists.", code="CONFLICT")
        self.identifier = identifier


class StorageUnavailable(AumOSComplianceError):
    """Raised when the storage collaborator fails on a synchronous read/write path."""

    http_status = 503

    def __init__(self, message: str = "Storage is unavailable.") -> None:
        super().__init__(message, code="STORAGE_UNAVAILABLE")
