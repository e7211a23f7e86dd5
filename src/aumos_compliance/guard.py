# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from aumos_compliance.catalog.manager import PermissionCatalog
from aumos_compliance.errors import AuthenticationError, AuthorizationError
from aumos_compliance.types import ADMIN_ROLES, Role

logger = logging.getLogger("aumos.compliance.guard")


class ActorIdentity(BaseModel, frozen=True):
    """
    An already-authenticated actor, as supplied by the identity provider.

    Attributes:
        id: Stable user identifier.
        name: Display name copied into audit entries.
        role: Role string. Unknown roles are kept verbatim and hold no
            permissions.
        permissions: Permission ids asserted by the identity provider. Kept
            for the audit snapshot only; the guard always consults the catalog.
    """

    id: str
    name: str = ""
    role: str
    permissions: frozenset[str] = Field(default_factory=frozenset)


class PermissionRequirement(BaseModel, frozen=True):
    """
    What an operation demands of its caller.

    Attributes:
        required_permissions: Every id listed must be held by the caller's role.
        allow_super_admin: When True, super_admin bypasses all other checks.
        allow_admin_access: When True, any admin-tier role is let through.
        required_roles: When non-empty, the caller's role must be one of these.
    """

    required_permissions: frozenset[str] = Field(default_factory=frozenset)
    allow_super_admin: bool = True
    allow_admin_access: bool = False
    required_roles: frozenset[str] = Field(default_factory=frozenset)


class AuthorizationDecision(BaseModel, frozen=True):
    """
    Outcome of :meth:`AuthorizationGuard.check`.

    Attributes:
        allowed: True when the request may proceed.
        reason: ``granted``, ``super_admin``, ``admin_access``,
            ``unauthenticated``, ``insufficient_role`` or
            ``insufficient_permission``.
        status_code: 200 on Allow, 401 or 403 on Deny.
        identity: The identity that was evaluated, if any.
    """

    allowed: bool
    reason: str
    status_code: int = 200
    identity: ActorIdentity | None = None


SUPER_ADMIN_ONLY = PermissionRequirement(required_roles=frozenset({Role.SUPER_ADMIN.value}))
ADMIN_TIER = PermissionRequirement(required_roles=ADMIN_ROLES)
AUTHENTICATED = PermissionRequirement()


class AuthorizationGuard:
    """
    Decides whether an identity may perform an operation.

    The decision is pure: the guard reads the catalog and returns a value.
    It performs no I/O and never mutates the catalog.

    Example::

        guard = AuthorizationGuard(catalog)
        decision = guard.check(
            ActorIdentity(id="u-1", role="auditor"),
            PermissionRequirement(required_permissions=frozenset({"view_logs"})),
        )
        assert decision.allowed
    """

    def __init__(self, catalog: PermissionCatalog) -> None:
        self._catalog = catalog

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(
        self,
        identity: ActorIdentity | None,
        requirement: PermissionRequirement | None = None,
    ) -> AuthorizationDecision:
        """
        Evaluate ``requirement`` for ``identity``.

        Checks run in a fixed order and the first one that decides wins:
        missing identity, super_admin bypass, admin-tier bypass, role
        membership, then permissions.

        Args:
            identity: The acting identity, or None when unauthenticated.
            requirement: What the operation demands. Defaults to "any
                authenticated identity".

        Returns:
            A frozen :class:`AuthorizationDecision`.
        """
        req = requirement or AUTHENTICATED

        if identity is None:
            return AuthorizationDecision(allowed=False, reason="unauthenticated", status_code=401)

        if req.allow_super_admin and identity.role == Role.SUPER_ADMIN.value:
            return AuthorizationDecision(allowed=True, reason="super_admin", identity=identity)

        if req.allow_admin_access and identity.role in ADMIN_ROLES:
            return AuthorizationDecision(allowed=True, reason="admin_access", identity=identity)

        if req.required_roles and identity.role not in req.required_roles:
            return AuthorizationDecision(
                allowed=False,
                reason="insufficient_role",
                status_code=403,
                identity=identity,
            )

        if req.required_permissions and not self._catalog.has_all_permissions(
            identity.role, req.required_permissions
        ):
            return AuthorizationDecision(
                allowed=False,
                reason="insufficient_permission",
                status_code=403,
                identity=identity,
            )

        return AuthorizationDecision(allowed=True, reason="granted", identity=identity)

    def require(
        self,
        identity: ActorIdentity | None,
        requirement: PermissionRequirement | None = None,
    ) -> ActorIdentity:
        """
        Like :meth:`check`, but raise on Deny.

        Returns:
            The authorised identity.

        Raises:
            AuthenticationError: When no identity is supplied.
            AuthorizationError: When the identity lacks the required role or
                permissions. The message never names what is missing.
        """
        decision = self.check(identity, requirement)
        if decision.allowed:
            assert identity is not None  # noqa: S101
            return identity

        logger.info(
            "authorization_denied",
            extra={
                "reason": decision.reason,
                "user_id": identity.id if identity else None,
                "role": identity.role if identity else None,
            },
        )
        if decision.status_code == 401:
            raise AuthenticationError()
        raise AuthorizationError(reason=decision.reason)
