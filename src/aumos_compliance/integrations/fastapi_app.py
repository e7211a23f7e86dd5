# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
FastAPI surface for the compliance engine.

``create_app`` mounts the audit trail, permission and role routes under the
configured prefix (``/api`` by default), installs an HTTP middleware that
audits every request (denied ones included), and maps every
:class:`~aumos_compliance.errors.AumOSComplianceError` to its HTTP status
with a ``{"error": {"code", "message", "details"}}`` body.

Identity is supplied by an identity provider: any callable that turns a
:class:`fastapi.Request` into an :class:`ActorIdentity` (or None). The
default trusts the ``X-User-*`` headers set by an authenticating gateway.

Run with (requires the ``fastapi`` extra and uvicorn)::

    uvicorn "aumos_compliance.integrations.fastapi_app:create_app" --factory
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from aumos_compliance.audit.query import AuditTrailFilter
from aumos_compliance.audit.record import AuditEntryInput
from aumos_compliance.catalog.permission import Permission
from aumos_compliance.engine import ComplianceEngine
from aumos_compliance.errors import AumOSComplianceError, NotFoundError, ValidationError
from aumos_compliance.guard import (
    ADMIN_TIER,
    AUTHENTICATED,
    SUPER_ADMIN_ONLY,
    ActorIdentity,
    PermissionRequirement,
)
from aumos_compliance.types import ROLE_VALUES, DataClassification

logger = logging.getLogger("aumos.compliance.http")

IdentityProvider = Callable[[Request], ActorIdentity | None]

_FILTER_LIST_PARAMS = frozenset({"tags"})


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def header_identity_provider(request: Request) -> ActorIdentity | None:
    """
    Read the acting identity from trusted gateway headers.

    ``X-User-Id`` is required; ``X-User-Name``, ``X-User-Role`` and the
    comma-separated ``X-User-Permissions`` are optional.
    """
    user_id = request.headers.get("X-User-Id", "").strip()
    if not user_id:
        return None
    raw_permissions = request.headers.get("X-User-Permissions", "")
    return ActorIdentity(
        id=user_id,
        name=request.headers.get("X-User-Name", "").strip(),
        role=request.headers.get("X-User-Role", "").strip(),
        permissions=frozenset(p.strip() for p in raw_permissions.split(",") if p.strip()),
    )


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_engine(request: Request) -> ComplianceEngine:
    """Dependency that returns the application's ComplianceEngine."""
    return request.app.state.compliance_engine


def current_identity(request: Request) -> ActorIdentity | None:
    """Dependency that resolves the acting identity, or None."""
    return request.app.state.identity_provider(request)


def requires(requirement: PermissionRequirement) -> Callable[..., Awaitable[ActorIdentity]]:
    """Build a dependency that returns the identity or raises 401/403."""

    async def dependency(
        identity: ActorIdentity | None = Depends(current_identity),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> ActorIdentity:
        return engine.require(identity, requirement)

    return dependency


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

_BODY_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ManualEntryRequest(BaseModel):
    model_config = _BODY_CONFIG

    action: str = ""
    resource: str = ""
    resource_type: str = ""
    resource_id: str | None = None
    before_state: Any = None
    after_state: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    correlation_id: str | None = None
    parent_action_id: str | None = None


class PermissionRequest(BaseModel):
    model_config = _BODY_CONFIG

    id: str = ""
    name: str = ""
    description: str = ""
    category: str = ""
    is_system_permission: bool = False


class PermissionUpdateRequest(BaseModel):
    model_config = _BODY_CONFIG

    name: str = ""
    description: str = ""
    category: str = ""


class RoleUpdateRequest(BaseModel):
    model_config = _BODY_CONFIG

    role: str
    permissions: list[str]


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _violations(exc: PydanticValidationError | RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return messages


def _parse_filter(request: Request, max_limit: int) -> AuditTrailFilter:
    raw: dict[str, Any] = {}
    for key, value in request.query_params.items():
        if key in _FILTER_LIST_PARAMS:
            raw[key] = [tag.strip() for tag in value.split(",") if tag.strip()]
        elif value != "":
            raw[key] = value
    try:
        audit_filter = AuditTrailFilter.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(_violations(exc), message="Invalid audit trail filter.") from exc
    if audit_filter.limit is not None and audit_filter.limit > max_limit:
        raise ValidationError([f"limit must not exceed {max_limit}"], message="Invalid audit trail filter.")
    return audit_filter


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def build_router() -> APIRouter:
    """Return the router holding every compliance route."""
    router = APIRouter()

    @router.get("/health")
    async def health(engine: ComplianceEngine = Depends(get_engine)) -> dict[str, Any]:
        return engine.health()

    @router.get("/audit-trail")
    async def list_audit_trail(
        request: Request,
        identity: ActorIdentity = Depends(requires(ADMIN_TIER)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        audit_filter = _parse_filter(request, engine.config.audit.max_limit)
        entries = await engine.audit.get_entries(audit_filter)
        stats = await engine.audit.get_stats()
        filter_payload = audit_filter.model_dump(mode="json", by_alias=True, exclude_none=True)

        await engine.audit.log_data_access(
            identity,
            resource="audit_trail",
            resource_id="all",
            resource_type="audit_trail",
            action="read",
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
            session_id=identity.id,
            data_classification=DataClassification.RESTRICTED,
            metadata={"filter": filter_payload, "entry_count": len(entries)},
        )

        return {
            "success": True,
            "data": [_dump(entry) for entry in entries],
            "stats": _dump(stats),
            "count": len(entries),
            "filter": filter_payload,
        }

    @router.post("/audit-trail", status_code=status.HTTP_201_CREATED)
    async def create_audit_entry(
        body: ManualEntryRequest,
        request: Request,
        identity: ActorIdentity = Depends(requires(AUTHENTICATED)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        missing = [
            name
            for name, value in (
                ("action", body.action),
                ("resource", body.resource),
                ("resourceType", body.resource_type),
            )
            if not value.strip()
        ]
        if missing:
            raise ValidationError(
                [f"{name} is required" for name in missing],
                message="Missing required fields.",
            )

        entry_id = await engine.audit.log_entry(
            AuditEntryInput(
                user_id=identity.id,
                user_name=identity.name,
                user_role=identity.role,
                session_id=identity.id,
                action=body.action,
                resource=body.resource,
                resource_id=body.resource_id,
                resource_type=body.resource_type,
                before_state=body.before_state,
                after_state=body.after_state,
                ip_address=_client_ip(request),
                user_agent=request.headers.get("user-agent", ""),
                endpoint=request.url.path,
                method=request.method,
                status_code=status.HTTP_201_CREATED,
                compliance_relevant=True,
                description=f"Manual audit trail entry: {body.action} on {body.resource}",
                metadata=body.metadata,
                tags=frozenset({"manual_entry", *body.tags}),
                correlation_id=body.correlation_id,
                parent_action_id=body.parent_action_id,
            )
        )
        return {"success": True, "data": {"entryId": entry_id}}

    @router.get("/permissions")
    async def list_permissions(
        category: str | None = None,
        _: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        if category:
            permissions = engine.catalog.get_permissions_by_category(category)
        else:
            permissions = engine.catalog.get_all_permissions()
        return {
            "success": True,
            "permissions": [_dump(p) for p in permissions],
            "categories": engine.catalog.get_permission_categories(),
        }

    @router.post("/permissions", status_code=status.HTTP_201_CREATED)
    async def create_permission(
        body: PermissionRequest,
        identity: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        created = await engine.create_permission(identity, Permission(**body.model_dump()))
        return {"success": True, "data": _dump(created)}

    @router.get("/permissions/{permission_id}")
    async def get_permission(
        permission_id: str,
        _: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        permission = engine.catalog.get_permission_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission", permission_id)
        return {"success": True, "data": _dump(permission)}

    @router.put("/permissions/{permission_id}")
    async def update_permission(
        permission_id: str,
        body: PermissionUpdateRequest,
        identity: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        updated = await engine.update_permission(
            identity,
            Permission(id=permission_id, **body.model_dump()),
        )
        return {"success": True, "data": _dump(updated)}

    @router.delete("/permissions/{permission_id}")
    async def delete_permission(
        permission_id: str,
        identity: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        deleted = await engine.delete_permission(identity, permission_id)
        return {"success": True, "data": _dump(deleted)}

    @router.get("/roles")
    async def list_roles(
        _: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        return {
            "success": True,
            "roles": [_dump(row) for row in engine.catalog.list_role_permissions()],
            "availableRoles": sorted(ROLE_VALUES),
        }

    @router.put("/roles")
    async def update_role(
        body: RoleUpdateRequest,
        identity: ActorIdentity = Depends(requires(SUPER_ADMIN_ONLY)),
        engine: ComplianceEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        granted = await engine.update_role_permissions(identity, body.role, body.permissions)
        return {"success": True, "data": {"role": body.role, "permissions": sorted(granted)}}

    return router


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    engine: ComplianceEngine | None = None,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    """
    Build a FastAPI application around ``engine``.

    The engine is started and shut down by the application lifespan.

    Args:
        engine: The engine to serve. A default in-memory engine is built
            when omitted.
        identity_provider: Resolves the acting identity from a request.
            Defaults to :func:`header_identity_provider`.

    Returns:
        The configured :class:`fastapi.FastAPI` application.
    """
    compliance = engine or ComplianceEngine()
    http_config = compliance.config.http

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await compliance.start()
        yield
        await compliance.shutdown()

    app = FastAPI(title="AumOS Compliance", version="0.1.0", lifespan=lifespan)
    app.state.compliance_engine = compliance
    app.state.identity_provider = identity_provider or header_identity_provider

    @app.exception_handler(AumOSComplianceError)
    async def handle_compliance_error(request: Request, exc: AumOSComplianceError) -> JSONResponse:
        error: dict[str, Any] = {"code": exc.code, "message": exc.message}
        details = exc.details()
        if details is not None:
            error["details"] = details
        return JSONResponse(status_code=exc.http_status, content={"error": error})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return await handle_compliance_error(
            request, ValidationError(_violations(exc), message="Invalid request.")
        )

    @app.middleware("http")
    async def audit_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        if http_config.audit_requests:
            query = dict(request.query_params)
            metadata = {
                "referer": request.headers.get("referer"),
                "origin": request.headers.get("origin"),
                "content_type": request.headers.get("content-type"),
                "query_params": query or None,
            }
            await compliance.audit_request(
                app.state.identity_provider(request),
                request.method,
                request.url.path,
                response.status_code,
                ip_address=_client_ip(request),
                user_agent=request.headers.get("user-agent", ""),
                metadata={k: v for k, v in metadata.items() if v is not None},
            )
        return response

    app.include_router(build_router(), prefix=http_config.api_prefix)
    logger.debug("compliance_app_created", extra={"prefix": http_config.api_prefix})
    return app
