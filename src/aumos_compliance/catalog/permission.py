# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Permission(BaseModel):
    """
    A named, catalog-registered capability.

    Once ``is_system_permission`` is True the record can never be mutated or
    deleted through the catalog, whatever the caller's privilege.

    Attributes:
        id: Unique identifier (lowercase letters and underscores).
        name: Human-readable name.
        description: What the permission grants.
        category: Grouping used by administration screens.
        is_system_permission: Protects the record from edits and deletion.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    description: str
    category: str
    is_system_permission: bool = False


class RolePermissions(BaseModel):
    """One row of the role → permission mapping."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    role: str
    permissions: list[str]


class CatalogSnapshot(BaseModel):
    """
    Serialisable state of the permission catalog.

    This is the unit exchanged with the storage collaborator through
    ``load_catalog`` / ``save_catalog``. The super_admin role is never part
    of ``role_permissions``.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    permissions: list[Permission] = Field(default_factory=list)
    role_permissions: dict[str, list[str]] = Field(default_factory=dict)
