# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from aumos_compliance.catalog.defaults import default_catalog
from aumos_compliance.catalog.manager import PermissionCatalog
from aumos_compliance.catalog.permission import CatalogSnapshot, Permission, RolePermissions

__all__ = [
    "CatalogSnapshot",
    "Permission",
    "PermissionCatalog",
    "RolePermissions",
    "default_catalog",
]
