# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Framework integrations for aumos-compliance.

Each integration is imported from its own module so that the optional
framework dependency is only needed when that integration is used::

    from aumos_compliance.integrations.fastapi_app import create_app
"""
from __future__ import annotations
