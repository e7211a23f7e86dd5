# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from aumos_compliance.classification.engine import (
    Classification,
    classify,
    determine_action,
    determine_data_access_risk,
    determine_data_classification,
    determine_resource,
    determine_risk_level,
    extract_resource_id,
    generate_tags,
    is_compliance_relevant,
    should_audit,
    slugify_path,
)
from aumos_compliance.classification.rules import RequestFacts, Rule, first_match

__all__ = [
    "Classification",
    "RequestFacts",
    "Rule",
    "classify",
    "determine_action",
    "determine_data_access_risk",
    "determine_data_classification",
    "determine_resource",
    "determine_risk_level",
    "extract_resource_id",
    "first_match",
    "generate_tags",
    "is_compliance_relevant",
    "should_audit",
    "slugify_path",
]
