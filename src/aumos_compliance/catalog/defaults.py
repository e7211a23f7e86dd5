# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Seed permissions and role mappings used when the store holds no catalog."""
from __future__ import annotations

from aumos_compliance.catalog.permission import CatalogSnapshot, Permission
from aumos_compliance.types import Role

# (id, name, description, category, is_system_permission)
_PERMISSIONS: tuple[tuple[str, str, str, str, bool], ...] = (
    ("manage_permissions", "Manage Permissions", "Create, edit and delete permissions and role mappings", "system", True),
    ("manage_system_settings", "Manage System Settings", "Change system-wide configuration", "system", True),
    ("manage_users", "Manage Users", "Create, edit and deactivate user accounts", "user_management", True),
    ("view_all_logs", "View All Logs", "Read the complete activity and audit trail", "logs", True),
    ("view_logs", "View Logs", "Read activity logs for assigned work", "logs", False),
    ("create_audit", "Create Audit", "Open new audits", "audit", False),
    ("approve_audits", "Approve Audits", "Sign off completed audits", "audit", False),
    ("view_assigned_audits", "View Assigned Audits", "Read audits assigned to the user", "audit", False),
    ("view_audit_status", "View Audit Status", "Follow the status of audits concerning the user", "audit", False),
    ("assign_tasks", "Assign Tasks", "Assign audit tasks to auditors", "audit", False),
    ("flag_activities", "Flag Activities", "Flag suspicious activities for review", "audit", False),
    ("view_reports", "View Reports", "Read audit reports", "reporting", False),
    ("submit_reports", "Submit Reports", "Submit audit reports for approval", "reporting", False),
    ("approve_reports", "Approve Reports", "Approve submitted reports", "reporting", False),
    ("manage_reports", "Manage Reports", "Edit and archive reports", "reporting", False),
    ("download_reports", "Download Reports", "Download published reports", "reporting", False),
    ("export_data", "Export Data", "Export audit data", "reporting", False),
    ("export_executive_reports", "Export Executive Reports", "Export executive summaries", "reporting", False),
    ("view_dashboards", "View Dashboards", "Read management dashboards", "management", False),
    ("view_summaries", "View Summaries", "Read audit summaries", "management", False),
    ("view_compliance_scores", "View Compliance Scores", "Read compliance scores", "management", False),
    ("manage_alerts", "Manage Alerts", "Acknowledge and resolve alerts", "security", False),
    ("request_documents", "Request Documents", "Request evidence documents from departments", "documents", False),
    ("upload_evidence", "Upload Evidence", "Attach evidence to audits", "documents", False),
    ("upload_documents", "Upload Documents", "Upload requested documents", "documents", False),
    ("view_notifications", "View Notifications", "Read notifications", "communication", False),
    ("respond_requests", "Respond to Requests", "Answer auditor requests", "communication", False),
    ("view_requests", "View Requests", "Read incoming document requests", "communication", False),
    ("respond_to_auditors", "Respond to Auditors", "Reply to auditor questions", "communication", False),
    ("track_submissions", "Track Submissions", "Follow the status of submitted documents", "communication", False),
)

_ROLE_PERMISSIONS: dict[str, list[str]] = {
    Role.AUDIT_MANAGER.value: [
        "create_audit",
        "assign_tasks",
        "view_reports",
        "manage_users",
        "view_all_logs",
        "approve_audits",
        "export_data",
        "manage_reports",
        "manage_alerts",
    ],
    Role.AUDITOR.value: [
        "view_logs",
        "submit_reports",
        "request_documents",
        "flag_activities",
        "view_assigned_audits",
        "upload_evidence",
    ],
    Role.MANAGEMENT.value: [
        "view_dashboards",
        "approve_reports",
        "view_summaries",
        "view_compliance_scores",
        "export_executive_reports",
    ],
    Role.CLIENT.value: [
        "view_notifications",
        "respond_requests",
        "view_audit_status",
        "download_reports",
    ],
    Role.DEPARTMENT.value: [
        "upload_documents",
        "view_requests",
        "respond_to_auditors",
        "track_submissions",
    ],
}


def default_catalog() -> CatalogSnapshot:
    """Return a fresh snapshot of the default permission catalog."""
    return CatalogSnapshot(
        permissions=[
            Permission(
                id=permission_id,
                name=name,
                description=description,
                category=category,
                is_system_permission=is_system,
            )
            for permission_id, name, description, category, is_system in _PERMISSIONS
        ],
        role_permissions={role: list(ids) for role, ids in _ROLE_PERMISSIONS.items()},
    )
