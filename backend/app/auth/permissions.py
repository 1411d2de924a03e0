"""Role-based permissions.

Design:
  - Each role has a fixed set of permissions (defined here, not in DB).
  - The effective set is embedded in the JWT so most checks are token-only
    (no DB roundtrip).
  - Staff cannot edit records directly; they submit edit requests that an
    admin or supervisor reviews.

Permission naming: `<resource>.<action>`
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

ALL_PERMISSIONS: set[str] = {
    # User management
    "users.manage",

    # Business records
    "records.create",
    "records.edit",           # edit directly, without an edit request
    "records.delete",

    # Edit requests
    "edit_requests.create",
    "edit_requests.review",   # approve / reject
    "edit_requests.view_all", # see requests raised by other users

    # Reports & settings
    "reports.read",
    "reports.generate",
    "settings.manage",
}


# ── Role → permissions ──────────────────────────────────────

ROLE_DEFAULTS: dict[str, set[str]] = {
    "admin": ALL_PERMISSIONS.copy(),

    "supervisor": {
        "records.create", "records.edit",
        "edit_requests.create", "edit_requests.review", "edit_requests.view_all",
        "reports.read",
    },

    "staff": {
        "records.create",
        "edit_requests.create",
    },
}


# ── Resolution ──────────────────────────────────────────────

def resolve_permissions(role: str) -> list[str]:
    """Return the sorted permission list for a role (stable JWT claims)."""
    return sorted(ROLE_DEFAULTS.get(role, set()))


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    """Check whether a permission set satisfies a requirement."""
    return required in user_permissions


def can_edit_directly(role: str) -> bool:
    """Admins and supervisors edit records; everyone else files a request."""
    return "records.edit" in ROLE_DEFAULTS.get(role, set())


def can_review_edit_requests(role: str) -> bool:
    return "edit_requests.review" in ROLE_DEFAULTS.get(role, set())
