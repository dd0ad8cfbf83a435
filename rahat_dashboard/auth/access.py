"""
Page access policy — which dashboard routes each role may open.

Two independent policies:

1. ROLE_ACCESS: rahatRole → URL patterns. Patterns may carry a single
   `[id]` segment that matches any one non-slash path segment. Roles
   without an entry fall back to DEFAULT_ACCESS.

2. Page gates: allow-lists checked by individual pages (admin, all-cases,
   tehsildar tools). These include "admin", which is a system role and
   never a rahatRole value, so for domain users the admin entry is inert.

A guarded page must pass both.
"""

import re

from rahat_dashboard.auth.roles import RahatRole

WILDCARD = "[id]"
_SEGMENT = "[^/]+"


ROLE_ACCESS: dict[RahatRole, tuple[str, ...]] = {
    RahatRole.COLLECTOR: (
        "/",
        "/overview",
        "/cases",
        "/admin",
        "/cases/[id]",
        "/cases/[id]/close",
    ),
    RahatRole.TEHSILDAR: (
        "/",
        "/ready-to-close",
        "/cases/[id]",
        "/cases/[id]/close",
    ),
}

DEFAULT_ACCESS: tuple[str, ...] = ("/", "/cases/[id]")


# ── Page gates ──
ADMIN_GATE: frozenset[str] = frozenset({"admin", "collector"})
COLLECTOR_GATE: frozenset[str] = frozenset({"collector", "admin"})
TEHSILDAR_GATE: frozenset[str] = frozenset({"tehsildar", "collector", "admin"})


def path_matches(path: str, pattern: str) -> bool:
    """Exact match, or a full match with `[id]` standing for one segment."""
    if path == pattern:
        return True
    if WILDCARD not in pattern:
        return False
    regex = _SEGMENT.join(re.escape(part) for part in pattern.split(WILDCARD))
    return re.fullmatch(regex, path) is not None


def _coerce_role(role) -> RahatRole | None:
    if isinstance(role, RahatRole):
        return role
    try:
        return RahatRole(role)
    except ValueError:
        return None


def allowed_patterns(role: RahatRole | str | None) -> tuple[str, ...]:
    resolved = _coerce_role(role)
    if resolved is None:
        return DEFAULT_ACCESS
    return ROLE_ACCESS.get(resolved, DEFAULT_ACCESS)


def is_allowed(role: RahatRole | str | None, path: str) -> bool:
    """True if `role` may view `path`. Never raises; bad input is a denial."""
    if not isinstance(path, str):
        return False
    return any(path_matches(path, pattern) for pattern in allowed_patterns(role))


def passes_gate(allowed_roles, rahat_role: RahatRole | str | None) -> bool:
    """
    Page-gate check. An empty allow-list admits everyone; otherwise the
    user's rahatRole value must be listed.
    """
    if not allowed_roles:
        return True
    if rahat_role is None:
        return False
    value = rahat_role.value if isinstance(rahat_role, RahatRole) else rahat_role
    return value in allowed_roles
