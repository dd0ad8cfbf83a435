from rahat_dashboard.auth.roles import RahatRole, SystemRole, WorkflowAction, stage_display_name
from rahat_dashboard.auth.access import (
    ADMIN_GATE, COLLECTOR_GATE, TEHSILDAR_GATE, ROLE_ACCESS, DEFAULT_ACCESS,
    is_allowed, passes_gate, path_matches,
)

__all__ = [
    "RahatRole", "SystemRole", "WorkflowAction", "stage_display_name",
    "ADMIN_GATE", "COLLECTOR_GATE", "TEHSILDAR_GATE", "ROLE_ACCESS", "DEFAULT_ACCESS",
    "is_allowed", "passes_gate", "path_matches",
]
