"""
API Dependencies — dashboard state, page guards, API guards.

Pages and API routes differ in how a failed check ends:

  page guard  (require_page)  → AuthenticationRequired / AccessDenied,
                                 turned into a 303 redirect by main.py
  API guard   (require_api)   → 401 / 403 JSON, no navigation

Both run the same AuthContext, so a role sees the same answer either way.
"""

import logging
from typing import AsyncGenerator, Collection

from fastapi import Depends, HTTPException, Request

from rahat_dashboard.config import settings
from rahat_dashboard.state import DashboardState, SessionRegistry

logger = logging.getLogger(__name__)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_dashboard_state(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> AsyncGenerator[DashboardState, None]:
    """The caller's dashboard state; throwaway states are closed afterwards."""
    token = request.cookies.get(settings.session_cookie_name)
    state = await registry.get_or_create(token)
    request.state.dashboard = state
    try:
        yield state
    finally:
        if not token:
            await state.aclose()


# ── Page guard ───────────────────────────────────────────────────────────────

def require_page(gate: Collection[str] | None = None):
    """
    FastAPI dependency guarding a dashboard page by path (and optional gate).

    Usage:
        @router.get("/admin")
        async def admin_page(state: DashboardState = Depends(require_page(ADMIN_GATE))):
            ...
    """
    async def _check(request: Request, state: DashboardState = Depends(get_dashboard_state)) -> DashboardState:
        await state.context.init()
        state.context.require_page(request.url.path, gate=gate)
        return state
    return _check


# ── API guard ────────────────────────────────────────────────────────────────

def require_api(gate: Collection[str] | None = None):
    """FastAPI dependency for JSON endpoints: 401 without a session, 403 outside the gate."""
    async def _check(state: DashboardState = Depends(get_dashboard_state)) -> DashboardState:
        await state.context.init()
        if not state.context.is_authenticated:
            raise HTTPException(status_code=401, detail="You are not authenticated")
        if gate is not None and not state.context.passes_gate(gate):
            needed = ", ".join(sorted(gate))
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient role: requires one of [{needed}]",
            )
        return state
    return _check
