"""Admin API — user management for collectors and admins."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from rahat_dashboard.api.deps import require_api
from rahat_dashboard.auth.access import ADMIN_GATE
from rahat_dashboard.schemas.schemas import (
    BanUserRequest,
    CreateUserRequest,
    ListUsersParams,
    SetPasswordRequest,
    UpdateUserRequest,
)
from rahat_dashboard.state import DashboardState

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users")
async def list_users(
    search_value: str | None = Query(None, alias="searchValue"),
    search_field: Literal["email", "name"] | None = Query(None, alias="searchField"),
    search_operator: Literal["contains", "starts_with", "ends_with"] | None = Query(None, alias="searchOperator"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_direction: Literal["asc", "desc"] | None = Query(None, alias="sortDirection"),
    state: DashboardState = Depends(require_api(ADMIN_GATE)),
):
    params = ListUsersParams(
        search_value=search_value,
        search_field=search_field,
        search_operator=search_operator,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    return await state.admin.list_users(params)


@router.post("/users", status_code=201)
async def create_user(body: CreateUserRequest, state: DashboardState = Depends(require_api(ADMIN_GATE))):
    return {"user": await state.admin.create_user(body)}


@router.post("/users/update")
async def update_user(body: UpdateUserRequest, state: DashboardState = Depends(require_api(ADMIN_GATE))):
    return {"user": await state.admin.update_user(body)}


@router.post("/users/ban")
async def ban_user(body: BanUserRequest, state: DashboardState = Depends(require_api(ADMIN_GATE))):
    return {"user": await state.admin.ban_user(body)}


@router.post("/users/password")
async def set_user_password(body: SetPasswordRequest, state: DashboardState = Depends(require_api(ADMIN_GATE))):
    return {"status": await state.admin.set_user_password(body)}


@router.get("/users/{user_id}/sessions")
async def list_user_sessions(user_id: str, state: DashboardState = Depends(require_api(ADMIN_GATE))):
    return await state.admin.list_user_sessions(user_id)
