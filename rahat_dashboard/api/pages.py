"""
Dashboard pages — one JSON view per dashboard route.

Every page runs the page guard before it reads anything, so restricted
data is never fetched, let alone returned, for a role that may not see it.
Read failures come back inside the view as an error state.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from rahat_dashboard.api.deps import require_page
from rahat_dashboard.auth.access import ADMIN_GATE, COLLECTOR_GATE
from rahat_dashboard.auth.roles import stage_display_name
from rahat_dashboard.client.cache import settle
from rahat_dashboard.schemas.schemas import CloseCaseRequest, ListUsersParams, PaymentMethod
from rahat_dashboard.state import DashboardState

router = APIRouter(tags=["pages"])

DOCUMENT_UPLOAD_STAGES = frozenset({"doc_upload", "document_upload"})


def _viewer(state: DashboardState) -> dict:
    user = state.context.user
    return {
        "id": user.id,
        "name": user.name,
        "rahatRole": user.rahat_role,
        "jurisdiction": user.jurisdiction,
    }


@router.get("/")
async def home(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    state: DashboardState = Depends(require_page()),
):
    """Cases waiting on the signed-in user."""
    pending = await settle(state.cases.pending_cases(page=page, limit=limit))
    return {"user": _viewer(state), "pending": pending.as_view()}


@router.get("/overview")
async def overview(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str | None = None,
    search: str | None = None,
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] | None = Query(None, alias="sortOrder"),
    state: DashboardState = Depends(require_page()),
):
    stats = await settle(state.cases.stats())
    cases = await settle(state.cases.list_cases(
        page=page, limit=limit, status=status, search=search,
        sort_by=sort_by, sort_order=sort_order,
    ))
    view = stats.as_view()
    if stats.data is not None:
        view["data"] = {
            **stats.data.to_wire(),
            "byStage": [
                {"stage": s.stage, "label": stage_display_name(s.stage), "count": s.count}
                for s in stats.data.by_stage
            ],
        }
    return {"user": _viewer(state), "stats": view, "cases": cases.as_view()}


@router.get("/cases")
async def all_cases(
    stage: str | None = None,
    status: str | None = None,
    created_by: str | None = Query(None, alias="createdBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] | None = Query(None, alias="sortOrder"),
    state: DashboardState = Depends(require_page(COLLECTOR_GATE)),
):
    cases = await settle(state.cases.list_cases(
        stage=stage, status=status, created_by=created_by, page=page, limit=limit,
        sort_by=sort_by, sort_order=sort_order,
    ))
    return {"user": _viewer(state), "cases": cases.as_view()}


@router.get("/ready-to-close")
async def ready_to_close(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: Literal["asc", "desc"] | None = Query(None, alias="sortOrder"),
    state: DashboardState = Depends(require_page()),
):
    cases = await settle(state.cases.ready_to_close(
        page=page, limit=limit, sort_by=sort_by, sort_order=sort_order,
    ))
    return {"user": _viewer(state), "cases": cases.as_view()}


@router.get("/cases/{case_id}")
async def case_detail(case_id: str, state: DashboardState = Depends(require_page())):
    case = await settle(state.cases.get_case(case_id))
    view: dict = {"user": _viewer(state), "case": case.as_view()}
    if case.is_error:
        return view

    item = case.data
    workflow = await settle(state.cases.get_workflow_status(item.id))
    view.update({
        "stageLabel": stage_display_name(item.stage),
        "workflow": workflow.as_view(),
        "canClose": not item.is_closed,
        "canUploadDocuments": item.stage in DOCUMENT_UPLOAD_STAGES,
    })
    return view


@router.get("/cases/{case_id}/close")
async def close_case_form(case_id: str, state: DashboardState = Depends(require_page())):
    case = await settle(state.cases.get_case(case_id))
    view: dict = {
        "user": _viewer(state),
        "case": case.as_view(),
        "paymentMethods": [{"value": m.value, "label": m.label} for m in PaymentMethod],
    }
    if not case.is_error:
        view["alreadyClosed"] = case.data.is_closed
        view["stageLabel"] = stage_display_name(case.data.stage)
    return view


@router.post("/cases/{case_id}/close")
async def close_case_submit(
    case_id: str,
    body: CloseCaseRequest,
    state: DashboardState = Depends(require_page()),
):
    """Close the case; an already-closed case is reported, not re-closed."""
    outcome = await state.cases.close_case(case_id, body)
    return {
        "outcome": outcome,
        "message": (
            "This case has already been closed and cannot be closed again."
            if outcome.already_closed
            else "Case closed successfully!"
        ),
        "redirectTo": f"/cases/{case_id}",
    }


@router.get("/admin")
async def admin_page(
    search_value: str | None = Query(None, alias="searchValue"),
    search_field: Literal["email", "name"] | None = Query(None, alias="searchField"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    state: DashboardState = Depends(require_page(ADMIN_GATE)),
):
    params = ListUsersParams(
        search_value=search_value,
        search_field=search_field,
        search_operator="contains" if search_value else None,
        limit=limit,
        offset=offset,
    )
    users = await settle(state.admin.list_users(params))
    return {"user": _viewer(state), "users": users.as_view()}
