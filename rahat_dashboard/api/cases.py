"""
Cases API — Rahat relief cases

Workflow status and actions, case creation, documents, file upload and
PDF downloads. Backend rejections are passed through verbatim by the
ApiError handler in main.py; nothing here retries a mutation.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response

from rahat_dashboard.api.deps import require_api
from rahat_dashboard.auth.access import TEHSILDAR_GATE
from rahat_dashboard.schemas.schemas import (
    CreateCaseRequest,
    FileUpload,
    LinkDocumentsRequest,
    WorkflowActionRequest,
)
from rahat_dashboard.state import DashboardState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["cases"])


# ── Reference data ───────────────────────────────────────────────────────────

@router.get("/cases/workflow/stages")
async def workflow_stages(state: DashboardState = Depends(require_api())):
    return {"data": await state.cases.workflow_stages()}


@router.get("/cases/documents/types")
async def document_types(state: DashboardState = Depends(require_api())):
    return {"data": await state.cases.document_types()}


@router.get("/search/thana-incharge")
async def search_thana_incharge(
    q: str = Query(""),
    state: DashboardState = Depends(require_api(TEHSILDAR_GATE)),
):
    """Debounced per session; a search overtaken by a newer one returns no data."""
    result = await state.search.search(q)
    if result is None:
        return {"superseded": True, "data": None}
    return {"superseded": False, "data": result}


# ── Case creation ────────────────────────────────────────────────────────────

@router.post("/cases", status_code=201)
async def create_case(body: CreateCaseRequest, state: DashboardState = Depends(require_api(TEHSILDAR_GATE))):
    created = await state.cases.create_case(body)
    return {"message": "Case created successfully", "data": created}


# ── Workflow ─────────────────────────────────────────────────────────────────

@router.get("/cases/{case_id}/workflow")
async def workflow_status(case_id: str, state: DashboardState = Depends(require_api())):
    """Available actions come straight from the backend."""
    return {"data": await state.cases.get_workflow_status(case_id)}


@router.put("/cases/{case_id}/workflow")
async def submit_workflow_action(
    case_id: str,
    body: WorkflowActionRequest,
    state: DashboardState = Depends(require_api()),
):
    update = await state.cases.submit_workflow_action(case_id, body)
    logger.info("%s submitted %s on %s", state.context.actor, body.action.value, case_id)
    return {"message": "Workflow updated successfully!", "data": update}


# ── Documents & files ────────────────────────────────────────────────────────

@router.post("/files/upload", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    uploaded_for: str = Form(..., alias="uploadedFor"),
    entity_type: str = Form(..., alias="entityType"),
    description: str = Form(""),
    tags: str = Form(""),
    is_public: bool = Form(False, alias="isPublic"),
    state: DashboardState = Depends(require_api()),
):
    upload = FileUpload(
        filename=file.filename or "upload",
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
        uploaded_for=uploaded_for,
        entity_type=entity_type,
        description=description,
        tags=tags,
        is_public=is_public,
    )
    return {"data": await state.cases.upload_file(upload)}


@router.post("/cases/{case_id}/documents")
async def link_documents(
    case_id: str,
    body: LinkDocumentsRequest,
    state: DashboardState = Depends(require_api()),
):
    return {"message": "Documents uploaded successfully", "data": await state.cases.link_documents(case_id, body)}


# ── PDFs ─────────────────────────────────────────────────────────────────────

def _pdf(content: bytes, filename: str) -> Response:
    return Response(
        content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/cases/{case_id}/pdf")
async def case_pdf(case_id: str, state: DashboardState = Depends(require_api())):
    return _pdf(await state.cases.case_pdf(case_id), f"case-{case_id}.pdf")


@router.get("/cases/{case_id}/final-pdf")
async def final_case_pdf(case_id: str, state: DashboardState = Depends(require_api())):
    return _pdf(await state.cases.final_case_pdf(case_id), f"case-{case_id}-final.pdf")
