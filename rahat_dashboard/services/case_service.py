"""
Case Service

Reads and mutations for Rahat relief cases:
- Paginated case lists (all, my-pending, ready-to-close)
- Case detail and workflow status
- Workflow action submission
- Case creation, document linking, file upload
- Terminal closure with payment details
- Overview statistics and PDF downloads

The backend owns every state transition. This service never decides which
workflow actions are legal: it shows what /workflow/status offers and
submits what the user picked. Mutations are never retried, and each one
invalidates the cached views it can change.
"""

import logging
from typing import Any

from rahat_dashboard.client.cache import (
    DETAIL_STALE,
    LIST_STALE,
    REFERENCE_STALE,
    SEARCH_STALE,
    STATS_STALE,
    WORKFLOW_STATUS_STALE,
    QueryCache,
    freeze,
)
from rahat_dashboard.client.http import ApiClient
from rahat_dashboard.schemas.schemas import (
    Case,
    CasePage,
    CaseStats,
    ClosedCase,
    CloseCaseRequest,
    CloseOutcome,
    CreateCaseRequest,
    CreatedCase,
    DocsPage,
    DocumentType,
    Envelope,
    FileUpload,
    LinkDocumentsRequest,
    LinkedDocuments,
    Payment,
    ThanaIncharge,
    UploadedFile,
    WorkflowActionRequest,
    WorkflowStage,
    WorkflowStatus,
    WorkflowUpdate,
)

logger = logging.getLogger(__name__)

CASES = ("cases",)
ALL_CASES = ("cases", "all")
PENDING_CASES = ("cases", "pending")
READY_TO_CLOSE = ("cases", "ready-to-close")
CASE_STATS = ("cases", "stats")


def _unwrap(model, body: Any):
    return Envelope[model].model_validate(body).data


def _case_key(case_id: str) -> tuple:
    return ("cases", case_id)


class CaseService:
    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    # ── Lists ────────────────────────────────────────────────────────────

    async def list_cases(
        self,
        *,
        stage: str | None = None,
        status: str | None = None,
        created_by: str | None = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str | None = None,
        sort_order: str | None = None,
        search: str | None = None,
    ) -> CasePage[Case]:
        """All cases (collector view)."""
        params = {
            "stage": stage,
            "status": status,
            "createdBy": created_by,
            "page": page,
            "limit": limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "search": search,
        }

        async def _load():
            return _unwrap(CasePage[Case], await self.api.get_json("/v1/cases", params))

        return await self.cache.fetch((*ALL_CASES, freeze(params)), _load, stale_time=LIST_STALE)

    async def pending_cases(self, *, page: int = 1, limit: int = 10) -> CasePage[Case]:
        """Cases waiting on the signed-in user's role."""
        params = {"page": page, "limit": limit}

        async def _load():
            return _unwrap(CasePage[Case], await self.api.get_json("/v1/cases/my-pending", params))

        return await self.cache.fetch((*PENDING_CASES, freeze(params)), _load, stale_time=DETAIL_STALE)

    async def ready_to_close(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> DocsPage[Case]:
        params = {"page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order}

        async def _load():
            return _unwrap(DocsPage[Case], await self.api.get_json("/v1/cases/ready-to-close", params))

        return await self.cache.fetch((*READY_TO_CLOSE, freeze(params)), _load, stale_time=LIST_STALE)

    async def search_thana_incharge(self, q: str = "", *, page: int = 1, limit: int = 50) -> DocsPage[ThanaIncharge]:
        params = {"page": page, "limit": limit, "q": q}

        async def _load():
            body = await self.api.get_json("/v1/cases/search/thana-incharge", params)
            return _unwrap(DocsPage[ThanaIncharge], body)

        return await self.cache.fetch(
            ("thana-incharge", "search", freeze(params)), _load, stale_time=SEARCH_STALE,
        )

    # ── Detail ───────────────────────────────────────────────────────────

    async def get_case(self, case_id: str, *, force: bool = False) -> Case:
        async def _load():
            return _unwrap(Case, await self.api.get_json(f"/v1/cases/{case_id}"))

        return await self.cache.fetch(_case_key(case_id), _load, stale_time=DETAIL_STALE, force=force)

    async def get_workflow_status(self, case_id: str) -> WorkflowStatus:
        """Stage, status and the actions the current actor may submit."""
        async def _load():
            body = await self.api.get_json(f"/v1/cases/{case_id}/workflow/status")
            return _unwrap(WorkflowStatus, body)

        return await self.cache.fetch(
            (*_case_key(case_id), "workflow-status"), _load, stale_time=WORKFLOW_STATUS_STALE,
        )

    async def stats(self) -> CaseStats:
        async def _load():
            return _unwrap(CaseStats, await self.api.get_json("/v1/cases/stats/overview"))

        return await self.cache.fetch(CASE_STATS, _load, stale_time=STATS_STALE)

    async def workflow_stages(self) -> list[WorkflowStage]:
        async def _load():
            return _unwrap(list[WorkflowStage], await self.api.get_json("/v1/cases/workflow/stages"))

        return await self.cache.fetch(("cases", "workflow-stages"), _load, stale_time=REFERENCE_STALE)

    async def document_types(self) -> list[DocumentType]:
        async def _load():
            return _unwrap(list[DocumentType], await self.api.get_json("/v1/cases/documents/types"))

        return await self.cache.fetch(("cases", "document-types"), _load, stale_time=REFERENCE_STALE)

    async def case_pdf(self, case_id: str) -> bytes:
        return await self.api.get_bytes(f"/v1/cases/{case_id}/pdf")

    async def final_case_pdf(self, case_id: str) -> bytes:
        return await self.api.get_bytes(f"/v1/cases/{case_id}/final-pdf")

    # ── Mutations ────────────────────────────────────────────────────────

    async def create_case(self, request: CreateCaseRequest | dict) -> CreatedCase:
        """Tehsildar opens a new case against a thana-incharge."""
        if not isinstance(request, CreateCaseRequest):
            request = CreateCaseRequest.model_validate(request)
        body = await self.api.post_json("/v1/cases", request.to_wire())
        created = _unwrap(CreatedCase, body)
        self.cache.invalidate(CASES)
        logger.info("Created case %s", created.case_id, extra={"case_id": created.case_id})
        return created

    async def submit_workflow_action(
        self, case_id: str, request: WorkflowActionRequest | dict,
    ) -> WorkflowUpdate:
        """
        Submit one workflow transition.

        Not idempotent: a failure is raised to the caller as-is (server
        title/message intact) and is never retried here.
        """
        if not isinstance(request, WorkflowActionRequest):
            request = WorkflowActionRequest.model_validate(request)
        body = await self.api.put_json(f"/v1/cases/{case_id}/workflow", request.to_wire())
        update = _unwrap(WorkflowUpdate, body)
        self._invalidate_case(case_id, update.case_id)
        logger.info(
            "Workflow %s on %s -> %s/%s",
            request.action.value, case_id, update.stage, update.status.value,
            extra={"case_id": case_id},
        )
        return update

    async def upload_file(self, upload: FileUpload) -> UploadedFile:
        data = {
            "uploadedFor": upload.uploaded_for,
            "entityType": upload.entity_type,
            "description": upload.description,
            "tags": upload.tags,
            "isPublic": "true" if upload.is_public else "false",
        }
        files = {"file": (upload.filename, upload.content, upload.content_type)}
        body = await self.api.post_multipart("/v1/files/static/upload", data=data, files=files)
        return _unwrap(UploadedFile, body)

    async def link_documents(self, case_id: str, request: LinkDocumentsRequest | dict) -> LinkedDocuments:
        if not isinstance(request, LinkDocumentsRequest):
            request = LinkDocumentsRequest.model_validate(request)
        body = await self.api.post_json(f"/v1/cases/{case_id}/documents", request.to_wire())
        self.cache.invalidate(CASES)
        return _unwrap(LinkedDocuments, body)

    async def close_case(self, case_id: str, request: CloseCaseRequest | dict) -> CloseOutcome:
        """
        Close a case with its payment details.

        The form is validated before anything goes on the wire. A case that
        is already closed yields an `already_closed` outcome, every time,
        without another close request being sent.
        """
        if not isinstance(request, CloseCaseRequest):
            request = CloseCaseRequest.model_validate(request)

        case = await self.get_case(case_id, force=True)
        if case.is_closed:
            logger.info("Case %s already closed", case.case_id, extra={"case_id": case.case_id})
            return CloseOutcome(
                outcome="already_closed",
                case_id=case.case_id,
                payment_id=_payment_ref(case.payment_id),
                remarks=case.remarks,
            )

        body = await self.api.post_json(f"/v1/cases/{case.id}/close", request.to_wire())
        closed = _unwrap(ClosedCase, body)
        self._invalidate_case(case_id, case.id, case.case_id)
        logger.info(
            "Closed case %s with payment %s", closed.case_id, closed.payment_id,
            extra={"case_id": closed.case_id},
        )
        return CloseOutcome(
            outcome="closed",
            case_id=closed.case_id,
            payment_id=closed.payment_id,
            remarks=closed.remarks,
        )

    def _invalidate_case(self, *case_ids: str) -> None:
        # A case is addressable by both its caseId and its internal id.
        for case_id in {c for c in case_ids if c}:
            self.cache.invalidate(_case_key(case_id))
        self.cache.invalidate_many(PENDING_CASES, ALL_CASES, READY_TO_CLOSE, CASE_STATS)


def _payment_ref(payment: Payment | str | None) -> str | None:
    if isinstance(payment, Payment):
        return payment.id
    return payment

