"""Shared test fixtures: an in-memory Rahat backend behind httpx.MockTransport."""

import json
import re
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rahat_dashboard.api.deps import get_registry
from rahat_dashboard.client.cache import QueryCache, RetryPolicy
from rahat_dashboard.client.http import ApiClient, create_http_client
from rahat_dashboard.config import settings
from rahat_dashboard.main import app
from rahat_dashboard.services.case_service import CaseService
from rahat_dashboard.state import SessionRegistry

BACKEND_URL = "http://rahat.test/api"
COOKIE = settings.session_cookie_name

# stage → role that acts on it; a case walks this list in order
STAGE_ROLES = [
    ("tehsildar_approval", "tehsildar"),
    ("sdm_review", "sdm"),
    ("rahat_shakha_approval", "rahat-shakha"),
    ("oic_approval", "oic"),
    ("additional_collector_approval", "additional-collector"),
    ("collector_approval", "collector"),
]
READY_TO_CLOSE_STAGE = "payment_pending"

USERS = {
    "tehsildar@rahat.gov.in": {"id": "u-teh", "name": "T. Verma", "rahatRole": "tehsildar"},
    "collector@rahat.gov.in": {"id": "u-col", "name": "C. Singh", "rahatRole": "collector"},
    "sdm@rahat.gov.in": {"id": "u-sdm", "name": "S. Rao", "rahatRole": "sdm"},
}
PASSWORD = "Password123!"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_case(case_id: str = "RAHAT-0001", *, stage: str = "tehsildar_approval", status: str = "pending", **extra) -> dict:
    role = dict(STAGE_ROLES).get(stage, "tehsildar")
    case = {
        "_id": f"oid-{case_id}",
        "caseId": case_id,
        "victim": {
            "name": "Ram Lal",
            "dob": "1970-01-01",
            "dod": "2024-05-02",
            "address": "Village Kheda, Tehsil Sadar",
            "description": "Drowning during flood",
            "relative": {"name": "Sita Devi", "contact": "9876543210", "relation": "wife"},
        },
        "stage": stage,
        "status": status,
        "currentRoles": [role],
        "roleUserMap": {"tehsildar": "u-teh", "collector": "u-col"},
        "documents": [],
        "remarks": [],
        "paymentId": None,
        "createdBy": "u-teh",
        "createdAt": _now(),
        "updatedAt": _now(),
    }
    case.update(extra)
    return case


class FakeRahatBackend:
    """Just enough of the Rahat REST API to drive the dashboard end to end."""

    def __init__(self):
        self.cases: dict[str, dict] = {}
        self.sessions: dict[str, str] = {}  # token -> email
        self.calls: list[tuple[str, str]] = []
        self.fail_next: list[httpx.Response] = []
        self.request_ids: list[str | None] = []
        self.users: list[dict] = [
            {"id": info["id"], "email": email, "name": info["name"], "role": "user", "rahatRole": info["rahatRole"]}
            for email, info in USERS.items()
        ]

    # ── helpers ──

    def add_case(self, case: dict) -> dict:
        self.cases[case["_id"]] = case
        return case

    def login(self, email: str) -> str:
        token = uuid4().hex
        self.sessions[token] = email
        return token

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p == path)

    def _find(self, ref: str) -> dict | None:
        if ref in self.cases:
            return self.cases[ref]
        return next((c for c in self.cases.values() if c["caseId"] == ref), None)

    def _user(self, request: httpx.Request) -> dict | None:
        token = request.headers.get("cookie", "")
        match = re.search(rf"{re.escape(COOKIE)}=([^;]+)", token)
        if not match or match.group(1) not in self.sessions:
            return None
        email = self.sessions[match.group(1)]
        return {**USERS[email], "email": email, "role": "user", "_token": match.group(1)}

    @staticmethod
    def _ok(data, status: int = 200, **headers) -> httpx.Response:
        return httpx.Response(status, json={"message": "ok", "data": data, "success": True}, headers=headers)

    @staticmethod
    def _error(status: int, title: str, message: str, code: str | None = None) -> httpx.Response:
        body = {"title": title, "message": message, "success": False, "status": status}
        if code:
            body["code"] = code
        return httpx.Response(status, json=body)

    def _available_actions(self, case: dict, user: dict) -> list[str]:
        if case["status"] in ("closed", "rejected") or user["rahatRole"] not in case["currentRoles"]:
            return []
        if case["stage"] == "collector_approval":
            return ["approve", "reject"]
        if case["stage"] == READY_TO_CLOSE_STAGE:
            return []
        return ["forward", "reject"]

    def _page(self, docs: list[dict], query) -> dict:
        page, limit = int(query.get("page", 1)), int(query.get("limit", 10))
        chunk = docs[(page - 1) * limit: page * limit]
        pages = max(1, -(-len(docs) // limit))
        return {
            "docs": chunk, "total": len(docs), "page": page, "limit": limit,
            "totalPages": pages, "hasNextPage": page < pages, "hasPreviousPage": page > 1,
        }

    def _docs_page(self, docs: list[dict], query) -> dict:
        page, limit = int(query.get("page", 1)), int(query.get("limit", 10))
        pages = max(1, -(-len(docs) // limit))
        return {
            "docs": docs[(page - 1) * limit: page * limit], "totalDocs": len(docs),
            "page": page, "limit": limit, "totalPages": pages,
            "nextPage": page + 1 if page < pages else None,
            "prevPage": page - 1 if page > 1 else None,
        }

    # ── transport ──

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        self.calls.append((request.method, path))
        self.request_ids.append(request.headers.get("x-request-id"))
        if self.fail_next:
            return self.fail_next.pop(0)

        method, query = request.method, request.url.params

        if (method, path) == ("POST", "/auth/sign-in/email"):
            body = json.loads(request.content)
            if body.get("email") not in USERS or body.get("password") != PASSWORD:
                return self._error(401, "Unauthorized", "Invalid email or password", "INVALID_EMAIL_OR_PASSWORD")
            token = self.login(body["email"])
            user = {**USERS[body["email"]], "email": body["email"], "emailVerified": True}
            return httpx.Response(
                200,
                json={"redirect": False, "token": token, "user": user},
                headers={"set-cookie": f"{COOKIE}={token}; Path=/; HttpOnly"},
            )

        user = self._user(request)

        if (method, path) == ("POST", "/auth/sign-out"):
            if user:
                self.sessions.pop(user["_token"], None)
            return httpx.Response(200, json={"success": True})

        if (method, path) == ("GET", "/auth/get-session"):
            if user is None:
                return httpx.Response(200, json=None)
            expires = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
            public = {k: v for k, v in user.items() if not k.startswith("_")}
            return httpx.Response(200, json={
                "session": {"id": f"sess-{user['_token'][:8]}", "userId": user["id"], "expiresAt": expires},
                "user": public,
            })

        if user is None:
            return self._error(401, "Unauthorized", "Session required")

        if path.startswith("/auth/admin/"):
            return self._admin(method, path.removeprefix("/auth/admin/"), request)

        if method == "GET" and path == "/v1/cases":
            return self._ok(self._page(list(self.cases.values()), query))
        if method == "GET" and path == "/v1/cases/my-pending":
            mine = [c for c in self.cases.values() if user["rahatRole"] in c["currentRoles"] and c["status"] == "pending"]
            return self._ok(self._page(mine, query))
        if method == "GET" and path == "/v1/cases/ready-to-close":
            ready = [c for c in self.cases.values() if c["stage"] == READY_TO_CLOSE_STAGE]
            return self._ok(self._docs_page(ready, query))
        if method == "GET" and path == "/v1/cases/stats/overview":
            values = list(self.cases.values())
            counts = {s: sum(1 for c in values if c["status"] == s) for s in ("pending", "approved", "rejected", "closed")}
            stages: dict[str, int] = {}
            for c in values:
                stages[c["stage"]] = stages.get(c["stage"], 0) + 1
            return self._ok({"total": len(values), **counts, "byStage": [{"stage": s, "count": n} for s, n in stages.items()]})
        if method == "GET" and path == "/v1/cases/search/thana-incharge":
            q = query.get("q", "")
            officers = [{"_id": "u-thana", "name": "Thana Kheda", "rahatRole": "thana-incharge", "jurisdiction": "Kheda"}]
            return self._ok(self._docs_page([o for o in officers if q.lower() in o["name"].lower()], query))
        if method == "POST" and path == "/v1/cases":
            body = json.loads(request.content)
            case = self.add_case(make_case(f"RAHAT-{len(self.cases) + 1:04d}", victim=body["victim"]))
            return self._ok({k: case[k] for k in ("caseId", "stage", "status", "victim", "currentRoles", "roleUserMap", "remarks")}, 201)

        match = re.fullmatch(r"/v1/cases/([^/]+)(/.*)?", path)
        if not match:
            return self._error(404, "Not found", f"No route {path}")
        case = self._find(match.group(1))
        if case is None:
            return self._error(404, "Case not found", f"Case {match.group(1)} does not exist")
        rest = match.group(2) or ""

        if method == "GET" and rest == "":
            return self._ok(case)
        if method == "GET" and rest == "/workflow/status":
            actions = self._available_actions(case, user)
            return self._ok({
                "caseId": case["caseId"], "stage": case["stage"], "status": case["status"],
                "currentRoles": case["currentRoles"], "availableActions": actions,
                "nextStage": None, "canProceed": bool(actions),
            })
        if method == "PUT" and rest == "/workflow":
            body = json.loads(request.content)
            if body["action"] not in self._available_actions(case, user):
                return self._error(
                    400, "Invalid workflow action",
                    f"Action '{body['action']}' is not allowed at stage {case['stage']}",
                )
            self._advance(case, body["action"], body.get("remark", ""), user)
            return self._ok({k: case[k] for k in ("caseId", "stage", "status", "currentRoles", "remarks")})
        if method == "POST" and rest == "/close":
            if case["status"] == "closed":
                return self._error(400, "Case already closed", "This case is already closed")
            body = json.loads(request.content)
            case.update(stage="closed", status="closed", paymentId=f"pay-{case['caseId']}")
            case["remarks"].append(self._remark(len(STAGE_ROLES) + 1, body.get("remark") or "Closed", user))
            return self._ok({k: case[k] for k in ("caseId", "stage", "status", "paymentId", "remarks")})
        if method == "POST" and rest == "/documents":
            body = json.loads(request.content)
            case["documents"].extend({"fileId": d["fileId"], "type": d["documentType"]} for d in body["documents"])
            return self._ok({k: case[k] for k in ("caseId", "documents", "remarks")})
        if method == "GET" and rest in ("/pdf", "/final-pdf"):
            return httpx.Response(200, content=b"%PDF-1.4 fake", headers={"content-type": "application/pdf"})
        return self._error(404, "Not found", f"No route {path}")

    def _admin(self, method: str, op: str, request: httpx.Request) -> httpx.Response:
        if method == "GET" and op == "list-users":
            query = request.url.params
            users = self.users
            if "searchValue" in query:
                field = query.get("searchField", "email")
                users = [u for u in users if query["searchValue"].lower() in u[field].lower()]
            return httpx.Response(200, json={"users": users, "total": len(users)})

        body = json.loads(request.content)
        if op == "create-user":
            user = {
                "id": f"u-{len(self.users) + 1}", "email": body["email"], "name": body["name"],
                "role": "user", **body["data"],
            }
            self.users.append(user)
            return httpx.Response(200, json={"user": user})
        user = next((u for u in self.users if u["id"] == body.get("userId")), None)
        if user is None:
            return self._error(404, "Not found", "User not found")
        if op == "ban-user":
            user.update(banned=True, banReason=body["banReason"])
            return httpx.Response(200, json={"user": user})
        if op == "set-user-password":
            return httpx.Response(200, json={"status": True})
        if op == "list-user-sessions":
            return httpx.Response(200, json={"sessions": []})
        return self._error(404, "Not found", f"No admin route {op}")

    def _remark(self, stage: int, text: str, user: dict) -> dict:
        return {"_id": uuid4().hex, "stage": stage, "remark": text, "userId": user["id"], "date": _now()}

    def _advance(self, case: dict, action: str, remark: str, user: dict) -> None:
        order = [s for s, _ in STAGE_ROLES]
        index = order.index(case["stage"])
        case["remarks"].append(self._remark(index + 1, remark, user))
        if action == "reject":
            case["status"] = "rejected"
            return
        if index + 1 < len(order):
            case["stage"] = order[index + 1]
            case["currentRoles"] = [STAGE_ROLES[index + 1][1]]
        else:
            case.update(stage=READY_TO_CLOSE_STAGE, status="approved", currentRoles=["tehsildar"])


# ── Fixtures ──

@pytest.fixture
def backend() -> FakeRahatBackend:
    return FakeRahatBackend()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_retries=2, base_delay=0, max_delay=0)


def signed_in_api(backend: FakeRahatBackend, email: str) -> ApiClient:
    token = backend.login(email)
    http = create_http_client(
        base_url=BACKEND_URL,
        cookies={COOKIE: token},
        transport=httpx.MockTransport(backend),
    )
    return ApiClient(http)


@pytest_asyncio.fixture
async def case_service(backend: FakeRahatBackend, fast_retry: RetryPolicy) -> AsyncGenerator[CaseService, None]:
    """CaseService signed in as the tehsildar."""
    api = signed_in_api(backend, "tehsildar@rahat.gov.in")
    yield CaseService(api, QueryCache(retry=fast_retry))
    await api.aclose()


@pytest_asyncio.fixture
async def gateway(backend: FakeRahatBackend, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the dashboard gateway, backed by the fake backend."""
    monkeypatch.setattr(settings, "api_base_url", BACKEND_URL)
    registry = SessionRegistry(transport=httpx.MockTransport(backend))
    app.dependency_overrides[get_registry] = lambda: registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://dashboard.test") as client:
        yield client
    app.dependency_overrides.clear()
    await registry.aclose()


async def sign_in(client: AsyncClient, email: str) -> httpx.Response:
    return await client.post("/api/auth/sign-in", json={"email": email, "password": PASSWORD})
