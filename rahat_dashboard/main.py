import logging
import traceback
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from rahat_dashboard.config import settings
from rahat_dashboard.errors import AccessDenied, ApiError, AuthenticationRequired
from rahat_dashboard.middleware.logging_config import configure_json_logging
from rahat_dashboard.state import SessionRegistry

configure_json_logging(settings.log_level)

from rahat_dashboard.api.admin_users import router as admin_router  # noqa: E402
from rahat_dashboard.api.deps import get_registry  # noqa: E402
from rahat_dashboard.api.auth import router as auth_router  # noqa: E402
from rahat_dashboard.api.cases import router as cases_router  # noqa: E402
from rahat_dashboard.api.pages import router as pages_router  # noqa: E402

logger = logging.getLogger("rahat_dashboard")

NOTICE_COOKIE = "rahat_notice"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.registry.aclose()


app = FastAPI(
    title="Project Rahat Dashboard",
    description="Role-gated case dashboard for relief disbursement",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.registry = SessionRegistry()

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

# ── Request context middleware (request ID + timing) ─────────────────────────
from rahat_dashboard.middleware.request_context import RequestContextMiddleware  # noqa: E402

app.add_middleware(RequestContextMiddleware)


# ── Error handling ───────────────────────────────────────────────────────────

def _guard_redirect(request: Request, default_location: str) -> RedirectResponse:
    notices, location = [], None
    state = getattr(request.state, "dashboard", None)
    if state is not None:
        notices, location = state.outbox.drain()
    response = RedirectResponse(location or default_location, status_code=303)
    if notices:
        response.set_cookie(NOTICE_COOKIE, quote(notices[-1]), max_age=30, samesite="lax")
    return response


@app.exception_handler(AuthenticationRequired)
async def authentication_required_handler(request: Request, exc: AuthenticationRequired):
    return _guard_redirect(request, settings.signin_path)


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    logger.info("Access denied: %s", exc)
    return _guard_redirect(request, settings.home_path)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    """Backend rejections go back to the caller exactly as the backend worded them."""
    status = exc.status if 400 <= exc.status < 600 else 502
    return JSONResponse(status_code=status, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exc()
    logger.error(
        "Unhandled %s on %s %s: %s\n%s",
        type(exc).__name__, request.method, request.url.path, exc, tb,
    )
    if settings.environment == "development":
        return JSONResponse(
            status_code=500,
            content={"detail": f"{type(exc).__name__}: {exc}", "traceback": tb.splitlines()[-5:]},
        )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(cases_router)
app.include_router(admin_router)
app.include_router(pages_router)


@app.get("/api/health")
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    return {
        "status": "ok",
        "environment": settings.environment,
        "backend": settings.api_base_url,
        "trackedSessions": len(registry),
    }
