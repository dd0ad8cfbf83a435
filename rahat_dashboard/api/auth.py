"""Authentication API — sign in, sign out, current session."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from rahat_dashboard.api.deps import get_dashboard_state, get_registry
from rahat_dashboard.auth.access import allowed_patterns
from rahat_dashboard.client.cache import QueryState
from rahat_dashboard.config import settings
from rahat_dashboard.errors import ApiError, describe_auth_error
from rahat_dashboard.schemas.schemas import SignInRequest
from rahat_dashboard.state import DashboardState, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/sign-in")
async def sign_in(body: SignInRequest, registry: SessionRegistry = Depends(get_registry)):
    """Credential login; the backend session cookie is relayed to the browser."""
    state = registry.new_state()
    try:
        await state.auth.sign_in(body)
    except ApiError as exc:
        await state.aclose()
        title, description = describe_auth_error(exc.code)
        status = exc.status if exc.status in (400, 401, 403) else 500
        return JSONResponse(
            status_code=status,
            content={"code": exc.code, "title": title, "description": description},
        )
    except ValidationError as exc:
        await state.aclose()
        logger.error("Sign-in response could not be read: %s", exc)
        title, description = describe_auth_error("INTERNAL_SERVER_ERROR")
        return JSONResponse(status_code=502, content={"title": title, "description": description})

    token = state.session_token()
    if not token:
        await state.aclose()
        logger.error("Sign-in succeeded but the backend set no %s cookie", settings.session_cookie_name)
        title, description = describe_auth_error("INTERNAL_SERVER_ERROR")
        return JSONResponse(status_code=502, content={"title": title, "description": description})

    await registry.register(token, state)
    await state.context.refresh()
    if not state.context.is_authenticated:
        logger.error("Sign-in succeeded but the session could not be read: %s", state.context.error)
        await registry.drop(token)
        title, description = describe_auth_error("INTERNAL_SERVER_ERROR")
        return JSONResponse(status_code=502, content={"title": title, "description": description})

    response = JSONResponse({
        "title": "Login successful",
        "description": "You are now logged in.",
        "redirectTo": settings.home_path,
    })
    response.set_cookie(
        settings.session_cookie_name,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        max_age=None if not body.remember_me else 7 * 24 * 3600,
    )
    return response


@router.post("/sign-out")
async def sign_out(request: Request, registry: SessionRegistry = Depends(get_registry)):
    token = request.cookies.get(settings.session_cookie_name)
    state = await registry.get_or_create(token)
    try:
        await state.sign_out()
    finally:
        if token:
            await registry.drop(token)
        else:
            await state.aclose()
    response = JSONResponse({"message": "Signed out successfully", "redirectTo": settings.signin_path})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/session")
async def current_session(state: DashboardState = Depends(get_dashboard_state)):
    """Who is signed in and which page patterns their role may open."""
    await state.context.init()
    ctx = state.context
    user = ctx.user
    return {
        "isAuthenticated": ctx.is_authenticated,
        "user": user,
        "session": {"id": ctx.session.id, "expiresAt": ctx.session.expires_at} if ctx.session else None,
        "allowedPages": list(allowed_patterns(user.rahat_role)) if user and user.rahat_role else [],
        "error": QueryState(error=ctx.error).as_view()["error"],
    }
