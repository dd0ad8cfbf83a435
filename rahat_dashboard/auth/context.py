"""
AuthContext — the "who is looking, and may they see this page" abstraction.

One AuthContext lives for as long as a dashboard session does. Its life:

    init()     on mount; fetches the session unless a fresh snapshot exists
    refresh()  on demand; always refetches
    clear()    on sign-out

Page guarding is split in two so it can run without any renderer:

    evaluate(path)     pure; tells the caller what may be rendered
    run_effects(path)  post-render; notifies + navigates at most once per
                       failed session fetch, or per (session, path) denial

Navigation and notification are injected callbacks, never ambient calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Collection

from pydantic import ValidationError

from rahat_dashboard.auth.access import is_allowed, passes_gate
from rahat_dashboard.config import settings
from rahat_dashboard.errors import AccessDenied, ApiError, AuthenticationRequired
from rahat_dashboard.schemas.schemas import Session, SessionInfo, User

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "You are not authenticated"
PERMISSION_DENIED = "You don't have permission to access this page"

SessionLoader = Callable[..., Awaitable[SessionInfo | None]]
Navigate = Callable[[str], None]
Notify = Callable[[str], None]


class GuardOutcome(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    ALLOWED = "allowed"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    path: str
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOWED


class AuthContext:
    def __init__(
        self,
        load_session: SessionLoader,
        *,
        navigate: Navigate,
        notify: Notify,
        signin_path: str | None = None,
        home_path: str | None = None,
        stale_after: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._load_session = load_session
        self._navigate = navigate
        self._notify = notify
        self.signin_path = signin_path or settings.signin_path
        self.home_path = home_path or settings.home_path
        self.stale_after = settings.session_stale_seconds if stale_after is None else stale_after
        self._clock = clock

        self._info: SessionInfo | None = None
        self._error: ApiError | ValidationError | None = None
        self._pending: asyncio.Task | None = None
        self._ticket = 0
        self._fetched_at: float | None = None
        self._fetch_count = 0
        self._redirected_fetch: int | None = None
        self._denied: set[tuple[str, str]] = set()

    # ── State ──

    @property
    def user(self) -> User | None:
        return self._info.user if self._info else None

    @property
    def session(self) -> Session | None:
        return self._info.session if self._info else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def is_loading(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def is_fetched(self) -> bool:
        return self._fetched_at is not None

    @property
    def error(self) -> ApiError | ValidationError | None:
        return self._error

    @property
    def is_stale(self) -> bool:
        if self._fetched_at is None:
            return True
        return (self._clock() - self._fetched_at) >= self.stale_after

    # ── Lifecycle ──

    async def init(self) -> None:
        """Fetch the session unless a fresh snapshot exists; joins a fetch already running."""
        while self._pending is not None and not self._pending.done():
            await asyncio.shield(self._pending)
        if self.is_stale:
            await self._fetch(force=False)

    async def refresh(self) -> None:
        await self._fetch(force=True)

    def clear(self) -> None:
        self._ticket += 1  # results of a fetch still in flight are dropped
        self._info = None
        self._error = None
        self._fetched_at = None
        self._redirected_fetch = None
        self._denied.clear()

    async def _fetch(self, *, force: bool) -> None:
        self._ticket += 1
        task = asyncio.ensure_future(self._load(self._ticket, force))
        self._pending = task
        await asyncio.shield(task)

    async def _load(self, ticket: int, force: bool) -> None:
        try:
            info, error = await self._load_session(force=force), None
        except (ApiError, ValidationError) as exc:
            # an unreadable session body counts as no session
            logger.info("Session fetch failed: %s", exc)
            info, error = None, exc
        if ticket != self._ticket:
            return
        self._info = info
        self._error = error
        self._fetched_at = self._clock()
        self._fetch_count += 1

    # ── Access checks ──

    def can_access_page(self, path: str) -> bool:
        user = self.user
        if user is None or user.rahat_role is None:
            return False
        return is_allowed(user.rahat_role, path)

    def passes_gate(self, allowed_roles: Collection[str]) -> bool:
        user = self.user
        return passes_gate(allowed_roles, user.rahat_role if user else None)

    def evaluate(self, path: str, *, gate: Collection[str] | None = None) -> GuardDecision:
        """Decide what may be rendered for `path`. No side effects."""
        if self.is_loading or not self.is_fetched:
            return GuardDecision(GuardOutcome.LOADING, path)
        if self.session is None:
            return GuardDecision(GuardOutcome.UNAUTHENTICATED, path, self.signin_path)
        if not self.can_access_page(path):
            return GuardDecision(GuardOutcome.FORBIDDEN, path, self.home_path)
        if gate is not None and not self.passes_gate(gate):
            return GuardDecision(GuardOutcome.FORBIDDEN, path, self.home_path)
        return GuardDecision(GuardOutcome.ALLOWED, path)

    def run_effects(self, path: str, *, gate: Collection[str] | None = None) -> GuardDecision:
        """Post-render step: redirect and notify, once per failure."""
        decision = self.evaluate(path, gate=gate)

        if decision.outcome == GuardOutcome.UNAUTHENTICATED:
            if self._redirected_fetch != self._fetch_count:
                self._redirected_fetch = self._fetch_count
                self._notify(NOT_AUTHENTICATED)
                self._navigate(self.signin_path)

        elif decision.outcome == GuardOutcome.FORBIDDEN:
            marker = (self.session.id, path)
            if marker not in self._denied:
                self._denied.add(marker)
                logger.info(
                    "Denied %s for %s (%s)",
                    path, self.user.id, self.user.rahat_role,
                )
                self._notify(PERMISSION_DENIED)
                self._navigate(self.home_path)

        return decision

    def require_page(self, path: str, *, gate: Collection[str] | None = None) -> GuardDecision:
        """Run the guard and raise unless the page may be rendered."""
        decision = self.run_effects(path, gate=gate)
        if decision.outcome in (GuardOutcome.UNAUTHENTICATED, GuardOutcome.LOADING):
            raise AuthenticationRequired(path)
        if decision.outcome == GuardOutcome.FORBIDDEN:
            role = self.user.rahat_role if self.user else None
            raise AccessDenied(path, role.value if role else None)
        return decision

    @property
    def actor(self) -> str:
        """Identity string for log lines."""
        user = self.user
        if user is None:
            return "anonymous"
        role = user.rahat_role.value if user.rahat_role else user.role
        return f"{role}:{user.id}"
