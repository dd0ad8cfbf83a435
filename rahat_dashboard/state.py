"""
Per-browser dashboard state held by the gateway.

A DashboardState is what a single-page dashboard would keep in memory for
one signed-in tab: a backend client with its cookie jar, the query cache,
the auth context and the services built on them. The gateway keeps one per
backend session token, least recently used first out.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field

import httpx

from rahat_dashboard.auth.context import AuthContext
from rahat_dashboard.client.cache import QueryCache
from rahat_dashboard.client.http import ApiClient, create_http_client
from rahat_dashboard.config import settings
from rahat_dashboard.services.admin_service import AdminService
from rahat_dashboard.services.auth_service import AuthService
from rahat_dashboard.services.case_service import CaseService
from rahat_dashboard.services.search import ThanaInchargeSearch

logger = logging.getLogger(__name__)


@dataclass
class Outbox:
    """Navigations and notifications the auth guard asked for."""
    notices: list[str] = field(default_factory=list)
    location: str | None = None

    def notify(self, message: str) -> None:
        self.notices.append(message)

    def navigate(self, path: str) -> None:
        self.location = path

    def drain(self) -> tuple[list[str], str | None]:
        notices, location = self.notices, self.location
        self.notices, self.location = [], None
        return notices, location


class DashboardState:
    def __init__(self, api: ApiClient, *, cache: QueryCache | None = None):
        self.api = api
        self.cache = cache or QueryCache()
        self.outbox = Outbox()
        self.auth = AuthService(api, self.cache)
        self.cases = CaseService(api, self.cache)
        self.admin = AdminService(api, self.cache)
        self.search = ThanaInchargeSearch(self.cases)
        self.context = AuthContext(
            self.auth.get_session,
            navigate=self.outbox.navigate,
            notify=self.outbox.notify,
        )

    @classmethod
    def create(
        cls,
        *,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "DashboardState":
        return cls(ApiClient(create_http_client(cookies=cookies, transport=transport)))

    def session_token(self) -> str | None:
        return self.api.cookies.get(settings.session_cookie_name)

    async def sign_out(self) -> None:
        try:
            await self.auth.sign_out()
        finally:
            self.context.clear()

    async def aclose(self) -> None:
        self.search.cancel()
        await self.api.aclose()


class SessionRegistry:
    def __init__(self, max_sessions: int | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.max_sessions = max_sessions or settings.max_tracked_sessions
        self.transport = transport
        self._states: OrderedDict[str, DashboardState] = OrderedDict()

    def new_state(self, cookies: dict[str, str] | None = None) -> DashboardState:
        return DashboardState.create(cookies=cookies, transport=self.transport)

    async def get_or_create(self, token: str | None) -> DashboardState:
        """State for a session token; callers without one get a fresh, unregistered state."""
        if not token:
            return self.new_state()
        state = self._states.get(token)
        if state is not None:
            self._states.move_to_end(token)
            return state
        state = self.new_state({settings.session_cookie_name: token})
        await self.register(token, state)
        return state

    async def register(self, token: str, state: DashboardState) -> None:
        self._states[token] = state
        self._states.move_to_end(token)
        while len(self._states) > self.max_sessions:
            _, evicted = self._states.popitem(last=False)
            logger.debug("Evicting idle dashboard state")
            await evicted.aclose()

    async def drop(self, token: str | None) -> None:
        if token and token in self._states:
            await self._states.pop(token).aclose()

    async def aclose(self) -> None:
        while self._states:
            _, state = self._states.popitem()
            await state.aclose()

    def __contains__(self, token: str) -> bool:
        return token in self._states

    def __len__(self) -> int:
        return len(self._states)
