"""Sign-in, sign-out and the session read, against /auth/*."""

import logging

from rahat_dashboard.client.cache import NO_RETRY, SESSION_STALE, QueryCache
from rahat_dashboard.client.http import ApiClient
from rahat_dashboard.schemas.schemas import SessionInfo, SignInRequest, SignInResult

logger = logging.getLogger(__name__)

SESSION_KEY = ("session",)


class AuthService:
    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def sign_in(self, credentials: SignInRequest | dict) -> SignInResult:
        """Credential login; the backend answers with a session cookie."""
        if not isinstance(credentials, SignInRequest):
            credentials = SignInRequest.model_validate(credentials)
        body = await self.api.post_json("/auth/sign-in/email", credentials.to_wire())
        self.cache.invalidate(SESSION_KEY)
        logger.info("Signed in %s", credentials.email)
        return SignInResult.model_validate(body)

    async def sign_out(self) -> None:
        try:
            await self.api.post_json("/auth/sign-out")
        finally:
            self.cache.clear()
            self.api.forget_cookies()

    async def get_session(self, *, force: bool = False) -> SessionInfo | None:
        """Current session, or None when nobody is signed in. Never retried."""

        async def _load() -> SessionInfo | None:
            body = await self.api.get_json("/auth/get-session")
            if not body or not body.get("session"):
                return None
            return SessionInfo.model_validate(body)

        return await self.cache.fetch(
            SESSION_KEY, _load, stale_time=SESSION_STALE, retry=NO_RETRY, force=force,
        )
