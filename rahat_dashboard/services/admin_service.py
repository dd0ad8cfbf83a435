"""Admin user management against /auth/admin/*. Users are banned, never deleted."""

import logging

from rahat_dashboard.client.cache import QueryCache
from rahat_dashboard.client.http import ApiClient
from rahat_dashboard.schemas.schemas import (
    BanUserRequest,
    CreateUserRequest,
    ListUsersParams,
    SessionList,
    SetPasswordRequest,
    UpdateUserRequest,
    User,
    UserList,
)

logger = logging.getLogger(__name__)

ADMIN = ("admin",)


class AdminService:
    def __init__(self, api: ApiClient, cache: QueryCache):
        self.api = api
        self.cache = cache

    async def list_users(self, params: ListUsersParams | None = None) -> UserList:
        query = (params or ListUsersParams()).to_query()

        async def _load():
            return UserList.model_validate(await self.api.get_json("/auth/admin/list-users", query))

        key = ("admin", "users", tuple(sorted(query.items())))
        return await self.cache.fetch(key, _load, stale_time=0)

    async def list_user_sessions(self, user_id: str) -> SessionList:
        async def _load():
            body = await self.api.post_json("/auth/admin/list-user-sessions", {"userId": user_id})
            return SessionList.model_validate(body)

        return await self.cache.fetch(("admin", "sessions", user_id), _load, stale_time=0)

    async def create_user(self, request: CreateUserRequest | dict) -> User:
        if not isinstance(request, CreateUserRequest):
            request = CreateUserRequest.model_validate(request)
        body = await self.api.post_json("/auth/admin/create-user", request.to_wire())
        self.cache.invalidate(ADMIN)
        user = User.model_validate(body["user"])
        logger.info("Created user %s as %s", user.id, request.data.rahat_role.value)
        return user

    async def update_user(self, request: UpdateUserRequest | dict) -> User:
        if not isinstance(request, UpdateUserRequest):
            request = UpdateUserRequest.model_validate(request)
        body = await self.api.post_json("/auth/admin/update-user", request.to_wire())
        self.cache.invalidate(ADMIN)
        return User.model_validate(body.get("user", body))

    async def ban_user(self, request: BanUserRequest | dict) -> User:
        if not isinstance(request, BanUserRequest):
            request = BanUserRequest.model_validate(request)
        body = await self.api.post_json("/auth/admin/ban-user", request.to_wire())
        self.cache.invalidate(ADMIN)
        logger.info(
            "Banned user %s (%s)", request.user_id, request.ban_expires_in or "permanent",
        )
        return User.model_validate(body["user"])

    async def set_user_password(self, request: SetPasswordRequest | dict) -> bool:
        if not isinstance(request, SetPasswordRequest):
            request = SetPasswordRequest.model_validate(request)
        body = await self.api.post_json("/auth/admin/set-user-password", request.to_wire())
        self.cache.invalidate(ADMIN)
        return bool(body.get("status"))
