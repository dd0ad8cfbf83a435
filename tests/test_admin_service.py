"""Tests for admin user management."""

import pytest
import pytest_asyncio
from pydantic import ValidationError

from rahat_dashboard.client.cache import QueryCache
from rahat_dashboard.schemas.schemas import ListUsersParams
from rahat_dashboard.services.admin_service import AdminService
from tests.conftest import signed_in_api


@pytest_asyncio.fixture
async def admin(backend):
    api = signed_in_api(backend, "collector@rahat.gov.in")
    yield AdminService(api, QueryCache())
    await api.aclose()


@pytest.mark.asyncio
class TestAdminService:
    async def test_list_users_with_search(self, admin, backend):
        users = await admin.list_users(ListUsersParams(search_value="singh", search_field="name", limit=10))
        assert [u.email for u in users.users] == ["collector@rahat.gov.in"]

    async def test_create_user_refreshes_list(self, admin, backend):
        before = await admin.list_users()
        created = await admin.create_user({
            "email": "oic@rahat.gov.in",
            "password": "Password123!",
            "name": "O. Khan",
            "data": {"rahatRole": "oic", "jurisdiction": "Sadar"},
        })
        after = await admin.list_users()
        assert created.rahat_role.value == "oic"
        assert after.total == before.total + 1

    async def test_ban_user(self, admin):
        user = await admin.ban_user({"userId": "u-sdm", "banReason": "Left the post", "banExpiresIn": "P30D"})
        assert user.banned is True

    async def test_invalid_ban_duration_sends_nothing(self, admin, backend):
        with pytest.raises(ValidationError):
            await admin.ban_user({"userId": "u-sdm", "banReason": "x", "banExpiresIn": "thirty days"})
        assert backend.calls == []

    async def test_set_password(self, admin):
        assert await admin.set_user_password({"userId": "u-sdm", "newPassword": "NewPassword1!"}) is True
