"""Session resolution: demo sessions come from the token alone, never the database."""
import uuid

import pytest
from fastapi import HTTPException
from starlette.requests import Request
from starlette.responses import Response

from grylin.core import deps
from grylin.core.config import settings
from grylin.core.security import create_access_token, create_refresh_token, decode_token
from grylin.routers import auth
from grylin.routers.users import get_profile
from grylin.storage.local import LocalStorage
from grylin.storage.sql import SqlStorage


def request_with(cookies: dict | None = None, headers: dict | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


def cookie_value(response: Response, name: str) -> str:
    for header in response.headers.getlist("set-cookie"):
        key, _, rest = header.partition("=")
        if key == name:
            return rest.split(";", 1)[0]
    raise AssertionError(f"{name} cookie not set")


class FakeUser:
    def __init__(self, user_id, is_active=True):
        self.id = user_id
        self.email = "asha@mail.example"
        self.is_active = is_active


class FakeDb:
    def __init__(self, *users):
        self.users = {u.id: u for u in users}

    async def get(self, model, key):
        return self.users.get(key)


class TestGetPrincipal:
    @pytest.mark.asyncio
    async def test_demo_session_needs_no_database(self):
        request = request_with({"access_token": create_access_token(auth.DEMO_CLAIMS)})

        principal = await deps.get_principal(request, db=None)

        assert principal.demo is True
        assert principal.id == deps.DEMO_USER_ID
        assert isinstance(deps.get_storage(principal, db=None), LocalStorage)

    @pytest.mark.asyncio
    async def test_registered_user(self):
        user = FakeUser(uuid.uuid4())
        request = request_with(headers={"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"})

        principal = await deps.get_principal(request, db=FakeDb(user))

        assert principal == deps.Principal(user.id, user.email)
        assert isinstance(deps.get_storage(principal, db=FakeDb(user)), SqlStorage)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user", [None, FakeUser(uuid.uuid4(), is_active=False)])
    async def test_missing_or_inactive_user(self, user):
        sub = str(user.id if user else uuid.uuid4())
        request = request_with({"access_token": create_access_token({"sub": sub})})
        with pytest.raises(HTTPException) as exc:
            await deps.get_principal(request, db=FakeDb(*([user] if user else [])))
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self):
        request = request_with({"access_token": create_refresh_token(auth.DEMO_CLAIMS)})
        with pytest.raises(HTTPException) as exc:
            await deps.get_principal(request, db=None)
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_demo_rejected_when_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "demo_mode_enabled", False)
        request = request_with({"access_token": create_access_token(auth.DEMO_CLAIMS)})
        with pytest.raises(HTTPException) as exc:
            await deps.get_principal(request, db=None)
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_no_token(self):
        with pytest.raises(HTTPException) as exc:
            await deps.get_principal(request_with(), db=None)
        assert exc.value.status_code == 401


class TestDemoSession:
    @pytest.mark.asyncio
    async def test_refresh_reissues_demo_tokens_without_database(self, monkeypatch):
        revoked = []

        async def is_blacklisted(jti):
            return False

        async def blacklist_token(jti, ttl):
            revoked.append(jti)

        monkeypatch.setattr(auth, "is_blacklisted", is_blacklisted)
        monkeypatch.setattr(auth, "blacklist_token", blacklist_token)
        old = create_refresh_token(auth.DEMO_CLAIMS)
        response = Response()

        await auth.refresh_session(request_with({"refresh_token": old}), response, db=None)

        access = decode_token(cookie_value(response, "access_token"))
        assert access["demo"] is True
        assert access["type"] == "access"
        assert decode_token(cookie_value(response, "refresh_token"))["demo"] is True
        assert revoked == [decode_token(old)["jti"]]

    @pytest.mark.asyncio
    async def test_profile_comes_from_local_settings(self, storage, prefs):
        await storage.save_notification_settings(
            deps.DEMO_USER_ID, prefs.model_copy(update={"reminder_1day_enabled": False})
        )

        profile = await get_profile(deps.DEMO_PRINCIPAL, storage, db=None)

        assert profile.id == deps.DEMO_USER_ID
        assert profile.email == settings.demo_user_email
        assert profile.reminder_1day_enabled is False
        assert profile.reminder_7day_enabled is True
