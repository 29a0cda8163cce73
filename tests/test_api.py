import asyncio
import json
from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from modtinder import dependencies
from modtinder.core.database import init_models, session_context
from modtinder.core.security import LOGIN_COOKIE, SETTINGS_COOKIE, create_access_token
from modtinder.main import app
from modtinder.services.feed_cache import FeedCache
from modtinder.services.feed_client import FeedClient
from modtinder.services.import_coordinator import ImportCoordinator
from modtinder.services.import_status import ImportStatus
from modtinder.services.refresh_policy import RefreshMode, RefreshOptions
from modtinder.services.scheduler_service import SchedulerService
from modtinder.services.user_service import UserService

from tests.conftest import feed_bytes, make_feed_record, mod_uuid


@pytest.fixture
def import_status():
    status = ImportStatus()
    dependencies.set_import_status(status)
    yield status
    dependencies.set_import_status(None)


@asynccontextmanager
async def asgi_client(session_factory):
    """테스트 DB 세션을 사용하는 비동기 클라이언트 (lifespan 없음)"""
    async def override_get_session():
        async with session_context(session_factory) as session:
            yield session

    app.dependency_overrides[dependencies.get_session] = override_get_session
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="https://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(session_factory, import_status):
    async with asgi_client(session_factory) as client:
        yield client


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """동시 요청용 파일 SQLite (요청마다 별도 연결)"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'modtinder.db'}")
    await init_models(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


async def _login_as(client, session_factory, username):
    async with session_context(session_factory) as session:
        user = await UserService(session).create_user(username, "password")
    client.cookies.set(LOGIN_COOKIE, create_access_token(user.id, "test-jwt-secret"))
    return user


@pytest.mark.asyncio
async def test_create_user_login_and_conflict(client):
    response = await client.post("/api/v1/auth/users", data={"username": "alice", "password": "pw"})
    assert response.status_code == 201
    assert response.json()["username"] == "alice"

    response = await client.post("/api/v1/auth/users", data={"username": "alice", "password": "pw"})
    assert response.status_code == 409

    response = await client.post("/api/v1/auth/login", data={"username": "alice", "password": "bad"})
    assert response.status_code == 401

    response = await client.post("/api/v1/auth/login", data={"username": "alice", "password": "pw"})
    assert response.status_code == 200
    assert LOGIN_COOKIE in response.cookies


@pytest.mark.asyncio
async def test_rating_flow_requires_login(client):
    response = await client.get("/api/v1/rate")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rate_next_mod_and_likes(client, session_factory, seeded_catalog):
    await _login_as(client, session_factory, "alice")

    response = await client.get("/api/v1/rate")
    assert response.status_code == 200
    assert response.json()["mod"]["name"] == "new-update"
    assert response.json()["settings_error"] is None

    response = await client.post(
        "/api/v1/rate", data={"mod_id": str(mod_uuid("new-update")), "rating": "Like"}
    )
    assert response.status_code == 201

    response = await client.get("/api/v1/rate")
    assert response.json()["mod"]["name"] == "1st"

    response = await client.get("/api/v1/likes")
    assert [mod["name"] for mod in response.json()] == ["new-update"]


@pytest.mark.asyncio
async def test_rate_bad_uuid(client, session_factory, seeded_catalog):
    await _login_as(client, session_factory, "alice")

    response = await client.post("/api/v1/rate", data={"mod_id": "not-a-uuid", "rating": "Like"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_no_mods_found_is_404(client, session_factory):
    await _login_as(client, session_factory, "alice")

    response = await client.get("/api/v1/rate")

    assert response.status_code == 404
    assert response.json()["detail"] == "No mods found"


@pytest.mark.asyncio
async def test_settings_cookie_filters_feed(client, session_factory, seeded_catalog):
    await _login_as(client, session_factory, "alice")

    response = await client.post(
        "/api/v1/settings",
        json={"excluded_category": ["Music", "Suits"], "include_nsfw": False, "include_deprecated": False},
    )
    assert response.status_code == 200
    assert SETTINGS_COOKIE in response.cookies
    client.cookies.delete(SETTINGS_COOKIE)
    client.cookies.set(
        SETTINGS_COOKIE,
        json.dumps({"excluded_category": ["Music", "Suits"]}, separators=(",", ":")),
    )

    response = await client.get("/api/v1/settings")
    checked = {item["name"] for item in response.json()["categories"] if item["checked"]}
    assert checked == {"Music", "Suits"}

    response = await client.get("/api/v1/mods", params={"ignored_category": ["Music", "Suits"], "limit": 10})
    assert {mod["name"] for mod in response.json()} == {"1st", "no-category", "new-update", "old-mod"}


@pytest.mark.asyncio
async def test_malformed_settings_cookie_falls_back(client, session_factory, seeded_catalog):
    await _login_as(client, session_factory, "alice")
    client.cookies.set(SETTINGS_COOKIE, "{broken")

    response = await client.get("/api/v1/rate")

    assert response.status_code == 200
    assert response.json()["mod"]["name"] == "new-update"
    assert response.json()["settings_error"] is not None


@pytest.mark.asyncio
async def test_import_admin_endpoints(client, session_factory, import_status, tmp_path):
    await _login_as(client, session_factory, "alice")
    response = await client.post("/api/v1/admin/import-mods")
    assert response.status_code == 403

    await _login_as(client, session_factory, "admin")
    response = await client.get("/api/v1/admin/import-mods")
    assert response.status_code == 200
    assert response.json() == {"import_pending": False, "latest_import": "Never", "mod_count": 0}

    dependencies.set_import_coordinator(
        ImportCoordinator(
            options=RefreshOptions(RefreshMode.CACHE_ONLY, timedelta(hours=24)),
            feed_client=FeedClient("https://feed.invalid/"),
            feed_cache=FeedCache(tmp_path / "mods_cache.json"),
            session_factory=session_factory,
        )
    )
    try:
        response = await client.post("/api/v1/admin/import-mods")
    finally:
        dependencies.set_import_coordinator(None)

    assert response.status_code == 202
    assert response.json()["import_pending"] is True
    assert (await import_status.snapshot()).import_requested is True


def test_settings_cookie_parsing():
    settings, error = dependencies.parse_browse_settings(
        json.dumps({"excluded_category": ["TV"], "include_nsfw": True})
    )
    assert settings.excluded_category == {"TV"}
    assert settings.include_nsfw is True
    assert settings.include_deprecated is False
    assert error is None

    settings, error = dependencies.parse_browse_settings(None)
    assert settings.excluded_category == set()
    assert error is None


@pytest.mark.asyncio
async def test_concurrent_import_requests_run_one_import(file_session_factory, import_status, tmp_path):
    cache = FeedCache(tmp_path / "mods_cache.json")
    await cache.save(feed_bytes(
        make_feed_record("2c7e9cbb-5d26-4a1e-a4d2-7fbb2f8ad3d2", "Alpha"),
        make_feed_record("5b0f8a7e-1f55-4c0b-9a55-0a8f1a3e6c11", "Beta"),
    ))
    coordinator = ImportCoordinator(
        options=RefreshOptions(RefreshMode.CACHE_ONLY, timedelta(hours=24)),
        feed_client=FeedClient("https://feed.invalid/"),
        feed_cache=cache,
        session_factory=file_session_factory,
    )
    scheduler_service = SchedulerService(coordinator, import_status)
    dependencies.set_import_coordinator(coordinator)

    try:
        async with asgi_client(file_session_factory) as client:
            await _login_as(client, file_session_factory, "admin")

            with patch.object(coordinator, "do_import", wraps=coordinator.do_import) as do_import:
                responses = await asyncio.gather(
                    client.post("/api/v1/admin/import-mods"),
                    client.post("/api/v1/admin/import-mods"),
                )
                assert [response.status_code for response in responses] == [202, 202]

                assert await scheduler_service.run_request_check() is True
                assert await scheduler_service.run_request_check() is False

            do_import.assert_awaited_once()
            response = await client.get("/api/v1/admin/import-mods")
    finally:
        dependencies.set_import_coordinator(None)

    assert response.json()["import_pending"] is False
    assert response.json()["mod_count"] == 2
