import json
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, Set, Tuple
from uuid import NAMESPACE_URL, UUID, uuid5

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from modtinder.core.config import get_settings
from modtinder.core.database import init_models
from modtinder.models import User, mod_category
from modtinder.schemas.mod_schemas import ModCreate
from modtinder.services.catalog_store import CatalogStore


TEST_DB_URL = "sqlite+aiosqlite://"

CATEGORY_NAMES = ["Suits", "Music", "TV", "Items", "Misc"]

# 이름: (업데이트 시각, 지원 중단, NSFW)
FIXTURE_MODS = {
    "1st": (datetime(2025, 3, 20, 10, 0, tzinfo=timezone.utc), False, False),
    "dep-mod": (datetime(2025, 3, 20, 9, 0, tzinfo=timezone.utc), True, False),
    "nsfw-mod": (datetime(2025, 3, 20, 8, 0, tzinfo=timezone.utc), False, True),
    "dep-nsfw": (datetime(2025, 3, 20, 7, 0, tzinfo=timezone.utc), True, True),
    "5th": (datetime(2025, 3, 9, tzinfo=timezone.utc), False, False),
    "6th": (datetime(2025, 3, 8, tzinfo=timezone.utc), False, False),
    "nsfw-2": (datetime(2025, 3, 7, tzinfo=timezone.utc), False, True),
    "no-category": (datetime(2025, 3, 6, tzinfo=timezone.utc), False, False),
    "new-update": (datetime(2025, 3, 21, tzinfo=timezone.utc), False, False),
    "old-mod": (datetime(2020, 1, 1, tzinfo=timezone.utc), False, False),
}

FIXTURE_LINKS = {
    "Music": ["5th", "6th"],
    "TV": ["5th"],
    "Items": ["1st", "dep-mod", "nsfw-mod", "dep-nsfw", "5th"],
    "Misc": ["1st", "5th", "nsfw-2"],
}


def mod_uuid(name: str) -> UUID:
    """테스트 모드 이름별 고정 UUID"""
    return UUID(int=list(FIXTURE_MODS).index(name) + 1)


def make_mod(name: str, updated_date: datetime, deprecated=False, nsfw=False, category_ids=None, **overrides) -> ModCreate:
    values = dict(
        id=mod_uuid(name) if name in FIXTURE_MODS else uuid5(NAMESPACE_URL, name),
        name=name,
        description=f"{name} description",
        icon_url=f"https://example.com/{name}.png",
        full_name=f"Owner-{name}",
        owner="Owner",
        package_url=f"https://example.com/{name}",
        updated_date=updated_date,
        rating=0,
        deprecated=deprecated,
        nsfw=nsfw,
        category_ids=set(category_ids or ()),
    )
    values.update(overrides)
    return ModCreate(**values)


def make_feed_record(
    uuid4: str,
    name: str,
    /,
    date_updated: str = "2025-03-20T10:00:00.000000Z",
    categories=(),
    description: str = "desc",
    **overrides,
) -> dict:
    """피드 원본 레코드 (Thunderstore 형식)"""
    record = {
        "name": name,
        "full_name": f"Owner-{name}",
        "owner": "Owner",
        "package_url": f"https://thunderstore.io/c/lethal-company/p/Owner/{name}/",
        "donation_link": None,
        "date_created": "2024-01-01T00:00:00.000000Z",
        "date_updated": date_updated,
        "uuid4": uuid4,
        "rating_score": 3,
        "is_pinned": False,
        "is_deprecated": False,
        "has_nsfw_content": False,
        "categories": list(categories),
        "versions": [
            {
                "name": name,
                "full_name": f"Owner-{name}-1.0.1",
                "description": description,
                "icon": f"https://gcdn.thunderstore.io/{name}-1.0.1.png",
                "version_number": "1.0.1",
                "dependencies": [],
                "download_url": "https://thunderstore.io/package/download/x",
                "downloads": 10,
                "date_created": date_updated,
                "website_url": "",
                "is_active": True,
                "uuid4": "00000000-0000-0000-0000-00000000abcd",
                "file_size": 1000,
            },
            {
                "name": name,
                "full_name": f"Owner-{name}-1.0.0",
                "description": "old description",
                "icon": f"https://gcdn.thunderstore.io/{name}-1.0.0.png",
                "version_number": "1.0.0",
            },
        ],
    }
    record.update(overrides)
    return record


def feed_bytes(*records) -> bytes:
    return json.dumps(list(records)).encode("utf-8")


async def category_links(session: AsyncSession) -> Set[Tuple[UUID, int]]:
    """현재 모드-카테고리 연결 (mod_id, category_id) 집합"""
    result = await session.execute(select(mod_category.c.mod_id, mod_category.c.category_id))
    return {(row.mod_id, row.category_id) for row in result}


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """테스트 환경 설정"""
    monkeypatch.setenv("DB_URL", TEST_DB_URL)
    monkeypatch.setenv("MOD_REFRESH", "cache-only")
    monkeypatch.setenv("MOD_IMPORT_INTERVAL_HOURS", "24")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("MOD_CACHE_FILE", str(tmp_path / "data" / "mods_cache.json"))
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """메모리 SQLite 엔진 (모든 세션이 하나의 연결 공유)"""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(session_factory) -> Dict[str, int]:
    """테스트 사용자 (비밀번호 해시는 사용하지 않음)"""
    async with session_factory() as session:
        user_a = User(username="user-a", password_hash="x")
        user_b = User(username="user-b", password_hash="x")
        session.add_all([user_a, user_b])
        await session.commit()
        return {"a": user_a.id, "b": user_b.id}


@pytest_asyncio.fixture
async def seeded_catalog(session_factory) -> Dict[str, int]:
    """카테고리 필터 검증용 카탈로그 (카테고리 이름 → id 반환)"""
    async with session_factory() as session:
        store = CatalogStore(session)
        await store.insert_categories(CATEGORY_NAMES)
        categories = await store.get_categories_by_name()

        mods = []
        for name, (updated_date, deprecated, nsfw) in FIXTURE_MODS.items():
            category_ids = {
                categories[category_name].id
                for category_name, mod_names in FIXTURE_LINKS.items()
                if name in mod_names
            }
            mods.append(make_mod(name, updated_date, deprecated, nsfw, category_ids))

        await store.upsert_catalog(mods, chunk_size=3)
        await session.commit()
        return {name: category.id for name, category in categories.items()}
