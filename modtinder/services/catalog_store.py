"""
모드 카탈로그 저장소
카테고리/모드/연결 테이블 일괄 반영, 임포트 시각 및 평가 기록

모든 쓰기 작업은 호출자의 세션(트랜잭션) 안에서 수행되며 커밋하지 않는다.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from modtinder.core.logger import LoggerMixin
from modtinder.models import Category, Mod, ModRating, ModsImportDate, RatingType, mod_category
from modtinder.schemas.mod_schemas import ModCreate, ModQueryOptions
from modtinder.services.mod_query import CatalogQueryEngine


# 임포트 시 갱신되는 모드 컬럼 (id 제외)
MOD_UPDATE_COLUMNS = (
    "name",
    "description",
    "icon_url",
    "full_name",
    "owner",
    "package_url",
    "updated_date",
    "rating",
    "deprecated",
    "nsfw",
)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """DB에서 읽은 시각을 UTC aware datetime으로 변환 (SQLite는 tz 정보 없이 반환)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def chunked(items: Sequence, chunk_size: int) -> Iterable[Sequence]:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size는 0보다 커야 합니다: {chunk_size}")
    for i in range(0, len(items), chunk_size):
        yield items[i:i + chunk_size]


class CatalogStore(LoggerMixin):
    """모드 카탈로그 저장소"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.query_engine = CatalogQueryEngine(session)

    def _insert(self, table):
        """세션에 연결된 DB 방언의 INSERT 구문 (ON CONFLICT 지원)"""
        dialect = self.session.get_bind().dialect.name
        try:
            insert_fn = _DIALECT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"지원하지 않는 데이터베이스입니다: {dialect}")
        return insert_fn(table)

    # ========================================
    # 카테고리
    # ========================================

    async def insert_categories(self, names: Iterable[str]) -> None:
        """카테고리 추가 (이미 있는 이름은 무시, 삭제하지 않음)"""
        rows = [{"name": name} for name in sorted(set(names))]
        if not rows:
            return
        stmt = self._insert(Category).values(rows).on_conflict_do_nothing(
            index_elements=[Category.name]
        )
        await self.session.execute(stmt)

    async def get_categories(self) -> List[Category]:
        result = await self.session.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def get_categories_by_name(self) -> Dict[str, Category]:
        return {category.name: category for category in await self.get_categories()}

    # ========================================
    # 모드
    # ========================================

    async def upsert_catalog(self, mods: Sequence[ModCreate], chunk_size: int) -> None:
        """
        모드 카탈로그 일괄 반영

        1. 모드-카테고리 연결 전체 삭제
        2. 모드를 chunk_size 단위로 INSERT ... ON CONFLICT (id) DO UPDATE
        3. 모드-카테고리 연결을 chunk_size 단위로 INSERT ... ON CONFLICT DO NOTHING

        같은 입력으로 여러 번 호출해도 결과가 같다.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size는 0보다 커야 합니다: {chunk_size}")

        await self.session.execute(delete(mod_category))

        mods = self.dedupe_by_id(mods)
        for batch_no, batch in enumerate(chunked(mods, chunk_size), start=1):
            stmt = self._insert(Mod).values([mod.to_row() for mod in batch])
            stmt = stmt.on_conflict_do_update(
                index_elements=[Mod.id],
                set_={column: stmt.excluded[column] for column in MOD_UPDATE_COLUMNS},
            )
            await self.session.execute(stmt)
            self.logger.debug(f"모드 배치 {batch_no} 반영: {len(batch)}개")

        links = [
            {"mod_id": mod.id, "category_id": category_id}
            for mod in mods
            for category_id in sorted(mod.category_ids)
        ]
        for batch in chunked(links, chunk_size):
            stmt = self._insert(mod_category).values(list(batch)).on_conflict_do_nothing()
            await self.session.execute(stmt)

        self.logger.info(f"모드 {len(mods)}개, 카테고리 연결 {len(links)}개 반영")

    insert_mods = upsert_catalog

    def dedupe_by_id(self, mods: Iterable[ModCreate]) -> List[ModCreate]:
        """같은 id의 모드는 마지막 항목만 남김 (한 INSERT 안에서 같은 행을 두 번 갱신할 수 없음)"""
        by_id: Dict[UUID, ModCreate] = {}
        for mod in mods:
            if mod.id in by_id:
                self.logger.warning(f"중복된 모드 id '{mod.id}' ('{mod.name}'), 마지막 항목으로 대체합니다")
            by_id[mod.id] = mod
        return list(by_id.values())

    async def count_mods(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Mod))
        return result.scalar_one()

    # ========================================
    # 임포트 시각
    # ========================================

    async def latest_import_timestamp(self) -> Optional[datetime]:
        """마지막 임포트 완료 시각 (기록이 없으면 None)"""
        result = await self.session.execute(
            select(ModsImportDate.date).where(ModsImportDate.id == ModsImportDate.SINGLETON_ID)
        )
        return as_utc(result.scalar_one_or_none())

    async def set_import_timestamp(self, timestamp: datetime) -> None:
        """임포트 완료 시각 기록 (단일 행 덮어쓰기)"""
        stmt = self._insert(ModsImportDate).values(
            id=ModsImportDate.SINGLETON_ID, date=as_utc(timestamp)
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ModsImportDate.id],
            set_={"date": stmt.excluded.date},
        )
        await self.session.execute(stmt)

    # ========================================
    # 평가
    # ========================================

    async def insert_rating(self, mod_id: UUID, rating: RatingType, user_id: int) -> None:
        """평가 기록 (같은 모드를 다시 평가해도 새 행으로 추가)"""
        self.session.add(ModRating(mod_id=mod_id, user_id=user_id, rating=rating))
        await self.session.flush()

    async def get_mods(self, options: ModQueryOptions, user_id: int) -> List[Mod]:
        return await self.query_engine.get_mods(options, user_id)

    async def get_rated_mods(self, rating: RatingType, limit: int, user_id: int) -> List[Mod]:
        return await self.query_engine.get_rated_mods(rating, limit, user_id)
