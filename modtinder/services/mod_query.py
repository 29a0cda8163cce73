"""
모드 목록 동적 조회
카테고리 제외, 지원 중단/NSFW 필터, 사용자별 평가 제외 조건을 조합해 하나의 쿼리로 만든다
"""
from typing import Dict, List

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from modtinder.core.logger import LoggerMixin
from modtinder.models import Category, Mod, ModRating, RatingType, mod_category
from modtinder.schemas.mod_schemas import ModQueryOptions


class ModQueryBuilder:
    """조회 조건 조각(fragment) 조합기

    각 조건은 이름이 붙은 조각으로 추가되며, 같은 이름으로 다시 추가하면 교체된다.
    """

    def __init__(self):
        self._fragments: Dict[str, ColumnElement[bool]] = {}

    def add(self, name: str, clause: ColumnElement[bool]) -> "ModQueryBuilder":
        self._fragments[name] = clause
        return self

    @property
    def fragment_names(self) -> List[str]:
        return list(self._fragments)

    def exclude_categories(self, category_names) -> "ModQueryBuilder":
        """지정한 카테고리에 하나라도 속한 모드 제외 (비어 있으면 조건 없음)"""
        if not category_names:
            return self
        excluded_mods = (
            select(mod_category.c.mod_id)
            .join(Category, Category.id == mod_category.c.category_id)
            .where(Category.name.in_(sorted(category_names)))
        )
        return self.add("ignored_categories", Mod.id.not_in(excluded_mods))

    def exclude_deprecated(self, include_deprecated: bool) -> "ModQueryBuilder":
        if include_deprecated:
            return self
        return self.add("deprecated", Mod.deprecated.is_(False))

    def exclude_nsfw(self, include_nsfw: bool) -> "ModQueryBuilder":
        if include_nsfw:
            return self
        return self.add("nsfw", Mod.nsfw.is_(False))

    def exclude_rated_by(self, user_id: int) -> "ModQueryBuilder":
        """사용자가 이미 평가한 모드 제외"""
        rated_mods = select(ModRating.mod_id).where(ModRating.user_id == user_id)
        return self.add("unrated", Mod.id.not_in(rated_mods))

    @classmethod
    def for_options(cls, options: ModQueryOptions, user_id: int) -> "ModQueryBuilder":
        return (
            cls()
            .exclude_categories(options.ignored_categories)
            .exclude_deprecated(options.include_deprecated)
            .exclude_nsfw(options.include_nsfw)
            .exclude_rated_by(user_id)
        )

    def build(self, limit: int) -> Select:
        if limit < 1:
            raise ValueError(f"limit은 1 이상이어야 합니다: {limit}")
        return (
            select(Mod)
            .where(*self._fragments.values())
            .order_by(Mod.updated_date.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )


class CatalogQueryEngine(LoggerMixin):
    """모드 조회 엔진"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_mods(self, options: ModQueryOptions, user_id: int) -> List[Mod]:
        """사용자가 아직 평가하지 않은 모드 목록 (최근 업데이트 순)"""
        builder = ModQueryBuilder.for_options(options, user_id)
        self.logger.debug(
            f"모드 조회 - user_id: {user_id}, 조건: {builder.fragment_names}, limit: {options.limit}"
        )
        result = await self.session.execute(builder.build(options.limit))
        return list(result.scalars().all())

    async def get_rated_mods(self, rating: RatingType, limit: int, user_id: int) -> List[Mod]:
        """사용자가 지정한 평가를 남긴 모드 목록 (중복 평가는 한 번만)"""
        if limit < 1:
            raise ValueError(f"limit은 1 이상이어야 합니다: {limit}")
        rated_mods = (
            select(ModRating.mod_id)
            .where(ModRating.user_id == user_id, ModRating.rating == rating)
        )
        query = (
            select(Mod)
            .where(Mod.id.in_(rated_mods))
            .order_by(Mod.updated_date.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
