"""
모드 임포트 파이프라인
다운로드(필요 시) → 캐시 저장 → 캐시 로드 → 정규화 → 단일 트랜잭션으로 저장
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from modtinder.core.database import session_context
from modtinder.core.logger import LogContext, LoggerMixin
from modtinder.services.catalog_store import CatalogStore
from modtinder.services.feed_cache import FeedCache
from modtinder.services.feed_client import FeedClient
from modtinder.services.normalizer import CatalogNormalizer
from modtinder.services.refresh_policy import RefreshOptions, is_refresh_due


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ImportResult:
    """임포트 결과 요약"""
    record_count: int
    imported_count: int
    dropped_count: int
    category_count: int
    downloaded: bool
    timestamp: datetime


class ImportCoordinator(LoggerMixin):
    """임포트 필요 여부 판단 및 임포트 실행"""

    def __init__(
        self,
        options: RefreshOptions,
        feed_client: FeedClient,
        feed_cache: FeedCache,
        session_factory: Optional[async_sessionmaker] = None,
        chunk_size: int = 1000,
        normalizer: Optional[CatalogNormalizer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size는 0보다 커야 합니다: {chunk_size}")
        self.options = options
        self.feed_client = feed_client
        self.feed_cache = feed_cache
        self.session_factory = session_factory
        self.chunk_size = chunk_size
        self.normalizer = normalizer or CatalogNormalizer()
        self.clock = clock

    async def latest_import_timestamp(self) -> Optional[datetime]:
        async with session_context(self.session_factory) as session:
            return await CatalogStore(session).latest_import_timestamp()

    async def is_import_due(self, now: Optional[datetime] = None) -> bool:
        """마지막 임포트 시각과 갱신 정책으로 임포트 필요 여부 판단"""
        now = now or self.clock()
        last_import = await self.latest_import_timestamp()
        due = is_refresh_due(last_import, now, self.options)
        self.logger.debug(
            f"임포트 필요 여부: {due} (모드: {self.options.mode.value}, 마지막 임포트: {last_import})"
        )
        return due

    async def import_if_needed(self) -> bool:
        """필요한 경우에만 임포트 (실행 여부 반환)"""
        if not await self.is_import_due():
            return False
        await self.do_import()
        return True

    async def do_import(self) -> ImportResult:
        """
        임포트 실행 (필요 여부와 무관하게 항상 실행)

        어느 단계에서든 실패하면 이후 단계는 실행되지 않고, DB 변경은 롤백되며
        마지막 임포트 시각도 그대로 유지된 채 예외가 전달된다.
        """
        with LogContext(self.logger, "모드 임포트", mode=self.options.mode.value) as ctx:
            downloaded = False
            if self.options.requires_download:
                raw = await self.feed_client.fetch()
                ctx.log_progress(f"피드 다운로드 완료 ({len(raw)} bytes)")
                await self.feed_cache.save(raw)
                downloaded = True

            raw_records = await self.feed_cache.load()
            records = self.normalizer.parse_records(raw_records)
            category_names = self.normalizer.collect_category_names(records)
            ctx.log_progress(f"레코드 {len(raw_records)}개, 카테고리 {len(category_names)}개 로드")

            async with session_context(self.session_factory) as session:
                store = CatalogStore(session)
                await store.insert_categories(category_names)
                categories = await store.get_categories_by_name()

                normalized = self.normalizer.normalize(records, categories)
                await store.upsert_catalog(normalized.mods, self.chunk_size)

                timestamp = self.clock()
                await store.set_import_timestamp(timestamp)

            result = ImportResult(
                record_count=len(raw_records),
                imported_count=len(normalized.mods),
                dropped_count=len(raw_records) - len(normalized.mods),
                category_count=len(categories),
                downloaded=downloaded,
                timestamp=timestamp,
            )
            ctx.log_progress(
                f"모드 {result.imported_count}개 반영, {result.dropped_count}개 제외"
            )
        return result
