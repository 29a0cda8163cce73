"""
모드 피드 정규화
원본 피드 레코드를 DB에 저장 가능한 모드/카테고리 연결로 변환한다

레코드 단위 오류 정책:
- 버전 목록이 비어 있음, 알 수 없는 카테고리, 선택 필드 값 오류 → 로그 후 대체값으로 유지
- uuid4/date_updated 파싱 실패, 필수 필드 누락 → 해당 레코드만 제외하고 계속 진행
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Set
from uuid import UUID

from pydantic import ValidationError

from modtinder.core.logger import LoggerMixin
from modtinder.models.catalog import Category
from modtinder.schemas.feed_schemas import FeedRecord
from modtinder.schemas.mod_schemas import ModCreate


NO_DESCRIPTION = "<No description available>"


@dataclass
class NormalizationResult:
    """정규화 결과"""
    mods: List[ModCreate] = field(default_factory=list)
    dropped: int = 0


def parse_feed_datetime(value: str) -> datetime:
    """ISO-8601 문자열을 UTC 기준 datetime으로 변환 (시간대 정보가 없으면 UTC로 간주)"""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class CatalogNormalizer(LoggerMixin):
    """피드 레코드 정규화 서비스"""

    def parse_records(self, raw_records: Iterable[Any]) -> List[FeedRecord]:
        """원본 JSON 레코드를 하나씩 검증 (필수 필드가 잘못된 레코드만 제외)"""
        records = []
        for index, raw in enumerate(raw_records):
            try:
                records.append(FeedRecord.model_validate(raw))
            except ValidationError as e:
                name = raw.get("name") if isinstance(raw, dict) else None
                self.logger.warning(
                    f"잘못된 피드 레코드 제외 (index={index}, name='{name}'): "
                    f"{e.error_count()}개 필드 오류"
                )
        return records

    @staticmethod
    def collect_category_names(records: Iterable[FeedRecord]) -> Set[str]:
        """피드에 등장하는 모든 카테고리 이름"""
        return {name for record in records for name in record.categories}

    def normalize(
        self,
        records: Iterable[FeedRecord],
        categories_by_name: Mapping[str, Category],
    ) -> NormalizationResult:
        """레코드 목록 정규화"""
        result = NormalizationResult()
        for record in records:
            mod = self.to_insertable(record, categories_by_name)
            if mod is None:
                result.dropped += 1
            else:
                result.mods.append(mod)
        return result

    def to_insertable(
        self,
        record: FeedRecord,
        categories_by_name: Mapping[str, Category],
    ) -> Optional[ModCreate]:
        """레코드 하나를 저장 가능한 모드로 변환 (복구 불가능하면 None)"""
        try:
            mod_id = UUID(record.uuid4)
        except ValueError as e:
            self.logger.warning(
                f"모드 '{record.name}' (id='{record.uuid4}') 변환 실패, 제외합니다: 잘못된 UUID ({e})"
            )
            return None

        try:
            updated_date = parse_feed_datetime(record.date_updated)
        except ValueError as e:
            self.logger.warning(
                f"모드 '{record.name}' (id='{record.uuid4}') 변환 실패, 제외합니다: "
                f"잘못된 날짜 '{record.date_updated}' ({e})"
            )
            return None

        # 피드의 첫 번째 버전을 최신 버전으로 간주
        description, icon_url = NO_DESCRIPTION, ""
        if record.versions:
            most_recent = record.versions[0]
            if most_recent.description is None:
                self.logger.warning(
                    f"모드 '{record.name}' (id='{record.uuid4}') 정보 오류: 최신 버전 설명이 없습니다"
                )
            else:
                description = most_recent.description
            icon_url = most_recent.icon or ""
        else:
            self.logger.warning(
                f"모드 '{record.name}' (id='{record.uuid4}') 정보 오류: 버전 목록이 비어 있습니다"
            )

        category_ids = set()
        for category_name in record.categories:
            category = categories_by_name.get(category_name)
            if category is None:
                self.logger.error(
                    f"모드 '{record.name}' (id='{record.uuid4}') 정보 오류: "
                    f"카테고리 '{category_name}'의 id를 찾을 수 없습니다"
                )
                continue
            category_ids.add(category.id)

        return ModCreate(
            id=mod_id,
            name=record.name,
            description=description,
            icon_url=icon_url,
            full_name=record.full_name,
            owner=record.owner,
            package_url=record.package_url,
            updated_date=updated_date,
            rating=record.rating_score,
            deprecated=record.is_deprecated,
            nsfw=record.has_nsfw_content,
            category_ids=category_ids,
        )
