"""
모드 카탈로그 Pydantic 스키마
임포트 입력, 조회 옵션 및 API 응답 스키마
"""
from datetime import datetime
from typing import List, Optional, Set
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ModCreate(BaseModel):
    """DB에 저장 가능한 형태로 정규화된 모드"""
    id: UUID
    name: str
    description: str
    icon_url: str
    full_name: str
    owner: str
    package_url: str
    updated_date: datetime
    rating: int
    deprecated: bool
    nsfw: bool
    category_ids: Set[int] = Field(default_factory=set)

    def to_row(self) -> dict:
        """mods 테이블 행 값"""
        return self.model_dump(exclude={"category_ids"})


class ModQueryOptions(BaseModel):
    """모드 목록 조회 옵션"""
    ignored_categories: Set[str] = Field(default_factory=set, description="제외할 카테고리 이름")
    include_deprecated: bool = Field(default=False, description="지원 중단 모드 포함 여부")
    include_nsfw: bool = Field(default=False, description="NSFW 모드 포함 여부")
    limit: int = Field(default=20, ge=1, description="최대 조회 개수")


class CategoryResponse(BaseModel):
    """카테고리 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class ModResponse(BaseModel):
    """모드 응답"""
    id: UUID
    name: str
    owner: str
    description: str
    icon_url: str
    package_url: str
    full_name: str
    updated_date: datetime
    rating: int
    deprecated: bool
    nsfw: bool
    categories: List[str] = Field(default_factory=list)

    @classmethod
    def from_model(cls, mod) -> "ModResponse":
        return cls(
            id=mod.id,
            name=mod.name,
            owner=mod.owner,
            description=mod.description,
            icon_url=mod.icon_url,
            package_url=mod.package_url,
            full_name=mod.full_name,
            updated_date=mod.updated_date,
            rating=mod.rating,
            deprecated=mod.deprecated,
            nsfw=mod.nsfw,
            categories=[category.name for category in mod.categories],
        )


class BrowseSettings(BaseModel):
    """사용자 탐색 설정 (쿠키에 JSON으로 저장)"""
    excluded_category: Set[str] = Field(default_factory=set)
    include_nsfw: bool = False
    include_deprecated: bool = False

    def to_query_options(self, limit: int) -> ModQueryOptions:
        return ModQueryOptions(
            ignored_categories=self.excluded_category,
            include_deprecated=self.include_deprecated,
            include_nsfw=self.include_nsfw,
            limit=limit,
        )


class CategoryCheckbox(BaseModel):
    """설정 화면의 카테고리 체크 상태"""
    id: int
    name: str
    checked: bool


class SettingsResponse(BaseModel):
    """설정 조회 응답"""
    categories: List[CategoryCheckbox]
    include_nsfw: bool
    include_deprecated: bool
    settings_error: Optional[str] = None


class ImportStatusResponse(BaseModel):
    """임포트 상태 응답"""
    import_pending: bool
    latest_import: str
    mod_count: int
