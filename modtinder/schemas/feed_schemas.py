"""
모드 피드(Thunderstore 패키지 목록) 원본 레코드 스키마

식별/내용 필드(uuid4, date_updated, name, full_name, owner, package_url)만 필수이며,
나머지 필드는 값이 잘못되어도 로그를 남기고 대체값으로 레코드를 유지한다.
"""
from typing import Any, List, Optional

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)


def _replace_invalid(
    model: type[BaseModel],
    value: Any,
    handler: ValidatorFunctionWrapHandler,
    info: ValidationInfo,
    fallback: Any,
) -> Any:
    try:
        return handler(value)
    except ValidationError as e:
        logger.warning(
            f"피드 필드 오류 ({model.__name__} '{info.data.get('name')}'): "
            f"{info.field_name}={value!r} → {fallback!r}로 대체 ({e.errors()[0]['msg']})"
        )
        return fallback


class FeedVersion(BaseModel):
    """모드 버전 정보 (피드는 최신 버전을 첫 번째로 제공)"""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    full_name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    version_number: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    download_url: Optional[str] = None
    downloads: Optional[int] = None
    date_created: Optional[str] = None
    website_url: Optional[str] = None
    is_active: Optional[bool] = None
    uuid4: Optional[str] = None
    file_size: Optional[int] = None

    @field_validator("*", mode="wrap")
    @classmethod
    def _tolerate_invalid(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        fallback = cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return _replace_invalid(cls, value, handler, info, fallback)


class FeedRecord(BaseModel):
    """피드 레코드 (uuid4, date_updated 파싱은 정규화 단계에서 수행)"""
    model_config = ConfigDict(extra="ignore")

    # 필수
    name: str
    full_name: str
    owner: str
    package_url: str
    date_updated: str
    uuid4: str

    donation_link: Optional[str] = None
    date_created: Optional[str] = None
    rating_score: int = 0
    is_pinned: bool = False
    is_deprecated: bool = False
    has_nsfw_content: bool = False
    categories: List[str] = Field(default_factory=list)
    versions: List[FeedVersion] = Field(default_factory=list)

    @field_validator("donation_link", "date_created", "rating_score", "is_pinned", mode="wrap")
    @classmethod
    def _tolerate_invalid(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        fallback = cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return _replace_invalid(cls, value, handler, info, fallback)

    @field_validator("is_deprecated", "has_nsfw_content", mode="wrap")
    @classmethod
    def _flag_when_invalid(cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        # 필터 대상 플래그가 잘못되면 기본 설정에서 숨겨지도록 True로 간주
        return _replace_invalid(cls, value, handler, info, True)

    @field_validator("categories", mode="before")
    @classmethod
    def _keep_category_names(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, list):
            logger.warning(f"피드 필드 오류 (FeedRecord '{info.data.get('name')}'): categories={value!r} → []로 대체")
            return []
        names = [name for name in value if isinstance(name, str)]
        if len(names) != len(value):
            logger.warning(
                f"피드 필드 오류 (FeedRecord '{info.data.get('name')}'): "
                f"문자열이 아닌 카테고리 {len(value) - len(names)}개 제외"
            )
        return names

    @field_validator("versions", mode="before")
    @classmethod
    def _keep_version_slots(cls, value: Any, info: ValidationInfo) -> Any:
        # 순서가 의미를 가지므로 잘못된 항목은 제외하지 않고 빈 버전으로 대체
        if not isinstance(value, list):
            logger.warning(f"피드 필드 오류 (FeedRecord '{info.data.get('name')}'): versions={value!r} → []로 대체")
            return []
        versions = []
        for index, entry in enumerate(value):
            if isinstance(entry, dict):
                versions.append(entry)
            else:
                logger.warning(
                    f"피드 필드 오류 (FeedRecord '{info.data.get('name')}'): versions[{index}]={entry!r} → 빈 버전으로 대체"
                )
                versions.append({})
        return versions
