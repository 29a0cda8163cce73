"""
모드 카탈로그 서비스 설정 관리
"""
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from modtinder.core.exceptions import ConfigurationError
from modtinder.services.refresh_policy import RefreshMode, RefreshOptions


# 현재 파일 기준으로 프로젝트 루트 경로 계산
PACKAGE_DIR = Path(__file__).parent.parent  # modtinder 디렉토리
ROOT_DIR = PACKAGE_DIR.parent               # 프로젝트 루트 디렉토리

# 환경 변수 파일 경로들 (존재하는 파일들만)
ENV_FILES = [
    str(env_file)
    for env_file in (ROOT_DIR / ".env", Path.cwd() / ".env")
    if env_file.exists()
]

THUNDERSTORE_API_URL = "https://thunderstore.io/c/lethal-company/api/v1/package/"
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=ENV_FILES or None,
        env_file_encoding="utf-8",
        extra="ignore",  # 추가 환경변수 무시
    )

    # 기본 설정
    SERVICE_NAME: str = "modtinder"
    API_V1_STR: str = "/api/v1"
    PORT: int = Field(default=8000, ge=1, le=65535)

    # 로깅 설정
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # 데이터베이스 설정
    DB_URL: str
    DB_POOL_SIZE: int = Field(default=10, gt=0)
    DB_MAX_OVERFLOW: int = Field(default=20, ge=0)

    # 모드 임포트 설정
    MOD_REFRESH: RefreshMode
    MOD_IMPORT_INTERVAL_HOURS: Optional[int] = Field(default=None, ge=0)
    SQL_CHUNK_SIZE: int = Field(default=1000, gt=0)
    FEED_URL: str = THUNDERSTORE_API_URL
    MOD_CACHE_FILE: str = "data/mods_cache.json"
    REQUEST_TIMEOUT: int = Field(default=60, gt=0)  # 초

    # 스케줄러 설정
    IMPORT_REQUEST_CHECK_SECONDS: int = Field(default=10, gt=0)
    IMPORT_EXPIRATION_CHECK_SECONDS: int = Field(default=3600, gt=0)

    # 인증 설정
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ADMIN_USERNAME: str = "admin"

    @field_validator("MOD_REFRESH", mode="before")
    @classmethod
    def _parse_refresh_mode(cls, value):
        if isinstance(value, str):
            try:
                return RefreshMode.parse(value)
            except ValueError:
                allowed = ", ".join(mode.value for mode in RefreshMode)
                raise ValueError(f"허용되지 않는 값 '{value}' (허용: {allowed})")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"허용되지 않는 로그 레벨 '{value}' (허용: {', '.join(LOG_LEVELS)})")
        return level

    @model_validator(mode="after")
    def _check_import_interval(self) -> "Settings":
        if self.MOD_REFRESH != RefreshMode.NONE and self.MOD_IMPORT_INTERVAL_HOURS is None:
            raise ValueError(
                f"MOD_IMPORT_INTERVAL_HOURS 환경변수가 없습니다 "
                f"(MOD_REFRESH={self.MOD_REFRESH.value} 모드에서 필수)"
            )
        return self

    @property
    def refresh_options(self) -> RefreshOptions:
        """갱신 정책 설정 객체"""
        window = None
        if self.MOD_IMPORT_INTERVAL_HOURS is not None:
            window = timedelta(hours=self.MOD_IMPORT_INTERVAL_HOURS)
        return RefreshOptions(mode=self.MOD_REFRESH, expiration_window=window)


def _describe_validation_error(error: ValidationError) -> str:
    """pydantic 검증 오류를 환경변수 이름이 드러나는 메시지로 변환"""
    messages = []
    for item in error.errors():
        variable = ".".join(str(loc) for loc in item["loc"])
        if item["type"] == "missing":
            messages.append(f"필수 환경변수 누락: {variable}")
        elif variable:
            messages.append(f"잘못된 환경변수 {variable}: {item['msg']}")
        else:
            messages.append(item["msg"])
    return "; ".join(messages)


@lru_cache()
def get_settings() -> Settings:
    """설정 인스턴스 반환 (캐시됨)"""
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(_describe_validation_error(e)) from e
