"""
모드 데이터 갱신 정책
마지막 임포트 시각과 현재 시각으로 임포트가 필요한지 판단
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class RefreshMode(str, Enum):
    """갱신 모드"""
    NONE = "none"                                  # 동기화 비활성화
    CACHE_ONLY = "cache-only"                      # 로컬 캐시에서만 임포트
    DOWNLOAD_IF_EXPIRED = "download-if-expired"    # 만료 시 다운로드 후 임포트

    @classmethod
    def parse(cls, value: str) -> "RefreshMode":
        """환경변수 값을 갱신 모드로 변환 (구버전 값 'expiration' 허용)"""
        normalized = value.strip().lower()
        if normalized == "expiration":
            return cls.DOWNLOAD_IF_EXPIRED
        return cls(normalized)


@dataclass(frozen=True)
class RefreshOptions:
    """갱신 설정"""
    mode: RefreshMode
    expiration_window: Optional[timedelta] = None

    def __post_init__(self):
        if self.mode != RefreshMode.NONE and self.expiration_window is None:
            raise ValueError(f"'{self.mode.value}' 모드에는 만료 기간이 필요합니다")

    @property
    def requires_download(self) -> bool:
        """네트워크 다운로드가 필요한 모드인지 여부"""
        return self.mode == RefreshMode.DOWNLOAD_IF_EXPIRED


def is_expired(
    last_import: Optional[datetime],
    now: datetime,
    expiration_window: timedelta,
) -> bool:
    """만료 여부 판단

    이전 임포트 기록이 없으면(최초 실행) 항상 만료로 본다.
    경과 시간이 만료 기간과 정확히 같으면 아직 만료되지 않은 것으로 본다.
    """
    if last_import is None:
        return True
    return now - last_import > expiration_window


def is_refresh_due(
    last_import: Optional[datetime],
    now: datetime,
    options: RefreshOptions,
) -> bool:
    """현재 설정 기준으로 임포트를 수행해야 하는지 판단"""
    if options.mode == RefreshMode.NONE:
        return False
    return is_expired(last_import, now, options.expiration_window)
