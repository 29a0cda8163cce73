"""
임포트 요청/진행 상태
관리자 요청, 만료 검사, 요청 처리 작업이 공유하는 상태를 하나의 락으로 보호한다
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from loguru import logger


@dataclass(frozen=True)
class ImportStatusSnapshot:
    import_requested: bool
    import_in_progress: bool
    completed_imports: int = 0

    @property
    def import_pending(self) -> bool:
        """요청되었거나 진행 중인 임포트가 있는지 여부"""
        return self.import_requested or self.import_in_progress


class ImportStatus:
    """임포트 요청/진행 플래그

    락은 플래그를 읽고 쓰는 동안에만 잡으며, 임포트 실행 중에는 잡지 않는다.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._import_requested = False
        self._import_in_progress = False
        self._completed_imports = 0

    async def request_import(self) -> None:
        """임포트 요청 (이미 요청된 상태면 변화 없음)"""
        async with self._lock:
            if not self._import_requested:
                logger.info("모드 임포트 요청됨")
            self._import_requested = True

    async def request_import_if_idle(self, completed_imports: Optional[int] = None) -> bool:
        """
        요청/진행 중인 임포트가 없을 때만 임포트 요청

        completed_imports가 주어지면 그 이후 성공한 임포트가 없을 때만 요청한다.

        Returns:
            bool: 요청 여부
        """
        async with self._lock:
            if self._import_requested or self._import_in_progress:
                return False
            if completed_imports is not None and completed_imports != self._completed_imports:
                return False
            self._import_requested = True
        logger.info("모드 임포트 요청됨")
        return True

    async def try_claim_and_run(self, import_fn: Callable[[], Awaitable[Any]]) -> bool:
        """
        요청된 임포트가 있고 진행 중인 임포트가 없으면 실행

        실행이 끝나면 성공/실패와 관계없이 요청/진행 플래그를 모두 해제한다.
        실패한 경우 예외는 호출자에게 전달된다.

        Returns:
            bool: 임포트 실행 여부
        """
        async with self._lock:
            if not self._import_requested or self._import_in_progress:
                return False
            self._import_in_progress = True

        succeeded = False
        try:
            await import_fn()
            succeeded = True
        finally:
            async with self._lock:
                self._import_requested = False
                self._import_in_progress = False
                if succeeded:
                    self._completed_imports += 1
        return True

    async def snapshot(self) -> ImportStatusSnapshot:
        async with self._lock:
            return ImportStatusSnapshot(
                import_requested=self._import_requested,
                import_in_progress=self._import_in_progress,
                completed_imports=self._completed_imports,
            )


def describe_import_time(latest_import: Optional[datetime], now: datetime) -> str:
    """마지막 임포트 시각 표시 문자열

    예: "2025-03-21 10:00UTC (2 days ago)", 기록이 없으면 "Never"
    """
    if latest_import is None:
        return "Never"

    latest_import = latest_import.astimezone(timezone.utc)
    date_str = latest_import.strftime("%Y-%m-%d %H:%MUTC")

    elapsed = now - latest_import
    seconds = int(elapsed.total_seconds())
    days = seconds // 86400
    hours = seconds // 3600
    minutes = seconds // 60

    if days > 0:
        time_since = f"{days} days ago"
    elif hours > 0:
        time_since = f"{hours} hours ago"
    elif minutes >= 5:
        time_since = f"{minutes} minutes ago"
    else:
        time_since = "just now"

    return f"{date_str} ({time_since})"
