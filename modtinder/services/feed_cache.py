"""
모드 피드 로컬 캐시
마지막으로 받은 피드 원문을 디스크에 보관하여 네트워크 없이 임포트를 재실행할 수 있게 한다
"""
import asyncio
import json
from functools import partial
from pathlib import Path
from typing import Any, List, Union

from loguru import logger

from modtinder.core.exceptions import FeedCacheError


class FeedCache:
    """피드 캐시 파일 관리"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _write(self, raw: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(raw)

    def _read(self) -> bytes:
        return self.path.read_bytes()

    async def save(self, raw: bytes) -> None:
        """피드 원문을 그대로 캐시 파일에 저장 (상위 디렉토리는 필요 시 생성)"""
        logger.debug(f"피드 캐시 저장: {self.path}")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._write, raw))
        except OSError as e:
            raise FeedCacheError(self.path, str(e)) from e

    async def load(self) -> List[Any]:
        """캐시 파일을 읽어 피드 레코드 목록(JSON 배열)으로 반환"""
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self._read)
        except OSError as e:
            raise FeedCacheError(self.path, str(e)) from e

        try:
            records = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FeedCacheError(self.path, f"JSON 파싱 실패: {e}") from e

        if not isinstance(records, list):
            raise FeedCacheError(self.path, f"JSON 배열이 아닙니다 ({type(records).__name__})")

        logger.debug(f"피드 캐시 로드: {len(records)}개 레코드")
        return records
