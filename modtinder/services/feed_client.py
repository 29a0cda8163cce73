"""
모드 피드 클라이언트
원격 카탈로그 문서를 그대로(바이트) 가져온다
"""
from typing import Optional

import httpx
from loguru import logger

from modtinder.core.exceptions import FeedDownloadError


class FeedClient:
    """모드 피드 다운로드 클라이언트"""

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def fetch(self) -> bytes:
        """피드 원문 다운로드

        Raises:
            FeedDownloadError: 연결 실패 또는 2xx 이외 응답
        """
        logger.info(f"모드 피드 다운로드 시작: {self.url}")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedDownloadError(
                self.url,
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise FeedDownloadError(self.url, str(e) or e.__class__.__name__) from e

        content = response.content
        logger.info(f"모드 피드 다운로드 완료: {len(content)} bytes")
        return content
