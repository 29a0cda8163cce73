"""
의존성 주입 모듈
"""
import json
from typing import AsyncGenerator, Optional, Tuple

from fastapi import Cookie, Depends, HTTPException
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from modtinder.core.config import get_settings
from modtinder.core.database import session_context
from modtinder.core.exceptions import AuthenticationError, PermissionDeniedError
from modtinder.core.security import LOGIN_COOKIE, SETTINGS_COOKIE, decode_access_token
from modtinder.models import User
from modtinder.schemas.mod_schemas import BrowseSettings
from modtinder.services.import_coordinator import ImportCoordinator
from modtinder.services.import_status import ImportStatus
from modtinder.services.scheduler_service import SchedulerService
from modtinder.services.user_service import UserService


SETTINGS_ERROR_MESSAGE = (
    "There was an error loading your settings, please visit the settings page to refresh them."
)

# 전역 서비스 인스턴스
_import_status: ImportStatus = None
_import_coordinator: ImportCoordinator = None
_scheduler_service: SchedulerService = None


def set_import_status(status: ImportStatus):
    """임포트 상태 인스턴스 설정"""
    global _import_status
    _import_status = status


def set_import_coordinator(coordinator: ImportCoordinator):
    """임포트 코디네이터 인스턴스 설정"""
    global _import_coordinator
    _import_coordinator = coordinator


def set_scheduler_service(scheduler: SchedulerService):
    """스케줄러 서비스 인스턴스 설정"""
    global _scheduler_service
    _scheduler_service = scheduler


def get_import_status() -> ImportStatus:
    """임포트 상태 인스턴스 반환"""
    if not _import_status:
        raise HTTPException(status_code=503, detail="임포트 상태가 초기화되지 않았습니다.")
    return _import_status


def get_import_coordinator() -> ImportCoordinator:
    """임포트 코디네이터 인스턴스 반환"""
    if not _import_coordinator:
        raise HTTPException(status_code=503, detail="임포트 서비스가 초기화되지 않았습니다.")
    return _import_coordinator


def get_scheduler_service() -> Optional[SchedulerService]:
    """스케줄러 서비스 인스턴스 반환 (없으면 None)"""
    return _scheduler_service


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """요청 단위 트랜잭션 세션 (정상 종료 시 커밋)"""
    async with session_context() as session:
        yield session


def get_current_user_id(lcmt_login: Optional[str] = Cookie(default=None, alias=LOGIN_COOKIE)) -> int:
    """로그인 쿠키에서 사용자 id 추출"""
    if not lcmt_login:
        raise AuthenticationError("로그인이 필요합니다")
    settings = get_settings()
    return decode_access_token(lcmt_login, settings.JWT_SECRET, settings.JWT_ALGORITHM)


async def require_admin(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> User:
    """관리자 사용자 확인"""
    user = await UserService(session).get_by_id(user_id)
    if user is None:
        raise AuthenticationError("존재하지 않는 사용자입니다")
    if user.username != get_settings().ADMIN_USERNAME:
        raise PermissionDeniedError("관리자 권한이 필요합니다")
    return user


def parse_browse_settings(raw: Optional[str]) -> Tuple[BrowseSettings, Optional[str]]:
    """설정 쿠키 해석 (오류 시 기본값과 오류 메시지 반환)"""
    if not raw:
        return BrowseSettings(), None
    try:
        return BrowseSettings.model_validate(json.loads(raw)), None
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"설정 쿠키 해석 실패: {e}")
        return BrowseSettings(), SETTINGS_ERROR_MESSAGE


def get_browse_settings(
    lcmt_settings: Optional[str] = Cookie(default=None, alias=SETTINGS_COOKIE),
) -> Tuple[BrowseSettings, Optional[str]]:
    return parse_browse_settings(lcmt_settings)
