"""
모드 카탈로그 서비스 API 라우터
"""
from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from modtinder.core.config import get_settings
from modtinder.core.exceptions import NoModsFoundError
from modtinder.core.security import LOGIN_COOKIE, SETTINGS_COOKIE, create_access_token
from modtinder.dependencies import (
    get_browse_settings,
    get_current_user_id,
    get_import_coordinator,
    get_import_status,
    get_scheduler_service,
    get_session,
    require_admin,
)
from modtinder.models import RatingType, User
from modtinder.schemas.mod_schemas import (
    BrowseSettings,
    CategoryCheckbox,
    CategoryResponse,
    ImportStatusResponse,
    ModQueryOptions,
    ModResponse,
    SettingsResponse,
)
from modtinder.schemas.user_schemas import UserResponse
from modtinder.services.catalog_store import CatalogStore
from modtinder.services.import_coordinator import ImportCoordinator
from modtinder.services.import_status import ImportStatus, describe_import_time
from modtinder.services.user_service import UserService

# 설정 쿠키 유지 기간 (20년)
SETTINGS_COOKIE_MAX_AGE = 60 * 60 * 24 * 365 * 20

# 사용자 라우터( /api/v1/auth )
auth_router = APIRouter()
# 모드 라우터( /api/v1 )
mod_router = APIRouter()
# 설정 라우터( /api/v1/settings )
settings_router = APIRouter()
# 관리자 라우터( /api/v1/admin )
admin_router = APIRouter()


# ========================================
# 사용자
# ========================================

@auth_router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    username: str = Form(..., min_length=1),
    password: str = Form(..., min_length=1),
    session: AsyncSession = Depends(get_session),
):
    """사용자 생성 (이미 있는 이름이면 409)"""
    user = await UserService(session).create_user(username, password)
    return UserResponse.model_validate(user)


@auth_router.post("/login", response_model=UserResponse)
async def login(
    response: Response,
    username: str = Form(...),
    password: str = Form(...),
    session: AsyncSession = Depends(get_session),
):
    """로그인 (성공 시 로그인 쿠키 발급)"""
    user = await UserService(session).authenticate(username, password)
    if user is None:
        raise HTTPException(status_code=401, detail="사용자 이름 또는 비밀번호가 올바르지 않습니다.")

    settings = get_settings()
    token = create_access_token(user.id, settings.JWT_SECRET, settings.JWT_ALGORITHM)
    response.set_cookie(LOGIN_COOKIE, token, httponly=True, secure=True)
    return UserResponse.model_validate(user)


@auth_router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    """로그아웃 (로그인 쿠키 삭제)"""
    response.delete_cookie(LOGIN_COOKIE)


# ========================================
# 모드 / 평가
# ========================================

@mod_router.get("/categories", response_model=List[CategoryResponse])
async def get_categories(session: AsyncSession = Depends(get_session)):
    """전체 카테고리 목록"""
    categories = await CatalogStore(session).get_categories()
    return [CategoryResponse.model_validate(category) for category in categories]


@mod_router.get("/mods", response_model=List[ModResponse])
async def get_mods(
    ignored_category: Set[str] = Query(default=set(), description="제외할 카테고리 (반복 지정 가능)"),
    include_deprecated: bool = Query(False, description="지원 중단 모드 포함"),
    include_nsfw: bool = Query(False, description="NSFW 모드 포함"),
    limit: int = Query(20, ge=1, le=100, description="최대 조회 개수"),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """아직 평가하지 않은 모드 목록 (최근 업데이트 순)"""
    options = ModQueryOptions(
        ignored_categories=ignored_category,
        include_deprecated=include_deprecated,
        include_nsfw=include_nsfw,
        limit=limit,
    )
    mods = await CatalogStore(session).get_mods(options, user_id)
    return [ModResponse.from_model(mod) for mod in mods]


@mod_router.get("/rate")
async def get_next_mod(
    user_id: int = Depends(get_current_user_id),
    browse: Tuple[BrowseSettings, Optional[str]] = Depends(get_browse_settings),
    session: AsyncSession = Depends(get_session),
):
    """다음 평가 대상 모드 (설정 쿠키의 필터 적용)"""
    browse_settings, settings_error = browse
    mods = await CatalogStore(session).get_mods(browse_settings.to_query_options(limit=1), user_id)
    if not mods:
        raise NoModsFoundError("평가할 모드가 없습니다")
    return {
        "mod": ModResponse.from_model(mods[0]),
        "settings_error": settings_error,
    }


@mod_router.post("/rate", status_code=status.HTTP_201_CREATED)
async def post_rating(
    mod_id: str = Form(...),
    rating: RatingType = Form(...),
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """모드 평가 기록"""
    try:
        mod_uuid = UUID(mod_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Bad mod uuid")

    await CatalogStore(session).insert_rating(mod_uuid, rating, user_id)
    logger.debug(f"평가 기록 - user_id: {user_id}, mod_id: {mod_uuid}, rating: {rating.value}")
    return {"mod_id": str(mod_uuid), "rating": rating.value}


@mod_router.get("/likes", response_model=List[ModResponse])
async def get_liked_mods(
    user_id: int = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """좋아요한 모드 목록 (최대 100개)"""
    mods = await CatalogStore(session).get_rated_mods(RatingType.LIKE, 100, user_id)
    return [ModResponse.from_model(mod) for mod in mods]


# ========================================
# 설정
# ========================================

@settings_router.get("", response_model=SettingsResponse)
async def get_browse_settings_page(
    user_id: int = Depends(get_current_user_id),
    browse: Tuple[BrowseSettings, Optional[str]] = Depends(get_browse_settings),
    session: AsyncSession = Depends(get_session),
):
    """탐색 설정 조회 (카테고리별 제외 여부 포함)"""
    browse_settings, settings_error = browse
    categories = await CatalogStore(session).get_categories()
    return SettingsResponse(
        categories=[
            CategoryCheckbox(
                id=category.id,
                name=category.name,
                checked=category.name in browse_settings.excluded_category,
            )
            for category in categories
        ],
        include_nsfw=browse_settings.include_nsfw,
        include_deprecated=browse_settings.include_deprecated,
        settings_error=settings_error,
    )


@settings_router.post("", response_model=BrowseSettings)
async def save_browse_settings(
    browse_settings: BrowseSettings,
    response: Response,
    user_id: int = Depends(get_current_user_id),
):
    """탐색 설정 저장 (설정 쿠키)"""
    response.set_cookie(
        SETTINGS_COOKIE,
        browse_settings.model_dump_json(),
        max_age=SETTINGS_COOKIE_MAX_AGE,
    )
    return browse_settings


# ========================================
# 관리자
# ========================================

@admin_router.get("/import-mods", response_model=ImportStatusResponse)
async def get_import_status_page(
    admin: User = Depends(require_admin),
    import_status: ImportStatus = Depends(get_import_status),
    session: AsyncSession = Depends(get_session),
):
    """임포트 진행 여부, 마지막 임포트 시각 및 저장된 모드 수"""
    snapshot = await import_status.snapshot()
    store = CatalogStore(session)
    return ImportStatusResponse(
        import_pending=snapshot.import_pending,
        latest_import=describe_import_time(await store.latest_import_timestamp(), datetime.now(timezone.utc)),
        mod_count=await store.count_mods(),
    )


@admin_router.post("/import-mods", response_model=ImportStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_mod_import(
    admin: User = Depends(require_admin),
    import_status: ImportStatus = Depends(get_import_status),
    coordinator: ImportCoordinator = Depends(get_import_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """모드 재임포트 요청 (다음 요청 확인 작업에서 실행)"""
    logger.info(f"모드 재임포트 요청: {admin.username}")
    await import_status.request_import()
    latest_import = await coordinator.latest_import_timestamp()
    return ImportStatusResponse(
        import_pending=True,
        latest_import=describe_import_time(latest_import, datetime.now(timezone.utc)),
        mod_count=await CatalogStore(session).count_mods(),
    )


@admin_router.get("/scheduler/stats")
async def get_scheduler_stats(admin: User = Depends(require_admin)):
    """스케줄러 통계 조회"""
    scheduler_service = get_scheduler_service()
    if scheduler_service is None:
        raise HTTPException(status_code=503, detail="스케줄러가 실행 중이 아닙니다.")
    return {
        "scheduler_stats": scheduler_service.get_job_stats(),
        "status": "success",
    }
