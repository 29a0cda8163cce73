"""
모드 카탈로그 서비스 메인 애플리케이션
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from modtinder import dependencies
from modtinder.core.config import get_settings
from modtinder.core.database import check_db_connection, close_db_connections, get_session_factory, init_models
from modtinder.core.exceptions import (
    AuthenticationError,
    ModTinderError,
    NoModsFoundError,
    PermissionDeniedError,
    UserAlreadyExistsError,
)
from modtinder.core.logger import setup_loguru
from modtinder.services.feed_cache import FeedCache
from modtinder.services.feed_client import FeedClient
from modtinder.services.import_coordinator import ImportCoordinator
from modtinder.services.import_status import ImportStatus
from modtinder.services.refresh_policy import RefreshMode
from modtinder.services.scheduler_service import SchedulerService


# loguru 레벨 → uvicorn 레벨
UVICORN_LOG_LEVELS = {
    "TRACE": "trace",
    "DEBUG": "debug",
    "INFO": "info",
    "SUCCESS": "info",
    "WARNING": "warning",
    "ERROR": "error",
    "CRITICAL": "critical",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기 관리"""
    settings = get_settings()
    setup_loguru(settings.LOG_LEVEL, settings.LOG_DIR)

    scheduler_service = None
    try:
        logger.info("모드 카탈로그 서비스 시작 중...")

        await init_models()

        import_status = ImportStatus()
        coordinator = ImportCoordinator(
            options=settings.refresh_options,
            feed_client=FeedClient(settings.FEED_URL, timeout=settings.REQUEST_TIMEOUT),
            feed_cache=FeedCache(settings.MOD_CACHE_FILE),
            session_factory=get_session_factory(),
            chunk_size=settings.SQL_CHUNK_SIZE,
        )
        dependencies.set_import_status(import_status)
        dependencies.set_import_coordinator(coordinator)

        if settings.MOD_REFRESH == RefreshMode.NONE:
            logger.info("MOD_REFRESH=none: 자동 임포트 없이 관리자 요청만 처리합니다")

        scheduler_service = SchedulerService(
            coordinator,
            import_status,
            request_check_seconds=settings.IMPORT_REQUEST_CHECK_SECONDS,
            expiration_check_seconds=settings.IMPORT_EXPIRATION_CHECK_SECONDS,
        )
        await scheduler_service.start()
        dependencies.set_scheduler_service(scheduler_service)

        logger.info(f"모드 카탈로그 서비스 시작 완료 (갱신 모드: {settings.MOD_REFRESH.value})")

        yield  # 애플리케이션 실행

    except Exception as e:
        logger.error(f"서비스 시작 중 오류 발생: {e}")
        raise
    finally:
        logger.info("모드 카탈로그 서비스 종료 중...")

        if scheduler_service:
            await scheduler_service.shutdown()
        dependencies.set_scheduler_service(None)
        await close_db_connections()

        logger.info("모드 카탈로그 서비스 종료 완료")


# FastAPI 애플리케이션 생성
app = FastAPI(
    title="모드 카탈로그 서비스",
    description="Thunderstore 모드 목록 동기화 및 사용자별 모드 평가",
    version="1.0.0",
    lifespan=lifespan,
)


# 라우터 등록 (import를 여기서 해서 순환 import 방지)
from modtinder.api.routers import admin_router, auth_router, mod_router, settings_router  # noqa: E402

app.include_router(auth_router, prefix="/api/v1/auth", tags=["사용자"])
app.include_router(mod_router, prefix="/api/v1", tags=["모드"])
app.include_router(settings_router, prefix="/api/v1/settings", tags=["설정"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["관리"])


@app.get("/")
async def root():
    """서비스 상태 확인"""
    return {
        "service": "모드 카탈로그 서비스",
        "status": "running",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """헬스 체크"""
    scheduler_service = dependencies.get_scheduler_service()
    if scheduler_service is None:
        scheduler_status = "disabled"
    else:
        scheduler_status = "healthy" if scheduler_service.is_running() else "unhealthy"

    database_status = "healthy" if await check_db_connection() else "unhealthy"
    overall_status = "healthy" if database_status == "healthy" and scheduler_status != "unhealthy" else "unhealthy"

    return {
        "status": overall_status,
        "services": {
            "scheduler": scheduler_status,
            "database": database_status,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.exception_handler(NoModsFoundError)
async def no_mods_exception_handler(request: Request, exc: NoModsFoundError):
    return JSONResponse(status_code=404, content={"detail": "No mods found"})


@app.exception_handler(UserAlreadyExistsError)
async def user_exists_exception_handler(request: Request, exc: UserAlreadyExistsError):
    return JSONResponse(status_code=409, content={"detail": "That username is already taken"})


@app.exception_handler(AuthenticationError)
async def authentication_exception_handler(request: Request, exc: AuthenticationError):
    logger.debug(f"인증 실패: {exc}")
    return JSONResponse(status_code=401, content={"detail": "로그인이 필요합니다."})


@app.exception_handler(PermissionDeniedError)
async def permission_exception_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": "관리자 권한이 필요합니다."})


@app.exception_handler(ModTinderError)
async def service_exception_handler(request: Request, exc: ModTinderError):
    logger.error(f"서비스 오류: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """전역 예외 처리"""
    logger.opt(exception=exc).error(f"예외 발생: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "내부 서버 오류가 발생했습니다."},
    )


def run() -> None:
    """uvicorn으로 서비스 실행"""
    settings = get_settings()
    uvicorn.run(
        "modtinder.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_level=UVICORN_LOG_LEVELS.get(settings.LOG_LEVEL, "info"),
    )


if __name__ == "__main__":
    run()
