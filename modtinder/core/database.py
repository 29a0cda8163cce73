"""
데이터베이스 연결 관리
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from loguru import logger

from modtinder.core.config import get_settings
from modtinder.models import Base


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def create_engine_from_url(
    db_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
) -> AsyncEngine:
    """비동기 엔진 생성 (SQLite는 풀 설정 없이 생성)"""
    engine_args = {
        "pool_pre_ping": True,  # 연결이 유효한지 확인
        "echo": False,
    }
    if not db_url.startswith("sqlite"):
        engine_args.update({
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": 30,
            "pool_recycle": 1800,   # 30분
            "pool_use_lifo": True,  # LIFO 방식으로 유휴 연결 감소
        })
        logger.info(
            f"SQLAlchemy 연결 풀 설정 - 크기: {pool_size}, 최대 오버플로우: {max_overflow}"
        )
    return create_async_engine(db_url, **engine_args)


def get_engine() -> AsyncEngine:
    """전역 엔진 반환 (최초 호출 시 생성)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_from_url(
            settings.DB_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return _engine


def get_session_factory() -> async_sessionmaker:
    """전역 세션 팩토리 반환"""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """데이터베이스 세션 의존성 (FastAPI)"""
    async with get_session_factory()() as session:
        yield session


@asynccontextmanager
async def session_context(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    트랜잭션 단위 세션 컨텍스트 매니저

    블록이 정상 종료되면 커밋, 예외가 발생하면 롤백 후 예외를 다시 던진다.

    Usage:
        async with session_context() as session:
            await session.execute(query)
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.error(f"DB 세션 컨텍스트 오류, 롤백합니다: {e}")
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """테이블 생성 (존재하지 않는 테이블만)"""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("데이터베이스 테이블 확인/생성 완료")


async def check_db_connection() -> bool:
    """데이터베이스 연결 확인"""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"데이터베이스 연결 확인 실패: {e}")
        return False


async def close_db_connections() -> None:
    """애플리케이션 종료 시 DB 연결 정리"""
    global _engine, _session_factory
    if _engine is None:
        return
    logger.info("DB 연결 종료 중...")
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("DB 연결이 안전하게 종료되었습니다.")
