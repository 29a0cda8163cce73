"""
모드 카탈로그 서비스 로깅 설정 (Loguru 기반)
"""
import sys
from datetime import datetime
from functools import wraps
from pathlib import Path

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def setup_loguru(log_level: str = "INFO", log_dir: str = "logs") -> None:
    """Loguru 로거 설정"""
    # 기본 로거 제거 (loguru의 기본 stderr 핸들러)
    logger.remove()

    # 콘솔 로거
    logger.add(
        sys.stderr,
        level=log_level,
        format=CONSOLE_FORMAT,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    log_path = Path(log_dir)
    try:
        log_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"로그 디렉토리 생성 실패, 콘솔 로그만 사용합니다: {log_path} ({e})")
        return

    # 파일 로거 (일반 로그)
    logger.add(
        log_path / "modtinder_{time:YYYY-MM-DD}.log",
        level=log_level,
        format=FILE_FORMAT,
        rotation="00:00",     # 매일 자정에 로테이션
        retention="30 days",
        compression="gz",
        encoding="utf-8",
        enqueue=True,
    )

    # 에러 로거 (에러만 별도 파일)
    logger.add(
        log_path / "error_{time:YYYY-MM-DD}.log",
        level="ERROR",
        format=FILE_FORMAT + " | {exception}",
        rotation="00:00",
        retention="90 days",
        compression="gz",
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
    )

    logger.info(f"Loguru 로깅 시스템 초기화 완료 (레벨: {log_level}, 디렉토리: {log_path})")


class LoggerMixin:
    """로거 믹스인 클래스"""

    @property
    def logger(self):
        """클래스별 로거 반환"""
        return logger.bind(name=self.__class__.__name__)


class LogContext:
    """작업 단위 로그 컨텍스트 관리자 (시작/완료/실패 및 소요시간 기록)"""

    def __init__(self, logger_instance, operation: str, **kwargs):
        self.logger = logger_instance
        self.operation = operation
        self.context = kwargs
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.bind(**self.context).info(f"[{self.operation}] 시작")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        bound = self.logger.bind(**self.context)
        if exc_type is None:
            bound.info(f"[{self.operation}] 완료 (소요시간: {duration:.2f}초)")
        else:
            bound.error(f"[{self.operation}] 실패 (소요시간: {duration:.2f}초): {exc_val}")
        # 예외는 호출자에게 그대로 전달
        return False

    def log_progress(self, message: str, **kwargs):
        """진행 상황 로깅"""
        self.logger.bind(**self.context, **kwargs).info(f"[{self.operation}] {message}")


def log_scheduler_job(job_name: str):
    """스케줄러 작업 로깅 데코레이터"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = datetime.now()
            logger.debug(f"스케줄 작업 시작: {job_name}")

            try:
                result = await func(*args, **kwargs)
                duration = (datetime.now() - start_time).total_seconds()
                logger.debug(f"스케줄 작업 완료: {job_name} (소요시간: {duration:.2f}초)")
                return result

            except Exception as e:
                duration = (datetime.now() - start_time).total_seconds()
                logger.error(f"스케줄 작업 실패: {job_name} (소요시간: {duration:.2f}초): {e}")
                raise

        return wrapper
    return decorator
