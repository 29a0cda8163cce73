"""
스케줄러 서비스
임포트 요청 처리 및 데이터 만료 검사 작업 관리
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from modtinder.core.logger import LogContext, LoggerMixin, log_scheduler_job
from modtinder.services.import_coordinator import ImportCoordinator
from modtinder.services.import_status import ImportStatus


REQUEST_CHECK_JOB_ID = "import_request_check"
EXPIRATION_CHECK_JOB_ID = "import_expiration_check"


class SchedulerService(LoggerMixin):
    """스케줄러 서비스"""

    def __init__(
        self,
        coordinator: ImportCoordinator,
        import_status: ImportStatus,
        request_check_seconds: int = 10,
        expiration_check_seconds: int = 3600,
    ):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.coordinator = coordinator
        self.import_status = import_status
        self.request_check_seconds = request_check_seconds
        self.expiration_check_seconds = expiration_check_seconds

        self._is_running = False
        self._job_stats = {
            "total_jobs": 0,
            "successful_jobs": 0,
            "failed_jobs": 0,
            "last_import": None,
            "last_import_result": None,
        }

        # 이벤트 리스너 등록
        self.scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)

        logger.info("스케줄러 서비스 초기화 완료")

    async def start(self) -> None:
        """스케줄러 시작"""
        if self._is_running:
            logger.warning("스케줄러가 이미 실행 중입니다")
            return

        with LogContext(self.logger, "스케줄러 시작") as ctx:
            self._register_jobs()
            self.scheduler.start()
            self._is_running = True
            ctx.log_progress("스케줄러 시작 완료")

    async def shutdown(self) -> None:
        """스케줄러 종료 (진행 중인 작업은 기다리지 않음)"""
        if not self._is_running:
            return

        with LogContext(self.logger, "스케줄러 종료") as ctx:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            ctx.log_progress("스케줄러 종료 완료")

    def _register_jobs(self) -> None:
        """스케줄 작업 등록"""
        logger.info("스케줄 작업 등록 시작")

        # 1. 임포트 요청 확인 (기본 10초마다)
        self.scheduler.add_job(
            func=self.run_request_check,
            trigger=IntervalTrigger(seconds=self.request_check_seconds),
            id=REQUEST_CHECK_JOB_ID,
            name="임포트 요청 처리",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        # 2. 데이터 만료 검사 (기본 1시간마다, 시작 시 즉시 1회)
        self.scheduler.add_job(
            func=self.run_expiration_check,
            trigger=IntervalTrigger(seconds=self.expiration_check_seconds),
            id=EXPIRATION_CHECK_JOB_ID,
            name="모드 데이터 만료 검사",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )

        logger.info("스케줄 작업 등록 완료")

    @log_scheduler_job("임포트 요청 처리")
    async def run_request_check(self) -> bool:
        """요청된 임포트가 있으면 실행 (실행 여부 반환)"""
        ran = await self.import_status.try_claim_and_run(self._import_job)
        return ran

    async def _import_job(self) -> None:
        result = await self.coordinator.do_import()
        self._job_stats["last_import"] = result.timestamp
        self._job_stats["last_import_result"] = {
            "record_count": result.record_count,
            "imported_count": result.imported_count,
            "dropped_count": result.dropped_count,
            "category_count": result.category_count,
            "downloaded": result.downloaded,
        }
        logger.success(f"모드 임포트 완료: {result.imported_count}개 모드")

    @log_scheduler_job("모드 데이터 만료 검사")
    async def run_expiration_check(self) -> bool:
        """유휴 상태에서 데이터가 만료되었으면 임포트 요청 (직접 임포트하지 않음)"""
        snapshot = await self.import_status.snapshot()
        if snapshot.import_pending:
            logger.debug("임포트가 이미 요청되었거나 진행 중이므로 만료 검사를 건너뜁니다")
            return False
        if not await self.coordinator.is_import_due():
            return False
        # DB 조회 중에 다른 임포트가 요청/완료되었으면 요청하지 않음
        return await self.import_status.request_import_if_idle(snapshot.completed_imports)

    def _job_executed_listener(self, event) -> None:
        """작업 성공 이벤트 리스너"""
        self._job_stats["total_jobs"] += 1
        self._job_stats["successful_jobs"] += 1

        logger.debug(f"스케줄 작업 실행 완료: {event.job_id}")

    def _job_error_listener(self, event) -> None:
        """작업 실패 이벤트 리스너"""
        self._job_stats["total_jobs"] += 1
        self._job_stats["failed_jobs"] += 1

        logger.error(f"스케줄 작업 실행 실패: {event.job_id} - {event.exception}")

    def get_job_stats(self) -> Dict[str, Any]:
        """작업 통계 조회"""
        last_import: Optional[datetime] = self._job_stats["last_import"]
        return {
            **self._job_stats,
            "last_import": last_import.isoformat() if last_import else None,
            "is_running": self._is_running,
            "scheduled_jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                }
                for job in self.scheduler.get_jobs()
            ],
        }

    def is_running(self) -> bool:
        """스케줄러 실행 상태 확인"""
        return self._is_running
