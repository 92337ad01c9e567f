"""回收站后台清理：用 APScheduler 的间隔任务定期调用 ``RecycleBin.purge_expired``。"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from hcloud.core.logger import logger
from hcloud.services.recycle_service import PurgeReport, RecycleBin

SWEEP_JOB_ID = "purge_expired_recycle_items"


class RecycleSweeper:
    """每轮使用独立的数据库会话；单轮失败只记录日志，不影响后续调度。"""

    def __init__(
        self,
        recycle_bin: RecycleBin,
        session_factory: Callable[[], Session],
        interval_seconds: int = 3600,
    ):
        self.recycle_bin = recycle_bin
        self.session_factory = session_factory
        self.interval_seconds = max(int(interval_seconds), 1)
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            return
        scheduler = BackgroundScheduler(daemon=True)
        scheduler.add_job(
            func=self._tick,
            trigger="interval",
            seconds=self.interval_seconds,
            id=SWEEP_JOB_ID,
            name="Purge expired recycle items",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Recycle sweeper started, interval=%ss", self.interval_seconds)

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Recycle sweeper stopped")

    def run_once(self, now: Optional[datetime] = None) -> PurgeReport:
        db = self.session_factory()
        try:
            report = self.recycle_bin.purge_expired(db, now=now)
        finally:
            db.close()
        if report.partial:
            logger.warning("Recycle sweep: purged=%d failures=%d", report.purged, len(report.failures))
        elif report.purged:
            logger.info("Recycle sweep: purged=%d", report.purged)
        return report

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception:
            logger.exception("Recycle sweep failed")
