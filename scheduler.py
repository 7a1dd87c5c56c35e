import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from config import get_settings
from database import session_scope
from services import AutoTransactionService


logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        settings = get_settings()
        self.session_factory = session_factory
        self.interval_minutes = settings.auto_post_interval_minutes
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> int:
        logger.info(f"scheduler_run: source={source}")
        with session_scope(self.session_factory) as session:
            count = AutoTransactionService(session).post_due()
            logger.info(f"scheduler_run: source={source} occurrences_posted={count}")
        return count

    def start(self) -> None:
        self._run_job("startup")

        trigger = IntervalTrigger(minutes=self.interval_minutes)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["interval"],
            id="auto_billing",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(f"Scheduler started: auto billing every {self.interval_minutes}m")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
