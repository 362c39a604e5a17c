import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.logger import logger
from models.base import utcnow
from services.expiry import retention_cutoff
from services.repository import QuizRepository


@dataclass
class SweepResult:
    success: bool
    count: int = 0
    quiz_ids: List[int] = field(default_factory=list)
    message: str = ""
    error: Optional[str] = None

    def to_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error, "message": self.message}
        return {"success": True, "count": self.count, "quizIds": self.quiz_ids, "message": self.message}


class RetentionSweeper:
    """
    Deletes quizzes past their retention window, together with their questions,
    attempts and hosted images.

    `run_once` is one sweep cycle and never raises. `start`/`stop` own the
    recurring APScheduler job: first run after the initial delay, then every
    CLEANUP_INTERVAL_HOURS.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        media_store,
        initial_delay_seconds: float = None,
        interval_hours: int = None,
        media_timeout_seconds: float = None,
        clock=utcnow,
    ):
        self.session_factory = session_factory
        self.media_store = media_store
        self.initial_delay_seconds = (
            settings.CLEANUP_INITIAL_DELAY_SECONDS if initial_delay_seconds is None else initial_delay_seconds
        )
        self.interval_hours = interval_hours or settings.CLEANUP_INTERVAL_HOURS
        self.media_timeout_seconds = media_timeout_seconds or settings.MEDIA_CLEANUP_TIMEOUT_SECONDS
        self.clock = clock
        self.scheduler: Optional[AsyncIOScheduler] = None

    async def _cleanup_images(self, repo: QuizRepository, quiz_ids: List[int]):
        try:
            urls = await repo.image_urls_for(quiz_ids)
            if not urls:
                return
            logger.info("Cleaning up images for expired quizzes", quizzes=len(quiz_ids), images=len(urls))
            deleted = await asyncio.wait_for(
                self.media_store.delete_images(urls), timeout=self.media_timeout_seconds
            )
            logger.info("Expired quiz images deleted", deleted=deleted, total=len(urls))
        except asyncio.TimeoutError:
            logger.warning("Image cleanup timed out, continuing with database cleanup",
                           timeout=self.media_timeout_seconds)
        except Exception as e:
            # Orphaned media is acceptable, blocked cleanup is not
            logger.warning("Error cleaning up images, continuing with database cleanup", error=str(e))

    async def run_once(self, now: datetime = None) -> SweepResult:
        """Run one sweep cycle and report what was removed."""
        try:
            cutoff = retention_cutoff(now or self.clock())
            logger.info("Starting cleanup of expired quizzes", cutoff=cutoff.isoformat())

            async with self.session_factory() as db:
                repo = QuizRepository(db)
                quiz_ids = await repo.find_quizzes_created_before(cutoff)
                logger.info("Expired quizzes found", count=len(quiz_ids))

                if not quiz_ids:
                    return SweepResult(success=True, message="No expired quizzes found to clean up")

                await self._cleanup_images(repo, quiz_ids)

                await repo.delete_quizzes_cascade(quiz_ids)
                logger.info("Expired quizzes deleted", count=len(quiz_ids), quiz_ids=quiz_ids)

            return SweepResult(
                success=True,
                count=len(quiz_ids),
                quiz_ids=quiz_ids,
                message=f"Cleaned up {len(quiz_ids)} expired quizzes",
            )
        except Exception as e:
            logger.error("Error cleaning up expired quizzes", error=str(e), exc_info=True)
            return SweepResult(success=False, error=str(e), message="Failed to clean up expired quizzes")

    def start(self, scheduler: AsyncIOScheduler = None) -> AsyncIOScheduler:
        if self.scheduler is not None:
            return self.scheduler

        self.scheduler = scheduler or AsyncIOScheduler()
        first_run = datetime.now(self.scheduler.timezone) + timedelta(seconds=self.initial_delay_seconds)
        self.scheduler.add_job(
            self.run_once,
            trigger="interval",
            hours=self.interval_hours,
            next_run_time=first_run,
            id=settings.CLEANUP_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(
            "Scheduled expired quiz cleanup",
            initial_delay_seconds=self.initial_delay_seconds,
            interval_hours=self.interval_hours,
        )
        return self.scheduler

    def stop(self):
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Expired quiz cleanup stopped")
