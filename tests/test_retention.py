import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select, func

from conftest import Clock, FakeMediaStore, correct_answer_for
from core.config import settings
from models.attempt import QuizAttempt
from models.base import utcnow
from models.quiz import Quiz, Question
from services.quiz_service import AnswerInput, QuizService
from services.repository import QuizRepository
from services.retention_service import RetentionSweeper, SweepResult


async def make_quiz(db, creator, questions, created_at, with_attempt=True):
    repo = QuizRepository(db)
    service = QuizService(repo, clock=Clock(created_at))
    quiz = await service.create_quiz(creator.id, "Alex", questions)
    if with_attempt:
        stored = await repo.list_questions(quiz.id)
        await service.record_attempt(quiz.id, "Sam", [AnswerInput(q.id, correct_answer_for(q)) for q in stored])
    return quiz.id


async def count(db, model, quiz_id):
    column = model.id if model is Quiz else model.quiz_id
    result = await db.execute(select(func.count()).select_from(model).filter(column == quiz_id))
    return result.scalar()


class TestSweepCycle:
    @pytest.mark.asyncio
    async def test_old_quiz_removed_recent_quiz_kept(self, db, session_factory, creator, sample_questions, media_store):
        now = utcnow()
        old_id = await make_quiz(db, creator, sample_questions, now - timedelta(days=8))
        recent_id = await make_quiz(db, creator, sample_questions, now - timedelta(days=6))

        result = await RetentionSweeper(session_factory, media_store).run_once(now)

        assert result.success is True
        assert result.count == 1
        assert result.quiz_ids == [old_id]
        for model in (Quiz, Question, QuizAttempt):
            assert await count(db, model, old_id) == 0
            assert await count(db, model, recent_id) > 0

    @pytest.mark.asyncio
    async def test_images_of_expired_quizzes_are_deleted(
        self, db, session_factory, creator, sample_questions, media_store
    ):
        now = utcnow()
        await make_quiz(db, creator, sample_questions, now - timedelta(days=9), with_attempt=False)

        await RetentionSweeper(session_factory, media_store).run_once(now)

        assert sorted(media_store.deleted) == [
            "https://media.test/1/paris.jpg",
            "https://media.test/2/piano.png",
        ]

    @pytest.mark.asyncio
    async def test_nothing_expired_is_a_noop(self, db, session_factory, creator, sample_questions, media_store):
        now = utcnow()
        await make_quiz(db, creator, sample_questions, now - timedelta(days=1))

        result = await RetentionSweeper(session_factory, media_store).run_once(now)

        assert result == SweepResult(success=True, message="No expired quizzes found to clean up")
        assert media_store.deleted == []

    @pytest.mark.asyncio
    async def test_media_failure_does_not_block_deletion(self, db, session_factory, creator, sample_questions):
        now = utcnow()
        old_id = await make_quiz(db, creator, sample_questions, now - timedelta(days=8))

        result = await RetentionSweeper(session_factory, FakeMediaStore(fail_delete=True)).run_once(now)

        assert result.success is True
        assert await count(db, Quiz, old_id) == 0

    @pytest.mark.asyncio
    async def test_hanging_media_store_is_timed_out(self, db, session_factory, creator, sample_questions):
        now = utcnow()
        old_id = await make_quiz(db, creator, sample_questions, now - timedelta(days=8))
        sweeper = RetentionSweeper(session_factory, FakeMediaStore(hang_delete=True), media_timeout_seconds=0.05)

        result = await asyncio.wait_for(sweeper.run_once(now), timeout=5)

        assert result.success is True
        assert await count(db, Quiz, old_id) == 0

    @pytest.mark.asyncio
    async def test_database_failure_is_reported_not_raised(self, media_store):
        def broken_factory():
            raise RuntimeError("database unavailable")

        result = await RetentionSweeper(broken_factory, media_store).run_once()

        assert result.success is False
        assert "database unavailable" in result.error
        assert result.to_dict()["success"] is False


class TestSchedule:
    @pytest.mark.asyncio
    async def test_start_registers_daily_job_and_stop_clears_it(self, session_factory, media_store):
        sweeper = RetentionSweeper(session_factory, media_store, initial_delay_seconds=3600)

        scheduler = sweeper.start()
        job = scheduler.get_job(settings.CLEANUP_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(hours=24)

        sweeper.stop()
        assert sweeper.scheduler is None
        # Newer APScheduler releases finish shutting down on the next loop iteration
        for _ in range(50):
            if not scheduler.running:
                break
            await asyncio.sleep(0.01)
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_first_cycle_runs_after_initial_delay(self, session_factory, media_store):
        ran = asyncio.Event()

        class RecordingSweeper(RetentionSweeper):
            async def run_once(self, now=None):
                ran.set()
                return SweepResult(success=True)

        sweeper = RecordingSweeper(session_factory, media_store, initial_delay_seconds=0.1)
        sweeper.start()
        try:
            await asyncio.wait_for(ran.wait(), timeout=5)
        finally:
            sweeper.stop()
