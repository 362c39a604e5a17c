"""
Pytest configuration and fixtures for the quiz service tests.
"""
import sys
import os
from datetime import timedelta

import pytest
import pytest_asyncio

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Settings are read at import time; keep tests off the real database and scheduler
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CLEANUP_ENABLED", "false")

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

from sqlalchemy.pool import StaticPool

from db.session import build_engine, build_session_factory, init_models
from models.base import utcnow
from services.quiz_service import QuizService, QuestionInput
from services.repository import QuizRepository


class Clock:
    """Callable clock that tests can move around."""

    def __init__(self, now=None):
        self.now = now or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeMediaStore:
    def __init__(self, fail_delete=False, hang_delete=False, fail_upload=False):
        self.uploaded = []
        self.deleted = []
        self.fail_delete = fail_delete
        self.hang_delete = hang_delete
        self.fail_upload = fail_upload

    async def upload_image(self, data, filename):
        from core.exceptions import UpstreamMediaError
        if self.fail_upload:
            raise UpstreamMediaError("Failed to upload image")
        self.uploaded.append((filename, data))
        return f"https://media.test/{len(self.uploaded)}/{filename}"

    async def delete_images(self, urls):
        import asyncio
        from core.exceptions import UpstreamMediaError
        if self.hang_delete:
            await asyncio.sleep(3600)
        if self.fail_delete:
            raise UpstreamMediaError("media store unreachable")
        urls = list(urls)
        self.deleted.extend(urls)
        return len(urls)

    async def close(self):
        pass


@pytest_asyncio.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def repo(db):
    return QuizRepository(db)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def quiz_service(repo, clock):
    return QuizService(repo, clock=clock)


@pytest_asyncio.fixture
async def creator(repo):
    return await repo.create_user("alex")


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def sample_questions():
    """Five questions, the shape of a typical personality quiz"""
    return [
        QuestionInput(
            text="What is my favourite season?",
            options=["Spring", "Summer", "Autumn", "Winter"],
            correct_answers=["Autumn"],
        ),
        QuestionInput(
            text="Which city was I born in?",
            options=["Paris", "Lyon", "Nice"],
            correct_answers=["Paris"],
            image_url="https://media.test/1/paris.jpg",
        ),
        QuestionInput(
            text="Which pets have I owned?",
            type="select_all",
            options=["Cat", "Dog", "Parrot", "Fish"],
            correct_answers=["Cat", "Dog"],
        ),
        QuestionInput(
            text="Coffee or tea?",
            options=["Coffee", "Tea"],
            correct_answers=["Tea"],
            hint="Think mornings",
        ),
        QuestionInput(
            text="Which instruments can I play?",
            type="select_all",
            options=["Piano", "Guitar", "Drums"],
            correct_answers=["Piano"],
            image_url="https://media.test/2/piano.png",
        ),
    ]


def correct_answer_for(question):
    """The answer a friend who knows the creator would give."""
    answers = question.correct_answers
    if question.type == "select_all":
        return list(answers)
    return answers[0]
