from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from models.quiz import Quiz, Question
from models.attempt import QuizAttempt
from services.identifiers import QuizIdentifiers


class QuizRepository:
    """Persistence interface for users, quizzes, questions and attempts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Users

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.username == username))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create_user(self, username: str) -> User:
        user = User(username=username)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    # Quizzes

    async def get_quiz(self, quiz_id: int) -> Optional[Quiz]:
        return await self.db.get(Quiz, quiz_id)

    async def get_quiz_by_access_code(self, access_code: str) -> Optional[Quiz]:
        result = await self.db.execute(select(Quiz).filter(Quiz.access_code == access_code))
        return result.scalar_one_or_none()

    async def get_quiz_by_url_slug(self, url_slug: str) -> Optional[Quiz]:
        result = await self.db.execute(select(Quiz).filter(Quiz.url_slug == url_slug))
        quiz = result.scalar_one_or_none()
        if quiz:
            return quiz

        # Case-insensitive fallback
        result = await self.db.execute(
            select(Quiz).filter(func.lower(Quiz.url_slug) == url_slug.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_quiz_by_dashboard_token(self, token: str) -> Optional[Quiz]:
        result = await self.db.execute(select(Quiz).filter(Quiz.dashboard_token == token))
        return result.scalar_one_or_none()

    async def list_quizzes(self) -> Sequence[Quiz]:
        result = await self.db.execute(select(Quiz).order_by(Quiz.created_at.desc(), Quiz.id.desc()))
        return result.scalars().all()

    async def identifiers_taken(self, ids: QuizIdentifiers) -> bool:
        result = await self.db.execute(
            select(func.count(Quiz.id)).filter(
                or_(
                    Quiz.access_code == ids.access_code,
                    Quiz.url_slug == ids.url_slug,
                    Quiz.dashboard_token == ids.dashboard_token,
                )
            )
        )
        return result.scalar() > 0

    async def add_quiz_with_questions(self, quiz: Quiz, questions: List[Question]) -> Quiz:
        """Insert a quiz and its questions in one transaction; nothing is kept on failure."""
        try:
            self.db.add(quiz)
            await self.db.flush()
            for question in questions:
                question.quiz_id = quiz.id
                self.db.add(question)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(quiz)
        return quiz

    # Questions

    async def add_question(self, question: Question) -> Question:
        self.db.add(question)
        await self.db.commit()
        await self.db.refresh(question)
        return question

    async def get_question(self, question_id: int) -> Optional[Question]:
        return await self.db.get(Question, question_id)

    async def list_questions(self, quiz_id: int) -> Sequence[Question]:
        result = await self.db.execute(
            select(Question).filter(Question.quiz_id == quiz_id).order_by(Question.order, Question.id)
        )
        return result.scalars().all()

    async def count_questions(self, quiz_id: int) -> int:
        result = await self.db.execute(select(func.count(Question.id)).filter(Question.quiz_id == quiz_id))
        return result.scalar() or 0

    # Attempts

    async def add_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        self.db.add(attempt)
        await self.db.commit()
        await self.db.refresh(attempt)
        return attempt

    async def get_attempt(self, attempt_id: int) -> Optional[QuizAttempt]:
        return await self.db.get(QuizAttempt, attempt_id)

    async def list_attempts(self, quiz_id: int) -> Sequence[QuizAttempt]:
        result = await self.db.execute(
            select(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id)
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
        )
        return result.scalars().all()

    # Retention

    async def find_quizzes_created_before(self, cutoff: datetime) -> List[int]:
        result = await self.db.execute(select(Quiz.id).filter(Quiz.created_at < cutoff))
        return list(result.scalars().all())

    async def image_urls_for(self, quiz_ids: List[int]) -> List[str]:
        result = await self.db.execute(
            select(Question.image_url).filter(
                Question.quiz_id.in_(quiz_ids),
                Question.image_url.is_not(None),
            )
        )
        return [url for url in result.scalars().all() if url]

    async def delete_quizzes_cascade(self, quiz_ids: List[int]) -> int:
        """Delete attempts, then questions, then the quizzes themselves, in one commit."""
        try:
            await self.db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id.in_(quiz_ids)))
            await self.db.execute(delete(Question).where(Question.quiz_id.in_(quiz_ids)))
            result = await self.db.execute(delete(Quiz).where(Quiz.id.in_(quiz_ids)))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return result.rowcount
