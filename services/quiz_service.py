from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError

from core.config import settings
from core.exceptions import Expired, NotFound, ValidationError, GenerationExhausted
from core.logger import logger
from models.attempt import QuizAttempt, RecordedAnswer
from models.base import utcnow
from models.quiz import Quiz, Question, QUESTION_TYPES
from services.expiry import is_expired
from services.identifiers import IdentifierGenerator
from services.repository import QuizRepository
from services.verifier import normalize, verify_answer

# Observed in production: a client bug submitted this default instead of the typed name
PLACEHOLDER_CREATOR_NAME = "emydan"


class LookupStatus(str, Enum):
    FOUND_ACTIVE = "found-active"
    FOUND_EXPIRED = "found-expired"
    NOT_FOUND = "not-found"


@dataclass
class QuizLookup:
    status: LookupStatus
    quiz: Optional[Quiz] = None

    def unwrap(self) -> Quiz:
        """Return the active quiz, raising NotFound or Expired otherwise."""
        if self.status is LookupStatus.NOT_FOUND:
            raise NotFound("Quiz not found")
        if self.status is LookupStatus.FOUND_EXPIRED:
            raise Expired(settings.QUIZ_RETENTION_DAYS)
        return self.quiz


@dataclass
class QuestionInput:
    text: str
    options: List[str]
    correct_answers: List[str]
    type: str = "multiple_choice"
    hint: Optional[str] = None
    order: Optional[int] = None
    image_url: Optional[str] = None


@dataclass
class AnswerInput:
    question_id: int
    user_answer: Union[str, List[str]]


def validate_question(question: QuestionInput, field: str = "question") -> None:
    """Semantic checks pydantic cannot express; raises ValidationError with field detail."""
    errors = []

    if not question.text or not question.text.strip():
        errors.append({"field": f"{field}.text", "message": "Question text cannot be empty"})

    if question.type not in QUESTION_TYPES:
        errors.append({"field": f"{field}.type", "message": f"Unsupported question type '{question.type}'"})

    options = [o for o in question.options if o and o.strip()]
    if len(options) != len(question.options):
        errors.append({"field": f"{field}.options", "message": "Options cannot be blank"})
    if len(question.options) < 2:
        errors.append({"field": f"{field}.options", "message": "At least two options are required"})
    if len(question.options) > settings.MAX_OPTIONS_PER_QUESTION:
        errors.append({
            "field": f"{field}.options",
            "message": f"At most {settings.MAX_OPTIONS_PER_QUESTION} options are allowed",
        })

    normalized_options = [normalize(o) for o in options]
    if len(set(normalized_options)) != len(normalized_options):
        errors.append({"field": f"{field}.options", "message": "Options must be unique"})

    if not question.correct_answers:
        errors.append({"field": f"{field}.correctAnswers", "message": "At least one correct answer is required"})
    else:
        unknown = [a for a in question.correct_answers if normalize(a) not in set(normalized_options)]
        if unknown:
            errors.append({
                "field": f"{field}.correctAnswers",
                "message": "Correct answers must be among the options",
                "values": unknown,
            })

    if errors:
        raise ValidationError("Invalid question data", details=errors)


def build_question(question: QuestionInput, quiz_id: Optional[int], order: int) -> Question:
    return Question(
        quiz_id=quiz_id,
        text=question.text.strip(),
        type=question.type,
        options=[o.strip() for o in question.options],
        correct_answers=[a.strip() for a in question.correct_answers],
        hint=question.hint,
        order=question.order if question.order is not None else order,
        image_url=question.image_url,
    )


class QuizService:
    def __init__(self, repo: QuizRepository, identifiers: IdentifierGenerator = None, clock=utcnow):
        self.repo = repo
        self.identifiers = identifiers or IdentifierGenerator()
        self.clock = clock

    # Creation

    @staticmethod
    def validate_creator_name(creator_name: str) -> str:
        name = (creator_name or "").strip()
        if not name:
            logger.warning("Rejected quiz with empty creator name")
            raise ValidationError.for_field(
                "creatorName", "Creator name cannot be empty", code="EMPTY_CREATOR_NAME"
            )
        if name.lower() == PLACEHOLDER_CREATOR_NAME:
            logger.warning("Rejected placeholder creator name", creator_name=name)
            raise ValidationError.for_field(
                "creatorName",
                "Cannot use default creator name. Please enter your own name.",
                code="DEFAULT_CREATOR_NAME_USED",
            )
        return name

    async def create_quiz(self, creator_id: int, creator_name: str, questions: List[QuestionInput]) -> Quiz:
        name = self.validate_creator_name(creator_name)

        if not questions:
            raise ValidationError.for_field("questions", "A quiz needs at least one question")
        if len(questions) > settings.MAX_QUESTIONS_PER_QUIZ:
            raise ValidationError.for_field(
                "questions", f"A quiz can have at most {settings.MAX_QUESTIONS_PER_QUIZ} questions"
            )
        for index, question in enumerate(questions):
            validate_question(question, field=f"questions[{index}]")

        if await self.repo.get_user(creator_id) is None:
            raise ValidationError.for_field("creatorId", "Unknown creator")

        # The pre-insert check can still race another insert; the unique constraints catch that
        for _ in range(self.identifiers.max_attempts):
            ids = await self.identifiers.generate_unique(name, self.repo.identifiers_taken)
            quiz = Quiz(
                creator_id=creator_id,
                creator_name=name,
                access_code=ids.access_code,
                url_slug=ids.url_slug,
                dashboard_token=ids.dashboard_token,
                created_at=self.clock(),
            )
            rows = [build_question(q, None, order) for order, q in enumerate(questions)]
            try:
                quiz = await self.repo.add_quiz_with_questions(quiz, rows)
            except IntegrityError:
                logger.warning("Quiz identifier collided on insert, retrying", creator_id=creator_id)
                continue

            logger.info(
                "Quiz created",
                quiz_id=quiz.id,
                creator_id=creator_id,
                creator_name=name,
                access_code=quiz.access_code,
                url_slug=quiz.url_slug,
                questions=len(rows),
            )
            return quiz

        logger.error("Quiz insert kept colliding", creator_id=creator_id)
        raise GenerationExhausted("Could not store quiz with unique identifiers")

    async def add_question(self, quiz_id: int, question: QuestionInput) -> Question:
        quiz = (await self.get_quiz_by_id(quiz_id)).unwrap()
        validate_question(question)

        count = await self.repo.count_questions(quiz.id)
        if count >= settings.MAX_QUESTIONS_PER_QUIZ:
            raise ValidationError.for_field(
                "quizId", f"A quiz can have at most {settings.MAX_QUESTIONS_PER_QUIZ} questions"
            )

        row = await self.repo.add_question(build_question(question, quiz.id, count))
        logger.info("Question added", quiz_id=quiz.id, question_id=row.id)
        return row

    # Lookups

    def _classify(self, quiz: Optional[Quiz], key: str, value) -> QuizLookup:
        if quiz is None:
            logger.info("Quiz not found", key=key, value=value)
            return QuizLookup(LookupStatus.NOT_FOUND)
        if is_expired(quiz, self.clock()):
            logger.info("Quiz expired", quiz_id=quiz.id, key=key)
            return QuizLookup(LookupStatus.FOUND_EXPIRED, quiz)
        return QuizLookup(LookupStatus.FOUND_ACTIVE, quiz)

    async def get_quiz_by_id(self, quiz_id: int) -> QuizLookup:
        return self._classify(await self.repo.get_quiz(quiz_id), "id", quiz_id)

    async def get_quiz_by_code(self, access_code: str) -> QuizLookup:
        return self._classify(await self.repo.get_quiz_by_access_code(access_code), "access_code", access_code)

    async def get_quiz_by_slug(self, url_slug: str) -> QuizLookup:
        return self._classify(await self.repo.get_quiz_by_url_slug(url_slug), "url_slug", url_slug)

    async def get_quiz_by_token(self, token: str) -> QuizLookup:
        # Only a prefix of the capability token goes to the logs
        return self._classify(await self.repo.get_quiz_by_dashboard_token(token), "dashboard_token", token[:6])

    async def list_quizzes(self) -> Sequence[Quiz]:
        return await self.repo.list_quizzes()

    async def list_questions(self, quiz_id: int) -> Sequence[Question]:
        return [q.check_stored() for q in await self.repo.list_questions(quiz_id)]

    # Answers and attempts

    async def verify(self, question_id: int, answer: Union[str, List[str]]) -> bool:
        question = await self.repo.get_question(question_id)
        if question is None:
            logger.warning("Question not found for verification", question_id=question_id)
            raise NotFound("Question not found")
        is_correct = verify_answer(question.correct_answers, answer, question.type)
        logger.info("Answer verified", question_id=question_id, is_correct=is_correct)
        return is_correct

    async def record_attempt(
        self,
        quiz_id: int,
        taker_name: str,
        answers: List[AnswerInput],
        claimed_score: Optional[int] = None,
    ) -> QuizAttempt:
        """Score an attempt server-side; a client-claimed score is only logged, never stored."""
        taker_name = (taker_name or "").strip()
        if not taker_name:
            raise ValidationError.for_field("takerName", "Taker name cannot be empty")

        quiz = (await self.get_quiz_by_id(quiz_id)).unwrap()
        # Read at verification time so scoring always uses the stored answers
        questions = {q.id: q for q in await self.repo.list_questions(quiz.id)}

        recorded = []
        seen = set()
        for index, answer in enumerate(answers):
            question = questions.get(answer.question_id)
            if question is None:
                raise ValidationError.for_field(
                    f"answers[{index}].questionId", "Question does not belong to this quiz"
                )
            if answer.question_id in seen:
                raise ValidationError.for_field(f"answers[{index}].questionId", "Question answered twice")
            seen.add(answer.question_id)
            recorded.append(RecordedAnswer(
                question_id=answer.question_id,
                user_answer=answer.user_answer,
                is_correct=verify_answer(question.correct_answers, answer.user_answer, question.type),
            ))

        max_score = len(questions)
        score = min(max(sum(1 for a in recorded if a.is_correct), 0), max_score)

        if claimed_score is not None and claimed_score != score:
            logger.warning(
                "Client score ignored", quiz_id=quiz.id, claimed_score=claimed_score, computed_score=score
            )

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            taker_name=taker_name,
            score=score,
            max_score=max_score,
            answers=recorded,
            completed_at=self.clock(),
        )
        attempt = await self.repo.add_attempt(attempt)
        logger.info("Quiz attempt recorded", quiz_id=quiz.id, attempt_id=attempt.id, score=score, max_score=max_score)
        return attempt

    async def list_attempts(self, quiz_id: int) -> Sequence[QuizAttempt]:
        attempts = [a.check_stored() for a in await self.repo.list_attempts(quiz_id)]
        logger.info("Quiz attempts fetched", quiz_id=quiz_id, count=len(attempts))
        return attempts

    async def get_attempt(self, attempt_id: int) -> QuizAttempt:
        attempt = await self.repo.get_attempt(attempt_id)
        if attempt is None:
            raise NotFound("Quiz attempt not found")
        return attempt.check_stored()
