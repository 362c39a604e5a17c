from datetime import datetime, timezone
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, computed_field
from pydantic.alias_generators import to_camel

from services import expiry
from services.quiz_service import QuestionInput, AnswerInput


def to_utc_iso(value: datetime) -> str:
    """Stored timestamps are naive UTC; clients need the offset to read them correctly."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


UtcDatetime = Annotated[datetime, PlainSerializer(to_utc_iso, return_type=str, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# === Requests ===

class UserCreate(CamelModel):
    """Request body for registering (or reusing) a creator."""
    username: str = Field(..., min_length=1, max_length=255, examples=["alex"])


class QuestionCreate(CamelModel):
    """A single multiple-choice question."""
    text: str = Field(..., max_length=500, examples=["What is my favourite season?"])
    type: str = Field("multiple_choice", description="multiple_choice or select_all")
    options: List[str] = Field(..., description="Answer options (2-10 items)", min_length=2, max_length=10)
    correct_answers: List[str] = Field(..., description="Options that count as correct", min_length=1)
    hint: Optional[str] = Field(None, max_length=500)
    order: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = Field(None, max_length=1024)

    def to_input(self) -> QuestionInput:
        return QuestionInput(
            text=self.text,
            type=self.type,
            options=self.options,
            correct_answers=self.correct_answers,
            hint=self.hint,
            order=self.order,
            image_url=self.image_url,
        )


class QuestionAdd(QuestionCreate):
    """Request body for appending a question to an existing quiz."""
    quiz_id: int


class QuizCreate(CamelModel):
    """Request body for creating a quiz with all of its questions."""
    creator_id: int
    creator_name: str = Field(..., max_length=255)
    questions: List[QuestionCreate] = Field(..., min_length=1)


class AnswerSubmit(CamelModel):
    question_id: int
    user_answer: Union[str, List[str]]

    def to_input(self) -> AnswerInput:
        return AnswerInput(question_id=self.question_id, user_answer=self.user_answer)


class AttemptCreate(CamelModel):
    """A completed run-through. `score` is accepted for compatibility and recomputed server-side."""
    quiz_id: int
    taker_name: str = Field(..., min_length=1, max_length=255)
    answers: List[AnswerSubmit]
    score: Optional[int] = None


class VerifyRequest(CamelModel):
    answer: Union[str, List[str]]


# === Responses ===

class UserOut(CamelModel):
    id: int
    username: str


class QuizPublic(CamelModel):
    """Quiz as seen by quiz-takers; never carries the dashboard token."""
    id: int
    creator_id: int
    creator_name: str
    access_code: str
    url_slug: str
    created_at: UtcDatetime

    @computed_field(alias="expiresAt")
    @property
    def expires_at(self) -> UtcDatetime:
        return expiry.expires_at(self.created_at)


class QuizDetail(QuizPublic):
    """Quiz as seen by its creator (create response and dashboard lookup)."""
    dashboard_token: str


class QuestionOut(CamelModel):
    id: int
    quiz_id: int
    text: str
    type: str
    options: List[str]
    correct_answers: List[str]
    hint: Optional[str] = None
    order: int
    image_url: Optional[str] = None


class RecordedAnswerOut(CamelModel):
    question_id: int
    user_answer: Union[str, List[str]]
    is_correct: bool


class AttemptOut(CamelModel):
    id: int
    quiz_id: int
    taker_name: str
    score: int
    max_score: int
    answers: List[RecordedAnswerOut]
    completed_at: UtcDatetime


class AttemptList(CamelModel):
    data: List[AttemptOut]
    server_time: int
    count: int


class AttemptEnvelope(CamelModel):
    data: AttemptOut
    server_time: int


class VerifyResponse(CamelModel):
    is_correct: bool


class UploadResponse(CamelModel):
    image_url: str
