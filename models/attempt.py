from dataclasses import dataclass, asdict
from typing import List, Union
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from models.base import Base, utcnow, dump_json, load_json
from core.exceptions import DataIntegrityError


@dataclass
class RecordedAnswer:
    question_id: int
    user_answer: Union[str, List[str]]
    is_correct: bool

    @classmethod
    def from_dict(cls, raw: dict) -> "RecordedAnswer":
        try:
            return cls(
                question_id=int(raw["question_id"]),
                user_answer=raw["user_answer"],
                is_correct=bool(raw["is_correct"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DataIntegrityError("Stored attempt answer is malformed", details={"reason": str(e)})


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True, nullable=False)
    taker_name = Column(String(255), nullable=False)
    score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    answers_json = Column("answers", Text, nullable=False)
    completed_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    @property
    def answers(self) -> List[RecordedAnswer]:
        return [RecordedAnswer.from_dict(a) for a in load_json(self.answers_json, "answers")]

    @answers.setter
    def answers(self, values: List[RecordedAnswer]):
        self.answers_json = dump_json([asdict(a) for a in values])

    def check_stored(self) -> "QuizAttempt":
        for raw in load_json(self.answers_json, "answers"):
            RecordedAnswer.from_dict(raw)
        return self
