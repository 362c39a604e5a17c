from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin, dump_json, load_string_list

QUESTION_TYPES = ("multiple_choice", "select_all")


class Quiz(Base, TimestampMixin):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    creator_name = Column(String(255), nullable=False)
    access_code = Column(String(32), unique=True, index=True, nullable=False)
    url_slug = Column(String(128), unique=True, index=True, nullable=False)
    dashboard_token = Column(String(128), unique=True, index=True, nullable=False)

    creator = relationship("User", backref="quizzes")


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    type = Column(String(32), default="multiple_choice", nullable=False)
    options_json = Column("options", Text, nullable=False)
    correct_answers_json = Column("correct_answers", Text, nullable=False)
    hint = Column(Text, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    image_url = Column(String(1024), nullable=True)

    @property
    def options(self) -> list:
        return load_string_list(self.options_json, "options")

    @options.setter
    def options(self, values):
        self.options_json = dump_json(list(values))

    @property
    def correct_answers(self) -> list:
        return load_string_list(self.correct_answers_json, "correct_answers")

    @correct_answers.setter
    def correct_answers(self, values):
        # Set semantics, first occurrence keeps its position
        self.correct_answers_json = dump_json(list(dict.fromkeys(values)))

    def check_stored(self) -> "Question":
        """Decode the JSON columns up front so a corrupt row fails as DataIntegrityError."""
        load_string_list(self.options_json, "options")
        load_string_list(self.correct_answers_json, "correct_answers")
        return self
