from typing import Any, Optional


class QuizAppError(Exception):
    """Base class for errors the API layer turns into structured responses."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"message": self.message, "error": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(QuizAppError):
    status_code = 400
    code = "INVALID_DATA"

    @classmethod
    def for_field(cls, field: str, message: str, code: Optional[str] = None) -> "ValidationError":
        return cls(message, code=code, details=[{"field": field, "message": message}])


class NotFound(QuizAppError):
    status_code = 404
    code = "NOT_FOUND"


class Expired(QuizAppError):
    status_code = 410
    code = "QUIZ_EXPIRED"

    def __init__(self, retention_days: int = 7):
        super().__init__("Quiz expired")
        self.detail = (
            f"This quiz has expired. Quizzes are available for {retention_days} days after creation."
        )

    def to_dict(self) -> dict:
        return {"message": self.message, "error": self.code, "expired": True, "detail": self.detail}


class GenerationExhausted(QuizAppError):
    code = "IDENTIFIER_GENERATION_EXHAUSTED"


class DataIntegrityError(QuizAppError):
    code = "DATA_INTEGRITY_ERROR"


class UpstreamMediaError(QuizAppError):
    code = "MEDIA_STORE_ERROR"
