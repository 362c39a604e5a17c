from datetime import datetime, timedelta

from core.config import settings

RETENTION_PERIOD = timedelta(days=settings.QUIZ_RETENTION_DAYS)


def expires_at(created_at: datetime, retention: timedelta = RETENTION_PERIOD) -> datetime:
    return created_at + retention


def is_expired(quiz, now: datetime, retention: timedelta = RETENTION_PERIOD) -> bool:
    """A quiz is expired from the instant it turns `retention` old (boundary inclusive)."""
    return now >= expires_at(quiz.created_at, retention)


def retention_cutoff(now: datetime, retention: timedelta = RETENTION_PERIOD) -> datetime:
    """Quizzes created strictly before this instant are due for deletion."""
    return now - retention
