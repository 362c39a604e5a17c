from datetime import datetime, timedelta
from types import SimpleNamespace

from services.expiry import expires_at, is_expired, retention_cutoff

CREATED = datetime(2026, 10, 1, 12, 0, 0)
QUIZ = SimpleNamespace(created_at=CREATED)


def test_expires_seven_days_after_creation():
    assert expires_at(CREATED) == CREATED + timedelta(days=7)


def test_active_one_second_before_boundary():
    assert is_expired(QUIZ, CREATED + timedelta(days=7) - timedelta(seconds=1)) is False


def test_expired_one_second_after_boundary():
    assert is_expired(QUIZ, CREATED + timedelta(days=7, seconds=1)) is True


def test_exactly_seven_days_counts_as_expired():
    assert is_expired(QUIZ, CREATED + timedelta(days=7)) is True


def test_fresh_quiz_is_active():
    assert is_expired(QUIZ, CREATED) is False


def test_is_deterministic():
    now = CREATED + timedelta(days=3)
    assert [is_expired(QUIZ, now) for _ in range(3)] == [False, False, False]


def test_retention_cutoff():
    now = datetime(2026, 10, 17)
    assert retention_cutoff(now) == datetime(2026, 10, 10)
