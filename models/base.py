import json
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime
from sqlalchemy.orm import DeclarativeBase
from core.exceptions import DataIntegrityError


def utcnow() -> datetime:
    """Naive UTC now; every stored timestamp is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


def dump_json(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def load_json(raw, field: str, expected_type=list):
    """Decode a stored JSON text column, raising DataIntegrityError on bad content."""
    if isinstance(raw, expected_type):
        return raw
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise DataIntegrityError(f"Stored {field} is not valid JSON", details={"field": field, "reason": str(e)})
    if not isinstance(value, expected_type):
        raise DataIntegrityError(
            f"Stored {field} has unexpected shape",
            details={"field": field, "expected": expected_type.__name__, "got": type(value).__name__},
        )
    return value


def load_string_list(raw, field: str) -> list:
    values = load_json(raw, field)
    if not all(isinstance(v, str) for v in values):
        raise DataIntegrityError(f"Stored {field} must contain only strings", details={"field": field})
    return values
