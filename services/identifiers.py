import re
import secrets
import string
import unicodedata
from dataclasses import dataclass
from typing import Awaitable, Callable

from core.config import settings
from core.exceptions import GenerationExhausted
from core.logger import logger

# No 0/O or 1/I/L: codes are read aloud and typed by hand
ACCESS_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
SLUG_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SLUG_BASE_MAX_LENGTH = 40


@dataclass(frozen=True)
class QuizIdentifiers:
    access_code: str
    url_slug: str
    dashboard_token: str


def slugify(value: str) -> str:
    """Lowercase ASCII slug of a display name, falling back to 'quiz'."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    slug = slug[:SLUG_BASE_MAX_LENGTH].rstrip("-")
    return slug or "quiz"


class IdentifierGenerator:
    """
    Produces the three opaque identifiers of a quiz.

    The dashboard token comes from its own CSPRNG draw and shares nothing with the
    public access code or slug, so holding those never reveals the token.
    """

    def __init__(
        self,
        access_code_length: int = None,
        slug_suffix_length: int = None,
        token_bytes: int = None,
        max_attempts: int = None,
    ):
        self.access_code_length = access_code_length or settings.ACCESS_CODE_LENGTH
        self.slug_suffix_length = slug_suffix_length or settings.SLUG_SUFFIX_LENGTH
        self.token_bytes = token_bytes or settings.DASHBOARD_TOKEN_BYTES
        self.max_attempts = max_attempts or settings.IDENTIFIER_MAX_ATTEMPTS

    def access_code(self) -> str:
        return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(self.access_code_length))

    def url_slug(self, creator_name: str) -> str:
        suffix = "".join(secrets.choice(SLUG_SUFFIX_ALPHABET) for _ in range(self.slug_suffix_length))
        return f"{slugify(creator_name)}-{suffix}"

    def dashboard_token(self) -> str:
        return secrets.token_urlsafe(self.token_bytes)

    def generate(self, creator_name: str) -> QuizIdentifiers:
        return QuizIdentifiers(
            access_code=self.access_code(),
            url_slug=self.url_slug(creator_name),
            dashboard_token=self.dashboard_token(),
        )

    async def generate_unique(
        self,
        creator_name: str,
        is_taken: Callable[[QuizIdentifiers], Awaitable[bool]],
    ) -> QuizIdentifiers:
        """Generate identifiers until `is_taken` reports no collision, up to max_attempts."""
        for attempt in range(1, self.max_attempts + 1):
            ids = self.generate(creator_name)
            if not await is_taken(ids):
                return ids
            logger.warning("Quiz identifier collision, regenerating", attempt=attempt)

        logger.error("Quiz identifier generation exhausted", attempts=self.max_attempts)
        raise GenerationExhausted(
            f"Could not generate unique quiz identifiers after {self.max_attempts} attempts"
        )
