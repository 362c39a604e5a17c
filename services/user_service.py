from sqlalchemy.exc import IntegrityError
from models.user import User
from services.repository import QuizRepository
from core.exceptions import ValidationError
from core.logger import logger

class UserService:
    def __init__(self, repo: QuizRepository):
        self.repo = repo

    async def get_or_create_user(self, username: str) -> tuple[User, bool]:
        """Upsert by username. Returns the user and whether it was just created."""
        username = (username or "").strip()
        if not username:
            raise ValidationError.for_field("username", "Username cannot be empty")

        user = await self.repo.get_user_by_username(username)
        if user:
            logger.info("Existing user reused", user_id=user.id, username=username)
            return user, False

        try:
            user = await self.repo.create_user(username)
        except IntegrityError:
            # Lost a race with a concurrent request for the same name
            await self.repo.db.rollback()
            user = await self.repo.get_user_by_username(username)
            if user is None:
                raise
            return user, False

        logger.info("New user created", user_id=user.id, username=username)
        return user, True
