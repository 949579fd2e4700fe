"""
Account Service - Registration, login and profile.
"""

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.exceptions import Conflict, InvalidRequest, NotFound, Unauthorized
from localmart.core.security import hash_password, verify_password
from localmart.models.user import User, UserRole


class AccountService:
    """
    Service for user accounts.

    Usage:
        accounts = AccountService(db_session)
        user = await accounts.authenticate("a@b.c", "secret")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize account service with database session."""
        self.db = db

    async def get_user(self, user_id: int) -> User:
        """Get user by ID or fail with NotFound."""
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        query = select(User).where(User.email == email.strip().lower())
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: UserRole,
    ) -> User:
        """
        Create an account with an empty points balance.

        Raises:
            InvalidRequest: Blank name
            Conflict: Email already registered
        """
        if not name.strip():
            raise InvalidRequest("Name cannot be empty")
        if await self.get_user_by_email(email):
            raise Conflict("User already exists")

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            hashed_password=hash_password(password),
            role=role,
            reward_points=0,
        )
        self.db.add(user)
        await self.db.flush()

        logger.info(f"Registered {role.value} account {user.id}")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            Unauthorized: Unknown email or wrong password
        """
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            raise Unauthorized("Invalid email or password")
        return user

    async def update_profile(self, user_id: int, name: str | None = None) -> User:
        """Rename the user; the role is never editable."""
        user = await self.get_user(user_id)

        if name is not None:
            if not name.strip():
                raise InvalidRequest("Name cannot be empty")
            user.name = name.strip()

        await self.db.flush()
        return user
