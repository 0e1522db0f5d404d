from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from pageflow.db.repositories.user_repository import UserRepository
from pageflow.domains.identity.entities import User
from pageflow.domains.identity.schemas import UserCreate, UserLogin
from pageflow.core.security import create_access_token, verify_token


class IdentityService:
    """Registration, login and token resolution"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repository = UserRepository(session)

    async def register_user(self, user_data: UserCreate) -> User:
        """Register a new user"""
        if await self.user_repository.email_exists(user_data.email):
            raise ValueError("Email already registered")

        if await self.user_repository.username_exists(user_data.username):
            raise ValueError("Username already taken")

        user = User.create_user(
            email=user_data.email,
            username=user_data.username,
            password=user_data.password,
            avatar=user_data.avatar
        )

        return await self.user_repository.create(user)

    async def authenticate_user(self, login_data: UserLogin) -> Optional[User]:
        """Check credentials"""
        user = await self.user_repository.get_by_email(login_data.email)

        if not user or not user.is_active:
            return None

        if not user.authenticate(login_data.password):
            return None

        return user

    async def login_user(self, login_data: UserLogin) -> Optional[str]:
        """Authenticate and issue an access token"""
        user = await self.authenticate_user(login_data)

        if not user:
            return None

        return create_access_token(data={"sub": str(user.uuid), "username": user.username})

    async def get_user_by_uuid(self, user_uuid: uuid.UUID) -> Optional[User]:
        return await self.user_repository.get_by_uuid(user_uuid)

    async def get_users_by_usernames(self, usernames: Iterable[str]) -> List[User]:
        return await self.user_repository.get_by_usernames(usernames)

    async def get_current_user_from_token(self, token: str) -> Optional[User]:
        """Resolve a JWT to an active user, or None"""
        payload = verify_token(token)
        if not payload or not payload.get("sub"):
            return None

        try:
            user_uuid = uuid.UUID(payload["sub"])
        except (TypeError, ValueError):
            return None

        user = await self.user_repository.get_by_uuid(user_uuid)

        if user is None or not user.is_active:
            return None

        return user
