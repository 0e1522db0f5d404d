from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import uuid

from pageflow.db.models.user import User as UserModel
from pageflow.domains.identity.entities import User


class UserRepository:
    """Users table access"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        """Insert a new user"""
        db_user = UserModel(
            uuid=user.uuid,
            email=user.email,
            username=user.username,
            password_hash=user.password_hash,
            avatar=user.avatar,
            is_active=user.is_active
        )

        self.session.add(db_user)
        try:
            await self.session.commit()
            await self.session.refresh(db_user)
            return self._to_domain(db_user)
        except IntegrityError:
            await self.session.rollback()
            raise ValueError("User with this email or username already exists")

    async def get_by_uuid(self, user_uuid: uuid.UUID) -> Optional[User]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.uuid == user_uuid)
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None

    async def get_by_usernames(self, usernames: Iterable[str]) -> List[User]:
        """Users whose username is in the given set"""
        names = set(usernames)
        if not names:
            return []
        result = await self.session.execute(
            select(UserModel).where(UserModel.username.in_(names))
        )
        return [self._to_domain(db_user) for db_user in result.scalars().all()]

    async def email_exists(self, email: str) -> bool:
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.email == email)
        )
        return result.scalar_one_or_none() is not None

    async def username_exists(self, username: str) -> bool:
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.username == username)
        )
        return result.scalar_one_or_none() is not None

    def _to_domain(self, db_user: UserModel) -> User:
        """Map a row to the domain entity"""
        return User(
            uuid=db_user.uuid,
            email=db_user.email,
            username=db_user.username,
            password_hash=db_user.password_hash,
            avatar=db_user.avatar,
            is_active=db_user.is_active,
            created_at=db_user.created_at,
            updated_at=db_user.updated_at
        )
