import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pageflow.core.security import get_password_hash, verify_password


@dataclass(frozen=True)
class UserIdentity:
    """Public identity attached to every realtime event a user originates"""
    id: str
    username: str
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "avatar": self.avatar}


class User:
    """Identity domain user"""

    def __init__(
        self,
        uuid: uuid.UUID,
        email: str,
        username: str,
        password_hash: str,
        avatar: Optional[str] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.email = email
        self.username = username
        self.password_hash = password_hash
        self.avatar = avatar
        self.is_active = is_active
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    def authenticate(self, password: str) -> bool:
        """Check the user's password"""
        return verify_password(password, self.password_hash)

    def identity(self) -> UserIdentity:
        """Public identity (id, username, avatar)"""
        return UserIdentity(id=str(self.uuid), username=self.username, avatar=self.avatar)

    @classmethod
    def create_user(cls, email: str, username: str, password: str, avatar: Optional[str] = None) -> "User":
        """Create a new user with a hashed password"""
        return cls(
            uuid=uuid.uuid4(),
            email=email,
            username=username,
            password_hash=get_password_hash(password),
            avatar=avatar
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, User):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"User(uuid={self.uuid}, email={self.email}, username={self.username})"
