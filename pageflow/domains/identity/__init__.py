from pageflow.domains.identity.entities import User, UserIdentity
from pageflow.domains.identity.schemas import (
    UserBase, UserCreate, UserLogin, UserResponse, Token
)

__all__ = [
    "User", "UserIdentity",
    "UserBase", "UserCreate", "UserLogin", "UserResponse", "Token"
]
