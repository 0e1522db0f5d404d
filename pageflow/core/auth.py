from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from pageflow.core.db import get_db
from pageflow.core.errors import AuthenticationFailure
from pageflow.domains.identity.entities import User, UserIdentity
from pageflow.domains.identity.services import IdentityService

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency resolving the bearer token to an active user"""
    user = None
    if credentials is not None:
        user = await IdentityService(db).get_current_user_from_token(credentials.credentials)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def resolve_identity(token: Optional[str], db: AsyncSession) -> UserIdentity:
    """Handshake check for realtime connections"""
    if not token:
        raise AuthenticationFailure("Missing access token")

    user = await IdentityService(db).get_current_user_from_token(token)
    if not user:
        raise AuthenticationFailure("Invalid or expired access token")

    return user.identity()
