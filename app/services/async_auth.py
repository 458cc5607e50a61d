from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.async_session import get_async_db
from app.schemas.auth import TokenPayload
from app.schemas.directory import DirectoryUser
from app.services.async_directory import AsyncDirectoryService
from app.utils.logger import auth_logger

# Tokens are issued by the identity service; this URL only feeds the OpenAPI docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/token")


class AsyncAuthService:
    """
    Resolves the bearer token on each request to the acting directory user.
    """

    @classmethod
    def create_access_token(
        cls, user_id: int, expires_delta: Optional[timedelta] = None, email: Optional[str] = None
    ) -> str:
        """Create a new JWT access token."""
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        now = datetime.now(timezone.utc)
        to_encode = {"sub": str(user_id), "exp": now + expires_delta, "iat": now, "type": "access"}
        if email:
            to_encode["email"] = email

        return jwt.encode(
            to_encode,
            settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )

    @classmethod
    def decode_access_token(cls, token: str) -> TokenPayload:
        """Decode and validate a token. Raises jwt.PyJWTError when invalid or expired."""
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return TokenPayload(**payload)

    @classmethod
    async def get_current_user(
        cls, db: AsyncSession = Depends(get_async_db), token: str = Depends(oauth2_scheme)
    ) -> DirectoryUser:
        """Get the current authenticated user from the token."""
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            token_data = cls.decode_access_token(token)
            user_id = int(token_data.sub)
        except (jwt.PyJWTError, ValueError) as e:
            auth_logger.warning("Rejected access token", "TOKEN", reason=type(e).__name__)
            raise credentials_exception

        user = await AsyncDirectoryService.get_user(db, user_id)
        if user is None:
            auth_logger.warning("Token subject is not a known user", "TOKEN", user_id=user_id)
            raise credentials_exception

        return user


# Standalone async dependency functions for FastAPI
async def get_current_user_async(
    db: AsyncSession = Depends(get_async_db),
    token: str = Depends(oauth2_scheme)
) -> DirectoryUser:
    """Get the current authenticated user from the token (async version)."""
    return await AsyncAuthService.get_current_user(db, token)


async def get_current_active_user_async(
    current_user: DirectoryUser = Depends(get_current_user_async)
) -> DirectoryUser:
    """Check if the current user is active (async version)."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )
    return current_user
