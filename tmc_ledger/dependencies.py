"""
FastAPI dependencies for authentication and authorization.

  get_current_user (JWT -> User)
      ├── get_current_account (User -> Account)   [any role with an account]
      └── require_admin (User -> User)            [ADMIN role]

Every protected endpoint declares one of these as a parameter. If it fails
(invalid token, wrong role), the request is rejected before the route
handler runs.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.database import get_db
from tmc_ledger.models.account import Account
from tmc_ledger.models.user import User, UserRole
from tmc_ledger.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to an active User.

    Raises:
        HTTPException 401: If the token is invalid or the user doesn't exist
            or is disabled.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise credentials_exception
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def get_current_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    The authenticated user's credit account.

    Raises:
        HTTPException 404: If the user has no account (e.g. an admin created
            directly in the database).
    """
    result = await db.execute(select(Account).where(Account.user_id == user.id))
    account = result.scalar_one_or_none()

    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Credit account not found",
        )

    return account


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    """
    Raises:
        HTTPException 403: If the user is not an admin.
    """
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
