"""
Authentication service — signup and login business logic.

Signup flow:
  1. Check if email is already registered
  2. Hash the password with Argon2id
  3. Create the User and its credit Account in the request's unit of work
  4. Credit the welcome bonus (PROMOTIONAL_CREDITS) to the new account
  5. Return a JWT token so the user is immediately logged in

If any step fails, none of it is persisted: no user without an account,
no account without its welcome row.

Login returns the same error for "wrong password" and "email not found"
to prevent user enumeration.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.exceptions import DuplicateEmailError, InvalidCredentialsError, PermissionDeniedError
from tmc_ledger.models.user import User, UserRole
from tmc_ledger.security import create_access_token, hash_password, verify_password
from tmc_ledger.services import account_service, ledger_service

logger = logging.getLogger(__name__)

# Roles a user may pick at self-registration; admins are promoted out of band.
SELF_SERVICE_ROLES = (UserRole.PATIENT, UserRole.DOCTOR, UserRole.RESEARCHER, UserRole.VISITOR)


def _issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "role": user.role.value})


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
    name: str,
    role: UserRole = UserRole.PATIENT,
) -> tuple[User, str]:
    """
    Register a new user with a funded credit account.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
        PermissionDeniedError: If the requested role can't be self-assigned.
    """
    if role not in SELF_SERVICE_ROLES:
        raise PermissionDeniedError(f"Role {role.value} cannot be chosen at signup")

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
        name=name,
        role=role,
    )
    db.add(user)
    # Flush to get user.id for the account FK
    await db.flush()

    account = await ledger_service.open_account(db, user_id=user.id)
    await account_service.grant_promotional_credits(db, account.id)

    logger.info("user %s registered as %s with account %s", user.id, role.value, account.id)
    return user, _issue_token(user)


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, password is wrong,
            or the user is disabled.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()
    if not user.is_active:
        raise InvalidCredentialsError()

    return user, _issue_token(user)
