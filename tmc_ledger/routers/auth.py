"""
Authentication router — signup and login endpoints.

Endpoints:
  POST /auth/signup  — Register, open a credit account with the welcome bonus
  POST /auth/login   — Authenticate and get a token

Plaintext passwords exist only in memory during request processing; they
are hashed before any database operation and request bodies are never
logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.database import get_db
from tmc_ledger.schemas.auth import (
    SignupResponse,
    TokenResponse,
    UserLoginRequest,
    UserSignupRequest,
)
from tmc_ledger.services import auth_service, ledger_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a user and open their credit account.

    The account starts with PROMOTIONAL_CREDITS, recorded as a
    "promotional_credits" ledger row. Admin is not a self-service role.
    """
    user, token = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
        name=request.name,
        role=request.role,
    )
    account = await ledger_service.get_account_for_user(db, user.id)

    return SignupResponse(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        account_id=account.id,
        balance=account.balance,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Send the token on later requests as `Authorization: Bearer <token>`.
    """
    _, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return TokenResponse(token=token)
