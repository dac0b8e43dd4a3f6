"""
Pydantic schemas for authentication endpoints (signup and login).
"""

import uuid

from pydantic import BaseModel, EmailStr, Field

from tmc_ledger.models.user import UserRole


class UserSignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=200)
    role: UserRole = UserRole.PATIENT


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


class SignupResponse(BaseModel):
    """Response body for successful signup: user info, funded account, JWT."""
    user_id: uuid.UUID
    email: str
    role: str
    account_id: uuid.UUID
    balance: int
    token: str
    token_type: str = "bearer"
