"""
Auth API Endpoints.

Registration and cookie-based sessions.
"""

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.config import settings
from localmart.core.database import get_db
from localmart.core.security import create_session_token
from localmart.models.user import UserRole
from localmart.modules.accounts.service import AccountService

router = APIRouter()


# ==================== Schemas ====================


class RegisterRequest(BaseModel):
    """Create an account."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole


class LoginRequest(BaseModel):
    """Email and password."""

    email: EmailStr
    password: str


class RegisterResponse(BaseModel):
    message: str
    user_id: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: UserRole


# ==================== Auth ====================


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db, scope="function"),
) -> RegisterResponse:
    """Register a customer or shopkeeper account."""
    accounts = AccountService(db)
    user = await accounts.register(
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role,
    )
    return RegisterResponse(message="User created successfully", user_id=user.id)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db, scope="function"),
) -> TokenResponse:
    """
    Log in.

    Sets the session cookie and also returns the token for bearer use.
    """
    accounts = AccountService(db)
    user = await accounts.authenticate(request.email, request.password)

    token = create_session_token(user.id, user.role)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return TokenResponse(access_token=token, user_id=user.id, role=user.role)


@router.post("/logout")
async def logout(response: Response) -> dict[str, str]:
    """Clear the session cookie."""
    response.delete_cookie(settings.session_cookie_name)
    return {"message": "Session cleared"}
