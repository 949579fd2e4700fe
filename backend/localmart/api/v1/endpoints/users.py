"""
User API Endpoints.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.security import RequestContext, get_request_context
from localmart.models.user import User, UserRole
from localmart.modules.accounts.service import AccountService

router = APIRouter()


class UpdateUserRequest(BaseModel):
    name: str | None = Field(None, max_length=255)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    reward_points: int

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            reward_points=user.reward_points,
        )


@router.get("/me", response_model=UserResponse)
async def get_me(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> UserResponse:
    """Current user including the reward point balance."""
    user = await AccountService(db).get_user(ctx.user_id)
    return UserResponse.from_user(user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    request: UpdateUserRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> UserResponse:
    """Update the current user's display name."""
    user = await AccountService(db).update_profile(ctx.user_id, name=request.name)
    return UserResponse.from_user(user)
