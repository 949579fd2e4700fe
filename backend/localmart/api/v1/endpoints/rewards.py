"""
Reward API Endpoints.

Customers list and claim rewards; shopkeepers issue them.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.security import RequestContext, require_customer, require_shopkeeper
from localmart.models.reward import Reward
from localmart.modules.rewards.service import RewardService

router = APIRouter()


# ==================== Schemas ====================


class ClaimRewardRequest(BaseModel):
    """Claim a reward by ID."""

    reward_id: int


class IssueRewardRequest(BaseModel):
    """Issue a reward to a customer."""

    user_id: int
    points: int = Field(..., gt=0)
    description: str = Field(..., min_length=1)


class RewardResponse(BaseModel):
    id: int
    shop_id: int
    shop_name: str | None = None
    user_id: int
    user_email: str | None = None
    points: int
    description: str
    claimed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_reward(cls, reward: Reward) -> "RewardResponse":
        return cls(
            id=reward.id,
            shop_id=reward.shop_id,
            shop_name=reward.shop.name if reward.shop else None,
            user_id=reward.user_id,
            user_email=reward.user.email if reward.user else None,
            points=reward.points,
            description=reward.description,
            claimed_at=reward.claimed_at,
            created_at=reward.created_at,
        )


class ClaimRewardResponse(BaseModel):
    message: str
    reward: RewardResponse
    reward_points: int


# ==================== Customer ====================


@router.get("", response_model=list[RewardResponse])
async def get_rewards(
    ctx: RequestContext = Depends(require_customer),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> list[RewardResponse]:
    """Rewards addressed to the current customer."""
    rewards = RewardService(db)
    found = await rewards.get_rewards(ctx)
    return [RewardResponse.from_reward(r) for r in found]


@router.post("", response_model=ClaimRewardResponse)
async def claim_reward(
    request: ClaimRewardRequest,
    ctx: RequestContext = Depends(require_customer),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> ClaimRewardResponse:
    """
    Claim a reward.

    Debits the reward's points and marks it claimed in one transaction.
    """
    rewards = RewardService(db)
    reward, balance = await rewards.claim_reward(ctx, request.reward_id)
    return ClaimRewardResponse(
        message="Reward claimed successfully",
        reward=RewardResponse.from_reward(reward),
        reward_points=balance,
    )


# ==================== Shopkeeper ====================


@router.get("/issued", response_model=list[RewardResponse])
async def get_issued_rewards(
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> list[RewardResponse]:
    """Rewards issued by the current shopkeeper's shop."""
    rewards = RewardService(db)
    found = await rewards.get_issued_rewards(ctx)
    return [RewardResponse.from_reward(r) for r in found]


@router.post("/issued", response_model=RewardResponse, status_code=201)
async def issue_reward(
    request: IssueRewardRequest,
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> RewardResponse:
    """Issue a reward to a customer."""
    rewards = RewardService(db)
    reward = await rewards.issue_reward(
        ctx,
        user_id=request.user_id,
        points=request.points,
        description=request.description,
    )
    return RewardResponse.from_reward(reward)
