"""
Reward Service - Loyalty point redemption.

Points accrue only through order placement (see ``OrderService``). This
service covers the other side of the ledger: shopkeepers issue rewards to a
customer and the customer claims each reward once, paying its points.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from localmart.core.exceptions import (
    AlreadyClaimed,
    Forbidden,
    InsufficientPoints,
    InvalidRequest,
    NotFound,
)
from localmart.core.security import RequestContext
from localmart.models.reward import Reward
from localmart.models.shop import Shop
from localmart.models.user import User, UserRole


class RewardService:
    """
    Service for issuing, listing and claiming rewards.

    Usage:
        rewards = RewardService(db_session)
        reward, balance = await rewards.claim_reward(ctx, reward_id)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize reward service with database session."""
        self.db = db

    async def _owner_shop(self, owner_id: int) -> Shop:
        result = await self.db.execute(select(Shop).where(Shop.owner_id == owner_id))
        shop = result.scalar_one_or_none()
        if not shop:
            raise NotFound("Shop not found")
        return shop

    # ==================== Shopkeeper side ====================

    async def issue_reward(
        self,
        ctx: RequestContext,
        user_id: int,
        points: int,
        description: str,
    ) -> Reward:
        """
        Issue a reward from the caller's shop to one customer.

        Raises:
            NotFound: Caller has no shop or the customer does not exist
            InvalidRequest: Non-positive points, blank description or non-customer target
        """
        if not ctx.is_shopkeeper:
            raise Forbidden("Only shopkeepers can issue rewards")
        if points <= 0:
            raise InvalidRequest("Points must be positive")
        if not description.strip():
            raise InvalidRequest("Description is required")

        shop = await self._owner_shop(ctx.user_id)

        customer = await self.db.get(User, user_id)
        if not customer:
            raise NotFound("User not found")
        if customer.role != UserRole.CUSTOMER:
            raise InvalidRequest("Rewards can only be issued to customers")

        reward = Reward(
            shop=shop,
            user=customer,
            points=points,
            description=description.strip(),
        )
        self.db.add(reward)
        await self.db.flush()

        logger.info(
            f"Reward {reward.id} ({points} pts) issued by shop {shop.id} to user {user_id}"
        )
        return reward

    async def get_issued_rewards(self, ctx: RequestContext) -> list[Reward]:
        """Rewards issued by the caller's shop, newest first."""
        shop = await self._owner_shop(ctx.user_id)
        query = (
            select(Reward)
            .options(selectinload(Reward.user), selectinload(Reward.shop))
            .where(Reward.shop_id == shop.id)
            .order_by(Reward.created_at.desc(), Reward.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ==================== Customer side ====================

    async def get_rewards(self, ctx: RequestContext) -> list[Reward]:
        """Rewards addressed to the caller, newest first."""
        query = (
            select(Reward)
            .options(selectinload(Reward.shop), selectinload(Reward.user))
            .where(Reward.user_id == ctx.user_id)
            .order_by(Reward.created_at.desc(), Reward.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def claim_reward(self, ctx: RequestContext, reward_id: int) -> tuple[Reward, int]:
        """
        Redeem a reward with the caller's points.

        The "mark claimed" and "debit points" writes are both conditional
        updates in the caller's transaction; either failing raises and the
        transaction is rolled back, so neither write survives alone.

        Args:
            ctx: Requesting customer
            reward_id: Reward to claim

        Returns:
            The claimed reward and the caller's remaining balance

        Raises:
            Forbidden: Caller is not a customer or not the reward's recipient
            NotFound: Unknown reward or user
            AlreadyClaimed: Reward was claimed before
            InsufficientPoints: Balance below the reward's cost
        """
        if not ctx.is_customer:
            raise Forbidden("Only customers can claim rewards")

        query = (
            select(Reward)
            .options(selectinload(Reward.shop), selectinload(Reward.user))
            .where(Reward.id == reward_id)
        )
        result = await self.db.execute(query)
        reward = result.scalar_one_or_none()

        if not reward:
            raise NotFound("Reward not found")
        if reward.user_id != ctx.user_id:
            raise Forbidden("Reward belongs to another user")
        if reward.is_claimed:
            raise AlreadyClaimed()

        user = reward.user
        if user.reward_points < reward.points:
            raise InsufficientPoints()

        claimed_at = datetime.utcnow()
        marked = await self.db.execute(
            update(Reward)
            .where(Reward.id == reward.id, Reward.claimed_at.is_(None))
            .values(claimed_at=claimed_at)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount == 0:
            raise AlreadyClaimed()

        debited = await self.db.execute(
            update(User)
            .where(User.id == user.id, User.reward_points >= reward.points)
            .values(reward_points=User.reward_points - reward.points)
            .execution_options(synchronize_session=False)
        )
        if debited.rowcount == 0:
            raise InsufficientPoints()

        balance = user.reward_points - reward.points
        set_committed_value(reward, "claimed_at", claimed_at)
        set_committed_value(user, "reward_points", balance)

        logger.info(f"Reward {reward.id} claimed by user {user.id}; balance {balance}")
        return reward, balance
