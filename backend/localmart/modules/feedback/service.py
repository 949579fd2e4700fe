"""
Feedback Service - Ratings for completed orders.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from localmart.core.config import settings
from localmart.core.exceptions import (
    Conflict,
    Forbidden,
    InvalidRequest,
    InvalidState,
    NotFound,
)
from localmart.core.security import RequestContext
from localmart.models.feedback import Feedback
from localmart.models.shop import Order, OrderStatus, Shop


@dataclass
class RatingStats:
    """Per-shop rating aggregate."""

    average: float = 0.0
    count: int = 0
    positive_count: int = 0

    @property
    def is_elite(self) -> bool:
        """Enough feedback rated at or above the elite threshold."""
        return self.positive_count >= settings.elite_min_feedback


def average_rating(feedback: list[Feedback]) -> float:
    if not feedback:
        return 0.0
    return sum(f.rating for f in feedback) / len(feedback)


class FeedbackService:
    """
    Service for submitting and reading order feedback.

    Usage:
        feedback = FeedbackService(db_session)
        await feedback.submit(ctx, order_id=12, rating=5, comment="Great")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize feedback service with database session."""
        self.db = db

    async def submit(
        self,
        ctx: RequestContext,
        order_id: int,
        rating: int,
        comment: str | None = None,
    ) -> Feedback:
        """
        Leave feedback on one of the caller's completed orders.

        The shop is taken from the order, never from the request.

        Raises:
            InvalidRequest: Rating outside 1-5
            NotFound: Unknown order
            Forbidden: Order belongs to someone else
            InvalidState: Order is not completed
            Conflict: Feedback already exists for the order
        """
        if not 1 <= rating <= 5:
            raise InvalidRequest("Rating must be between 1 and 5")

        order = await self.db.get(Order, order_id)
        if not order:
            raise NotFound("Order not found")
        if order.user_id != ctx.user_id:
            raise Forbidden("Order belongs to another user")
        if order.status != OrderStatus.COMPLETED:
            raise InvalidState("Feedback can only be submitted for completed orders")

        existing = await self.db.scalar(
            select(Feedback.id).where(Feedback.order_id == order.id)
        )
        if existing is not None:
            raise Conflict("Feedback has already been submitted for this order")

        feedback = Feedback(
            user_id=ctx.user_id,
            shop_id=order.shop_id,
            order_id=order.id,
            rating=rating,
            comment=(comment or "").strip(),
        )
        self.db.add(feedback)

        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent submission for the same order
            raise Conflict("Feedback has already been submitted for this order") from e

        logger.info(f"Feedback {feedback.id} ({rating}/5) for order {order.id}")
        return feedback

    async def check(self, ctx: RequestContext, order_id: int) -> Feedback | None:
        """
        Return the caller's feedback for an order, if any.

        Raises:
            Forbidden: Feedback exists but was written by someone else
        """
        result = await self.db.execute(
            select(Feedback).where(Feedback.order_id == order_id)
        )
        feedback = result.scalar_one_or_none()

        if feedback and feedback.user_id != ctx.user_id:
            raise Forbidden("Feedback belongs to another user")
        return feedback

    async def get_shop_feedback(self, shop_id: int) -> list[Feedback]:
        """Feedback for one shop with author and order, newest first."""
        query = (
            select(Feedback)
            .options(selectinload(Feedback.user), selectinload(Feedback.order))
            .where(Feedback.shop_id == shop_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_feedback_for(self, ctx: RequestContext) -> list[Feedback]:
        """
        Feedback visible to the caller.

        Shopkeepers get their shop's feedback; customers get their own.
        """
        if ctx.is_shopkeeper:
            shop_id = await self.db.scalar(
                select(Shop.id).where(Shop.owner_id == ctx.user_id)
            )
            if shop_id is None:
                raise NotFound("Shop not found")
            return await self.get_shop_feedback(shop_id)

        query = (
            select(Feedback)
            .options(selectinload(Feedback.shop), selectinload(Feedback.order))
            .where(Feedback.user_id == ctx.user_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_rating_stats(self, shop_ids: list[int]) -> dict[int, RatingStats]:
        """Average rating, count and elite eligibility for several shops."""
        if not shop_ids:
            return {}

        positive = case((Feedback.rating >= settings.elite_min_rating, 1), else_=0)
        query = (
            select(
                Feedback.shop_id,
                func.avg(Feedback.rating),
                func.count(Feedback.id),
                func.sum(positive),
            )
            .where(Feedback.shop_id.in_(shop_ids))
            .group_by(Feedback.shop_id)
        )
        result = await self.db.execute(query)

        return {
            shop_id: RatingStats(
                average=float(avg or 0),
                count=count,
                positive_count=int(positives or 0),
            )
            for shop_id, avg, count, positives in result.all()
        }
