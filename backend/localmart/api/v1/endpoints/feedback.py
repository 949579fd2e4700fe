"""
Feedback API Endpoints.

Ratings for completed orders.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.security import RequestContext, get_request_context
from localmart.models.feedback import Feedback
from localmart.modules.feedback.service import FeedbackService, average_rating

router = APIRouter()


# ==================== Schemas ====================


class SubmitFeedbackRequest(BaseModel):
    """Rate a completed order."""

    order_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=2000)


class FeedbackResponse(BaseModel):
    id: int
    order_id: int
    shop_id: int
    user_id: int
    rating: int
    comment: str
    created_at: datetime

    @classmethod
    def from_feedback(cls, feedback: Feedback) -> "FeedbackResponse":
        return cls(
            id=feedback.id,
            order_id=feedback.order_id,
            shop_id=feedback.shop_id,
            user_id=feedback.user_id,
            rating=feedback.rating,
            comment=feedback.comment,
            created_at=feedback.created_at,
        )


class SubmitFeedbackResponse(BaseModel):
    message: str
    feedback: FeedbackResponse


# ==================== Feedback ====================


@router.post("", response_model=SubmitFeedbackResponse, status_code=201)
async def submit_feedback(
    request: SubmitFeedbackRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> SubmitFeedbackResponse:
    """Submit feedback for one of the caller's completed orders."""
    service = FeedbackService(db)
    feedback = await service.submit(
        ctx,
        order_id=request.order_id,
        rating=request.rating,
        comment=request.comment,
    )
    return SubmitFeedbackResponse(
        message="Feedback submitted successfully",
        feedback=FeedbackResponse.from_feedback(feedback),
    )


@router.get("")
async def get_feedback(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, Any]:
    """
    Feedback visible to the caller.

    Shopkeepers also get the average rating and count for their shop.
    """
    service = FeedbackService(db)
    found = await service.get_feedback_for(ctx)

    if ctx.is_shopkeeper:
        return {
            "feedbacks": [
                {
                    **FeedbackResponse.from_feedback(f).model_dump(mode="json"),
                    "user": {"name": f.user.name, "email": f.user.email},
                    "order_total": float(f.order.total),
                }
                for f in found
            ],
            "average_rating": round(average_rating(found), 1),
            "total_feedbacks": len(found),
        }

    return {
        "feedbacks": [
            {
                **FeedbackResponse.from_feedback(f).model_dump(mode="json"),
                "shop_name": f.shop.name,
                "order_total": float(f.order.total),
            }
            for f in found
        ]
    }


@router.get("/check")
async def check_feedback(
    order_id: int = Query(..., description="Order ID"),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, Any]:
    """Whether the caller already left feedback for an order."""
    service = FeedbackService(db)
    feedback = await service.check(ctx, order_id)

    if not feedback:
        return {"exists": False}

    return {
        "exists": True,
        "feedback": {
            "rating": feedback.rating,
            "comment": feedback.comment,
        },
    }
