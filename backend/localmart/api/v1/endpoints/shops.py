"""
Shop API Endpoints.

Shop discovery for customers; setup, profile and stats for shopkeepers.
"""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.security import RequestContext, require_shopkeeper
from localmart.models.shop import Shop
from localmart.modules.accounts.service import AccountService
from localmart.modules.feedback.service import FeedbackService, RatingStats
from localmart.modules.shop.service import ShopService

router = APIRouter()


# ==================== Schemas ====================


class CreateShopRequest(BaseModel):
    """Set up the shopkeeper's shop."""

    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    reward_rate: Decimal | None = Field(None, ge=0, max_digits=6, decimal_places=4)


class UpdateShopRequest(BaseModel):
    """Partial shop profile update."""

    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, min_length=1)
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    reward_rate: Decimal | None = Field(None, ge=0, max_digits=6, decimal_places=4)


class ShopResponse(BaseModel):
    id: int
    name: str
    slug: str
    address: str
    lat: float
    lng: float
    reward_rate: float

    @classmethod
    def from_shop(cls, shop: Shop) -> "ShopResponse":
        return cls(
            id=shop.id,
            name=shop.name,
            slug=shop.slug,
            address=shop.address,
            lat=shop.lat,
            lng=shop.lng,
            reward_rate=float(shop.reward_rate),
        )


class ShopListingResponse(ShopResponse):
    distance: float | None = None
    average_rating: float = 0.0
    total_feedbacks: int = 0
    is_elite: bool = False


# ==================== Discovery ====================


@router.get("", response_model=list[ShopListingResponse])
async def get_shops(
    lat: float | None = Query(None, ge=-90, le=90, description="Customer latitude"),
    lng: float | None = Query(None, ge=-180, le=180, description="Customer longitude"),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> list[ShopListingResponse]:
    """
    List shops.

    With both coordinates, each shop carries its distance in km and the
    list is sorted nearest first.
    """
    shops = ShopService(db)
    found = await shops.get_shops(lat=lat, lng=lng)

    stats = await FeedbackService(db).get_rating_stats([shop.id for shop, _ in found])

    listings = []
    for shop, distance in found:
        rating = stats.get(shop.id, RatingStats())
        listings.append(
            ShopListingResponse(
                **ShopResponse.from_shop(shop).model_dump(),
                distance=distance,
                average_rating=round(rating.average, 1),
                total_feedbacks=rating.count,
                is_elite=rating.is_elite,
            )
        )
    return listings


# ==================== Shopkeeper ====================


@router.post("", response_model=ShopResponse, status_code=201)
async def create_shop(
    request: CreateShopRequest,
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> ShopResponse:
    """Set up the current shopkeeper's shop (one per shopkeeper)."""
    shops = ShopService(db)
    shop = await shops.create_shop(
        owner_id=ctx.user_id,
        name=request.name,
        address=request.address,
        lat=request.lat,
        lng=request.lng,
        reward_rate=request.reward_rate,
    )
    return ShopResponse.from_shop(shop)


@router.get("/mine")
async def check_shop(
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, Any]:
    """Whether the current shopkeeper has set up a shop yet."""
    shops = ShopService(db)
    shop = await shops.get_shop_by_owner(ctx.user_id)

    if not shop:
        return {"exists": False}
    return {"exists": True, "shop": ShopResponse.from_shop(shop).model_dump()}


@router.get("/mine/stats")
async def get_shop_stats(
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, Any]:
    """Dashboard counters for the current shopkeeper."""
    shops = ShopService(db)
    stats = await shops.get_stats(ctx.user_id)

    return {
        "total_orders": stats.total_orders,
        "total_revenue": float(stats.total_revenue),
        "total_products": stats.total_products,
        "pending_orders": stats.pending_orders,
    }


@router.get("/mine/profile")
async def get_shop_profile(
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, Any]:
    """Shopkeeper account plus shop details."""
    user = await AccountService(db).get_user(ctx.user_id)
    shop = await ShopService(db).require_shop_by_owner(ctx.user_id)

    return {
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
        },
        "shop": ShopResponse.from_shop(shop).model_dump(),
    }


@router.put("/mine/profile", response_model=ShopResponse)
async def update_shop_profile(
    request: UpdateShopRequest,
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> ShopResponse:
    """Update the current shopkeeper's shop."""
    shops = ShopService(db)
    shop = await shops.update_shop(ctx.user_id, request.model_dump(exclude_unset=True))
    return ShopResponse.from_shop(shop)
