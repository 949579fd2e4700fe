"""
API Version 1 Router.

Combines all API endpoints under /api/v1 prefix.
"""

from fastapi import APIRouter

from localmart.api.v1.endpoints import (
    analytics,
    auth,
    cart,
    feedback,
    orders,
    products,
    rewards,
    shops,
    users,
)

router = APIRouter()

# Include endpoint routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(shops.router, prefix="/shops", tags=["Shops"])
router.include_router(products.router, prefix="/products", tags=["Products"])
router.include_router(orders.router, prefix="/orders", tags=["Orders"])
router.include_router(cart.router, prefix="/cart", tags=["Cart"])
router.include_router(rewards.router, prefix="/rewards", tags=["Rewards"])
router.include_router(feedback.router, prefix="/feedback", tags=["Feedback"])
router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
