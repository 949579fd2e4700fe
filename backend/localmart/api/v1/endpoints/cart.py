"""
Cart API Endpoints.

Server-side cart for customers, checked out one shop at a time.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.api.v1.endpoints.orders import OrderResponse
from localmart.core.database import get_db
from localmart.core.exceptions import InvalidRequest, NotFound
from localmart.core.security import RequestContext, require_customer
from localmart.modules.shop.cart import CartService, get_cart_service
from localmart.modules.shop.orders import LineRequest, OrderService
from localmart.modules.shop.service import ShopService

router = APIRouter()


# ==================== Schemas ====================


class AddToCartRequest(BaseModel):
    """Add item to cart."""

    product_id: int
    quantity: int = Field(1, ge=1)


class UpdateCartRequest(BaseModel):
    """Update cart item quantity (0 removes it)."""

    product_id: int
    quantity: int = Field(..., ge=0)


class CheckoutRequest(BaseModel):
    """Turn one shop's cart items into an order."""

    shop_id: int


# ==================== Cart ====================


async def _cart_view(cart: CartService, user_id: int) -> dict[str, Any]:
    return {
        "items": await cart.get_items(user_id),
        "totals": await cart.get_totals(user_id),
    }


@router.get("")
async def get_cart(
    ctx: RequestContext = Depends(require_customer),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Get the current customer's cart."""
    return await _cart_view(cart, ctx.user_id)


@router.post("/items")
async def add_to_cart(
    request: AddToCartRequest,
    ctx: RequestContext = Depends(require_customer),
    cart: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, Any]:
    """Add a product to the cart."""
    product = await ShopService(db).get_product(request.product_id)
    if not product:
        raise NotFound("Product not found")

    await cart.add_item(ctx.user_id, product, quantity=request.quantity)
    return await _cart_view(cart, ctx.user_id)


@router.put("/items")
async def update_cart(
    request: UpdateCartRequest,
    ctx: RequestContext = Depends(require_customer),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Update item quantity in cart."""
    await cart.update_quantity(ctx.user_id, request.product_id, request.quantity)
    return await _cart_view(cart, ctx.user_id)


@router.delete("/items/{product_id}")
async def remove_from_cart(
    product_id: int,
    ctx: RequestContext = Depends(require_customer),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Remove item from cart."""
    await cart.remove_item(ctx.user_id, product_id)
    return await _cart_view(cart, ctx.user_id)


@router.delete("")
async def clear_cart(
    ctx: RequestContext = Depends(require_customer),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, str]:
    """Clear entire cart."""
    await cart.clear(ctx.user_id)
    return {"status": "cleared"}


@router.post("/checkout", response_model=OrderResponse, status_code=201)
async def checkout(
    request: CheckoutRequest,
    ctx: RequestContext = Depends(require_customer),
    cart: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> OrderResponse:
    """
    Place an order for the cart items of one shop.

    Those items leave the cart only after the order has been written.
    """
    items = [
        item for item in await cart.get_items(ctx.user_id)
        if item["shop_id"] == request.shop_id
    ]
    if not items:
        raise InvalidRequest("Cart has no items from this shop")

    orders = OrderService(db)
    order = await orders.create_order(
        ctx,
        shop_id=request.shop_id,
        lines=[LineRequest(item["product_id"], item["quantity"]) for item in items],
    )
    # Make the order durable before the cart forgets it
    await db.commit()

    await cart.remove_shop_items(ctx.user_id, request.shop_id)
    return OrderResponse.from_order(order)
