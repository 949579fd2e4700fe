"""
Order API Endpoints.

Placement, listing and fulfilment of orders.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.exceptions import Forbidden, NotFound
from localmart.core.security import RequestContext, get_request_context, require_customer
from localmart.models.shop import Order, OrderStatus
from localmart.modules.shop.orders import LineRequest, OrderService

router = APIRouter()


# ==================== Schemas ====================


class OrderLineRequest(BaseModel):
    """One product and quantity."""

    product_id: int
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    """Place an order with one shop."""

    shop_id: int
    items: list[OrderLineRequest] = Field(..., min_length=1)


class UpdateOrderStatusRequest(BaseModel):
    """Advance an order. Validated by the service so unknown values are a 400."""

    status: str


class OrderItemResponse(BaseModel):
    product_id: int | None
    product_name: str
    quantity: int
    price: float
    subtotal: float


class OrderResponse(BaseModel):
    id: int
    user_id: int
    shop_id: int
    shop_name: str | None = None
    customer_email: str | None = None
    status: OrderStatus
    total: float
    reward_points_earned: int
    items: list[OrderItemResponse]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user_id=order.user_id,
            shop_id=order.shop_id,
            shop_name=order.shop.name if order.shop else None,
            customer_email=order.user.email if order.user else None,
            status=order.status,
            total=float(order.total),
            reward_points_earned=order.reward_points_earned,
            items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    price=float(item.price),
                    subtotal=float(item.subtotal),
                )
                for item in order.items
            ],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


# ==================== Orders ====================


@router.get("", response_model=list[OrderResponse])
async def get_orders(
    status: Literal["all", "pending", "packed", "completed"] = Query(
        "all", description="Filter by status"
    ),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> list[OrderResponse]:
    """
    List orders visible to the caller.

    Customers see their own orders, shopkeepers see their shop's orders.
    """
    orders = OrderService(db)
    found = await orders.get_orders(
        ctx,
        status=None if status == "all" else OrderStatus(status),
    )
    return [OrderResponse.from_order(o) for o in found]


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    ctx: RequestContext = Depends(require_customer),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> OrderResponse:
    """
    Place an order.

    Validates every line, decrements stock, freezes prices and total,
    and credits reward points to the buyer in one transaction.
    """
    orders = OrderService(db)
    order = await orders.create_order(
        ctx,
        shop_id=request.shop_id,
        lines=[LineRequest(item.product_id, item.quantity) for item in request.items],
    )
    return OrderResponse.from_order(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> OrderResponse:
    """Get one order; visible to its buyer and to the shop owner."""
    orders = OrderService(db)
    order = await orders.get_order(order_id)

    if not order:
        raise NotFound("Order not found")
    if ctx.user_id not in (order.user_id, order.shop.owner_id):
        raise Forbidden("Order belongs to another user")

    return OrderResponse.from_order(order)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    request: UpdateOrderStatusRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> OrderResponse:
    """Move an order to the next status (pending -> packed -> completed)."""
    orders = OrderService(db)
    order = await orders.update_status(ctx, order_id, request.status)
    return OrderResponse.from_order(order)
