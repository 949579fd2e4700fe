"""
Order Service - Order placement and fulfilment.

Order placement touches several rows (product stock, the order itself and the
buyer's point balance). Every check runs before the first write, stock is
decremented with a conditional UPDATE, and all writes share the caller's
transaction so a failure leaves nothing half-applied.
"""

import math
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from localmart.core.exceptions import (
    Forbidden,
    InsufficientStock,
    InvalidRequest,
    InvalidState,
    NotFound,
)
from localmart.core.security import RequestContext
from localmart.models.shop import (
    MAX_ORDER_TOTAL,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Shop,
)
from localmart.models.user import User


@dataclass(frozen=True)
class LineRequest:
    """One requested line of an order."""

    product_id: int
    quantity: int


def calculate_reward_points(total: Decimal, reward_rate: Decimal) -> int:
    """Points earned for an order: floor(total * rate)."""
    return math.floor(total * reward_rate)


def merge_lines(lines: list[LineRequest]) -> list[LineRequest]:
    """Collapse repeated product ids into one line, keeping first-seen order."""
    quantities: dict[int, int] = {}
    for line in lines:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
    return [LineRequest(pid, qty) for pid, qty in quantities.items()]


class OrderService:
    """
    Service for placing, listing and advancing orders.

    Usage:
        orders = OrderService(db_session)
        order = await orders.create_order(ctx, shop_id, [LineRequest(7, 2)])
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize order service with database session."""
        self.db = db

    # ==================== Placement ====================

    async def create_order(
        self,
        ctx: RequestContext,
        shop_id: int,
        lines: list[LineRequest],
    ) -> Order:
        """
        Place an order with one shop.

        Args:
            ctx: Requesting customer
            shop_id: Target shop
            lines: Requested products and quantities

        Returns:
            Created order with items loaded

        Raises:
            Forbidden: Caller is not a customer
            InvalidRequest: Empty order, bad quantity, mixed shops or oversized total
            NotFound: Unknown shop, product or buyer
            InsufficientStock: A product cannot cover its quantity
        """
        if not ctx.is_customer:
            raise Forbidden("Only customers can place orders")
        if not lines:
            raise InvalidRequest("Order must contain at least one item")
        if any(line.quantity < 1 for line in lines):
            raise InvalidRequest("Quantity must be at least 1")

        lines = merge_lines(lines)

        shop = await self.db.get(Shop, shop_id)
        if not shop:
            raise NotFound("Shop not found")

        buyer = await self.db.get(User, ctx.user_id)
        if not buyer:
            raise NotFound("User not found")

        # Validate every line before touching any row
        result = await self.db.execute(
            select(Product).where(Product.id.in_([line.product_id for line in lines]))
        )
        products = {product.id: product for product in result.scalars().all()}

        total = Decimal("0")
        order_items = []

        for line in lines:
            product = products.get(line.product_id)
            if not product:
                raise NotFound(f"Product {line.product_id} not found")

            if product.shop_id != shop.id:
                raise InvalidRequest("All products must be from the same shop")

            if product.stock < line.quantity:
                raise InsufficientStock(f"Insufficient stock for {product.name}")

            # Unit price captured now; later catalog edits do not touch the order
            total += product.price * line.quantity
            order_items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    price=product.price,
                    quantity=line.quantity,
                )
            )

        if total > MAX_ORDER_TOTAL:
            raise InvalidRequest(f"Order total exceeds {MAX_ORDER_TOTAL}")

        # Commit phase: conditional decrements guard against concurrent orders
        for line in lines:
            result = await self.db.execute(
                update(Product)
                .where(Product.id == line.product_id, Product.stock >= line.quantity)
                .values(stock=Product.stock - line.quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                product = products[line.product_id]
                raise InsufficientStock(f"Insufficient stock for {product.name}")

        points = calculate_reward_points(total, shop.reward_rate)

        order = Order(
            user=buyer,
            shop=shop,
            status=OrderStatus.PENDING,
            total=total,
            reward_points_earned=points,
            items=order_items,
        )
        self.db.add(order)
        await self.db.flush()

        if points:
            await self.db.execute(
                update(User)
                .where(User.id == buyer.id)
                .values(reward_points=User.reward_points + points)
                .execution_options(synchronize_session=False)
            )
            set_committed_value(buyer, "reward_points", buyer.reward_points + points)

        logger.info(
            f"Order {order.id} placed by user {buyer.id} at shop {shop.id}: "
            f"total={total} points={points}"
        )
        return order

    # ==================== Queries ====================

    async def get_orders(
        self,
        ctx: RequestContext,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        """
        Orders visible to the caller, newest first.

        Customers see their own orders; shopkeepers see their shop's orders.
        """
        query = select(Order).options(
            selectinload(Order.items),
            selectinload(Order.shop),
            selectinload(Order.user),
        )

        if ctx.is_shopkeeper:
            shop_id = await self.db.scalar(
                select(Shop.id).where(Shop.owner_id == ctx.user_id)
            )
            if shop_id is None:
                return []
            query = query.where(Order.shop_id == shop_id)
        else:
            query = query.where(Order.user_id == ctx.user_id)

        if status:
            query = query.where(Order.status == status)

        query = query.order_by(Order.created_at.desc(), Order.id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_order(self, order_id: int) -> Order | None:
        """Get order by ID with items, shop and buyer."""
        query = (
            select(Order)
            .options(
                selectinload(Order.items),
                selectinload(Order.shop),
                selectinload(Order.user),
            )
            .where(Order.id == order_id)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    # ==================== Fulfilment ====================

    async def update_status(
        self,
        ctx: RequestContext,
        order_id: int,
        status: str,
    ) -> Order:
        """
        Advance an order one step: pending -> packed -> completed.

        Requesting the current status is a no-op.

        Raises:
            InvalidRequest: Unknown status string
            NotFound: Unknown order
            Forbidden: Caller does not own the order's shop
            InvalidState: Backward move or skipped step
        """
        try:
            target = OrderStatus(status)
        except ValueError:
            raise InvalidRequest(f"Unknown order status: {status!r}") from None

        order = await self.get_order(order_id)
        if not order:
            raise NotFound("Order not found")

        if not ctx.is_shopkeeper or order.shop.owner_id != ctx.user_id:
            raise Forbidden("Only the shop owner can update this order")

        if target == order.status:
            return order

        if target != order.status.next:
            raise InvalidState(
                f"Cannot move order from {order.status.value} to {target.value}"
            )

        order.status = target
        await self.db.flush()

        logger.info(f"Order {order.id} moved to {target.value}")
        return order
