"""
Cart Service - Shopping cart management with Redis.
"""

import json
from decimal import Decimal
from typing import Any

import redis.asyncio as redis
from loguru import logger

from localmart.core.config import settings
from localmart.models.shop import Product


class CartService:
    """
    Shopping cart service using Redis for storage.

    Cart is stored per user with TTL for automatic expiration. Items may come
    from several shops; checkout takes one shop's items at a time.

    Usage:
        cart = CartService()
        await cart.add_item(user_id, product, quantity=2)
        items = await cart.get_items(user_id)
    """

    def __init__(self, client: redis.Redis | None = None) -> None:
        """Initialize with an optional pre-built Redis client."""
        self._redis: redis.Redis | None = client
        self.ttl = settings.cart_ttl_seconds

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()

    def _cart_key(self, user_id: int) -> str:
        """Generate Redis key for user's cart."""
        return f"cart:{user_id}"

    async def get_items(self, user_id: int) -> list[dict[str, Any]]:
        """
        Get all items in user's cart.

        Returns:
            List of cart items with product info and quantities
        """
        if not self._redis:
            await self.connect()

        cart_data = await self._redis.get(self._cart_key(user_id))

        if not cart_data:
            return []

        try:
            return json.loads(cart_data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid cart data for user {user_id}")
            return []

    async def _save_items(self, user_id: int, items: list[dict[str, Any]]) -> None:
        """Save cart items to Redis; an empty cart deletes the key."""
        key = self._cart_key(user_id)
        if not items:
            await self._redis.delete(key)
            return
        await self._redis.setex(key, self.ttl, json.dumps(items))

    async def add_item(
        self,
        user_id: int,
        product: Product,
        quantity: int = 1,
    ) -> list[dict[str, Any]]:
        """
        Add item to cart or increase its quantity if already present.

        Price and name are display copies; the order workflow re-reads the
        catalog at checkout.
        """
        items = await self.get_items(user_id)

        for item in items:
            if item["product_id"] == product.id:
                item["quantity"] += quantity
                item["total"] = float(Decimal(str(item["price"])) * item["quantity"])
                await self._save_items(user_id, items)
                return items

        items.append(
            {
                "product_id": product.id,
                "shop_id": product.shop_id,
                "name": product.name,
                "price": float(product.price),
                "quantity": quantity,
                "total": float(product.price * quantity),
            }
        )
        await self._save_items(user_id, items)
        return items

    async def update_quantity(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
    ) -> list[dict[str, Any]]:
        """
        Update item quantity in cart.

        Args:
            user_id: User ID
            product_id: Product ID
            quantity: New quantity (0 to remove)

        Returns:
            Updated cart items
        """
        items = await self.get_items(user_id)

        if quantity <= 0:
            items = [item for item in items if item["product_id"] != product_id]
        else:
            for item in items:
                if item["product_id"] == product_id:
                    item["quantity"] = quantity
                    item["total"] = float(Decimal(str(item["price"])) * quantity)
                    break

        await self._save_items(user_id, items)
        return items

    async def remove_item(self, user_id: int, product_id: int) -> list[dict[str, Any]]:
        """Remove item from cart."""
        return await self.update_quantity(user_id, product_id, 0)

    async def remove_shop_items(self, user_id: int, shop_id: int) -> list[dict[str, Any]]:
        """Drop every item of one shop, e.g. after that shop's checkout."""
        items = await self.get_items(user_id)
        items = [item for item in items if item["shop_id"] != shop_id]
        await self._save_items(user_id, items)
        return items

    async def clear(self, user_id: int) -> None:
        """Clear all items from cart."""
        if not self._redis:
            await self.connect()
        await self._redis.delete(self._cart_key(user_id))

    async def get_totals(self, user_id: int) -> dict[str, Any]:
        """Subtotal and item count across the whole cart."""
        items = await self.get_items(user_id)

        subtotal = Decimal("0")
        item_count = 0

        for item in items:
            subtotal += Decimal(str(item["total"]))
            item_count += item["quantity"]

        return {
            "subtotal": float(subtotal),
            "item_count": item_count,
            "shop_count": len({item["shop_id"] for item in items}),
        }


# Singleton instance
_cart_service: CartService | None = None


async def get_cart_service() -> CartService:
    """Get or create cart service singleton."""
    global _cart_service
    if _cart_service is None:
        _cart_service = CartService()
        await _cart_service.connect()
    return _cart_service


async def close_cart_service() -> None:
    """Close the singleton's Redis connection, if one was opened."""
    global _cart_service
    if _cart_service is not None:
        await _cart_service.disconnect()
        _cart_service = None
