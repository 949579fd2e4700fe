"""
Shop Service - Shop and product catalog management.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from loguru import logger
from slugify import slugify
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from localmart.core.config import settings
from localmart.core.exceptions import Conflict, Forbidden, InvalidRequest, NotFound
from localmart.models.shop import (
    MAX_REWARD_RATE,
    Order,
    OrderStatus,
    Product,
    Shop,
)
from localmart.modules.shop.geo import haversine_km


@dataclass
class ShopStats:
    """Quick counters for the shopkeeper dashboard."""

    total_orders: int = 0
    total_revenue: Decimal = Decimal("0")
    total_products: int = 0
    pending_orders: int = 0


def check_reward_rate(rate: Decimal) -> None:
    """Reject rates the reward_rate column cannot store exactly."""
    if rate < 0 or rate > MAX_REWARD_RATE:
        raise InvalidRequest(f"Reward rate must be between 0 and {MAX_REWARD_RATE}")
    if rate != rate.quantize(Decimal("0.0001")):
        raise InvalidRequest("Reward rate allows at most 4 decimal places")


class ShopService:
    """
    Service for managing shops and their products.

    Usage:
        shops = ShopService(db_session)
        nearby = await shops.get_shops(lat=52.52, lng=13.40)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize shop service with database session."""
        self.db = db

    # ==================== Shops ====================

    async def get_shop(self, shop_id: int) -> Shop | None:
        """Get shop by ID."""
        return await self.db.get(Shop, shop_id)

    async def get_shop_by_owner(self, owner_id: int) -> Shop | None:
        """Get the shop owned by a shopkeeper."""
        query = select(Shop).where(Shop.owner_id == owner_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_shop_by_owner(self, owner_id: int) -> Shop:
        """Get the caller's shop or fail with NotFound."""
        shop = await self.get_shop_by_owner(owner_id)
        if not shop:
            raise NotFound("Shop not found. Please set up your shop first.")
        return shop

    async def get_shops(
        self,
        lat: float | None = None,
        lng: float | None = None,
    ) -> list[tuple[Shop, float | None]]:
        """
        Get all shops, nearest first when a location is given.

        Args:
            lat: Customer latitude
            lng: Customer longitude

        Returns:
            List of (shop, distance_km) pairs; distance is None without a location
        """
        query = select(Shop).order_by(Shop.created_at.desc(), Shop.id.desc())
        result = await self.db.execute(query)
        shops = list(result.scalars().all())

        if lat is None or lng is None:
            return [(shop, None) for shop in shops]

        with_distance = [
            (shop, haversine_km(lat, lng, shop.lat, shop.lng)) for shop in shops
        ]
        with_distance.sort(key=lambda pair: pair[1])
        return with_distance

    async def _unique_slug(self, name: str) -> str:
        base_slug = slugify(name)[:200] or "shop"
        slug = base_slug

        counter = 1
        while True:
            existing = await self.db.execute(select(Shop.id).where(Shop.slug == slug))
            if existing.scalar_one_or_none() is None:
                return slug
            slug = f"{base_slug}-{counter}"
            counter += 1

    async def create_shop(
        self,
        owner_id: int,
        name: str,
        address: str,
        lat: float,
        lng: float,
        reward_rate: Decimal | None = None,
    ) -> Shop:
        """
        Create the shopkeeper's shop.

        Raises:
            Conflict: If the owner already has a shop
            InvalidRequest: If the reward rate is out of range
        """
        if await self.get_shop_by_owner(owner_id):
            raise Conflict("Shop already exists for this user")

        if reward_rate is None:
            reward_rate = Decimal(str(settings.default_reward_rate))
        check_reward_rate(reward_rate)

        shop = Shop(
            owner_id=owner_id,
            name=name.strip(),
            slug=await self._unique_slug(name),
            address=address.strip(),
            lat=lat,
            lng=lng,
            reward_rate=reward_rate,
        )
        self.db.add(shop)
        await self.db.flush()

        logger.info(f"Shop {shop.slug} created by user {owner_id}")
        return shop

    async def update_shop(self, owner_id: int, changes: dict[str, Any]) -> Shop:
        """
        Apply a partial profile update to the owner's shop.

        Args:
            owner_id: Shopkeeper user ID
            changes: Any of name, address, lat, lng, reward_rate

        Returns:
            Updated shop
        """
        shop = await self.require_shop_by_owner(owner_id)

        reward_rate = changes.get("reward_rate")
        if reward_rate is not None:
            check_reward_rate(reward_rate)

        for field in ("name", "address"):
            if changes.get(field) is not None:
                setattr(shop, field, changes[field].strip())
        for field in ("lat", "lng", "reward_rate"):
            if changes.get(field) is not None:
                setattr(shop, field, changes[field])

        await self.db.flush()
        return shop

    async def get_stats(self, owner_id: int) -> ShopStats:
        """Order, revenue and product counters; zeros when no shop exists."""
        shop = await self.get_shop_by_owner(owner_id)
        if not shop:
            return ShopStats()

        total_orders = await self.db.scalar(
            select(func.count(Order.id)).where(Order.shop_id == shop.id)
        )
        pending_orders = await self.db.scalar(
            select(func.count(Order.id)).where(
                Order.shop_id == shop.id,
                Order.status == OrderStatus.PENDING,
            )
        )
        total_revenue = await self.db.scalar(
            select(func.coalesce(func.sum(Order.total), 0)).where(
                Order.shop_id == shop.id,
                Order.status == OrderStatus.COMPLETED,
            )
        )
        total_products = await self.db.scalar(
            select(func.count(Product.id)).where(Product.shop_id == shop.id)
        )

        return ShopStats(
            total_orders=total_orders or 0,
            total_revenue=Decimal(str(total_revenue or 0)),
            total_products=total_products or 0,
            pending_orders=pending_orders or 0,
        )

    # ==================== Products ====================

    async def get_products(
        self,
        search: str | None = None,
        shop_id: int | None = None,
    ) -> list[Product]:
        """
        Get products with filters.

        Args:
            search: Case-insensitive match on name, description or category
            shop_id: Restrict to one shop

        Returns:
            List of products, newest first
        """
        query = select(Product).options(selectinload(Product.shop))

        if shop_id is not None:
            query = query.where(Product.shop_id == shop_id)

        if search:
            search_pattern = f"%{search}%"
            query = query.where(
                Product.name.ilike(search_pattern)
                | Product.description.ilike(search_pattern)
                | Product.category.ilike(search_pattern)
            )

        query = query.order_by(Product.created_at.desc(), Product.id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_product(self, product_id: int) -> Product | None:
        """Get product by ID with its shop."""
        query = (
            select(Product)
            .options(selectinload(Product.shop))
            .where(Product.id == product_id)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _owned_product(self, owner_id: int, product_id: int) -> Product:
        product = await self.get_product(product_id)
        if not product:
            raise NotFound("Product not found")

        shop = await self.get_shop_by_owner(owner_id)
        if not shop or product.shop_id != shop.id:
            raise Forbidden("Product belongs to another shop")
        return product

    async def create_product(
        self,
        owner_id: int,
        name: str,
        price: Decimal,
        stock: int,
        description: str | None = None,
        category: str | None = None,
        images: list[str] | None = None,
    ) -> Product:
        """Add a product to the owner's shop."""
        shop = await self.require_shop_by_owner(owner_id)

        product = Product(
            shop_id=shop.id,
            name=name.strip(),
            description=description or "",
            price=price,
            stock=stock,
            category=category or "General",
            images=images or [],
        )
        self.db.add(product)
        await self.db.flush()

        # Loaded here so callers can read product.shop without lazy IO
        product.shop = shop
        return product

    async def update_product(
        self,
        owner_id: int,
        product_id: int,
        changes: dict[str, Any],
    ) -> Product:
        """
        Edit a product. Direct stock edits are the only way stock increases.

        Args:
            owner_id: Shopkeeper user ID
            product_id: Product ID
            changes: Any of name, description, price, stock, category, images
        """
        product = await self._owned_product(owner_id, product_id)

        for field in ("name", "description", "price", "stock", "category", "images"):
            if changes.get(field) is not None:
                setattr(product, field, changes[field])

        await self.db.flush()
        return product

    async def delete_product(self, owner_id: int, product_id: int) -> None:
        """Remove a product from the owner's shop."""
        product = await self._owned_product(owner_id, product_id)
        await self.db.delete(product)
        await self.db.flush()
        logger.info(f"Product {product_id} deleted by user {owner_id}")
