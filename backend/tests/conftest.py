"""
Shared fixtures: a throwaway SQLite database per test, the app wired to it,
an in-memory Redis for carts and a stub text generator for analytics.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

import pytest
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from localmart.core.database import Base, get_db
from localmart.core.exceptions import ExternalServiceUnavailable
from localmart.core.security import RequestContext, create_session_token, hash_password
from localmart.main import app
from localmart.models import (
    Feedback,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Reward,
    Shop,
    User,
    UserRole,
)
from localmart.modules.analytics.insights import get_gemini_client
from localmart.modules.shop.cart import CartService, get_cart_service

PASSWORD = "correct-horse-9"
PASSWORD_HASH = hash_password(PASSWORD)


class StubInsights:
    """Stands in for the Gemini client; records prompts, can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def generate(self, prompt: str, model: str) -> str:
        self.calls.append((model, prompt))
        if self.fail:
            raise ExternalServiceUnavailable("stub outage")
        return f"insights from {model}"


class Factory:
    """Writes fixture rows in their own committed sessions."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self.session_factory = session_factory
        self._counter = 0

    async def _save(self, obj: Any) -> Any:
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
        return obj

    async def user(
        self,
        role: UserRole = UserRole.CUSTOMER,
        reward_points: int = 0,
        name: str | None = None,
    ) -> User:
        self._counter += 1
        return await self._save(
            User(
                name=name or f"{role.value} {self._counter}",
                email=f"{role.value}{self._counter}@example.com",
                hashed_password=PASSWORD_HASH,
                role=role,
                reward_points=reward_points,
            )
        )

    async def shop(
        self,
        owner: User | None = None,
        reward_rate: str = "0.1",
        lat: float = 0.0,
        lng: float = 0.0,
        name: str | None = None,
    ) -> Shop:
        owner = owner or await self.user(UserRole.SHOPKEEPER)
        self._counter += 1
        name = name or f"Shop {self._counter}"
        return await self._save(
            Shop(
                owner_id=owner.id,
                name=name,
                slug=f"shop-{self._counter}",
                address=f"{self._counter} Market Street",
                lat=lat,
                lng=lng,
                reward_rate=Decimal(reward_rate),
            )
        )

    async def product(
        self,
        shop: Shop,
        price: str = "10.00",
        stock: int = 20,
        name: str | None = None,
        category: str = "General",
        description: str = "",
    ) -> Product:
        self._counter += 1
        return await self._save(
            Product(
                shop_id=shop.id,
                name=name or f"Product {self._counter}",
                description=description,
                price=Decimal(price),
                stock=stock,
                category=category,
                images=[],
            )
        )

    async def order(
        self,
        user: User,
        shop: Shop,
        lines: list[tuple[Product, int]],
        status: OrderStatus = OrderStatus.COMPLETED,
        created_at: datetime | None = None,
    ) -> Order:
        total = sum((product.price * qty for product, qty in lines), Decimal("0"))
        return await self._save(
            Order(
                user_id=user.id,
                shop_id=shop.id,
                status=status,
                total=total,
                reward_points_earned=0,
                created_at=created_at or datetime.utcnow(),
                items=[
                    OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        price=product.price,
                        quantity=qty,
                    )
                    for product, qty in lines
                ],
            )
        )

    async def reward(self, shop: Shop, user: User, points: int = 50) -> Reward:
        return await self._save(
            Reward(
                shop_id=shop.id,
                user_id=user.id,
                points=points,
                description=f"{points} point perk",
            )
        )

    async def feedback(self, order: Order, rating: int = 5, comment: str = "") -> Feedback:
        return await self._save(
            Feedback(
                user_id=order.user_id,
                shop_id=order.shop_id,
                order_id=order.id,
                rating=rating,
                comment=comment,
            )
        )

    async def get(self, model: type, ident: int) -> Any:
        """Read a row back through a fresh session."""
        async with self.session_factory() as session:
            return await session.get(model, ident)

    async def update(self, model: type, ident: int, **values: Any) -> None:
        """Change a row from outside the session under test."""
        async with self.session_factory() as session:
            await session.execute(update(model).where(model.id == ident).values(**values))
            await session.commit()


def auth(user: User) -> dict[str, str]:
    """Bearer header for a user."""
    return {"Authorization": f"Bearer {create_session_token(user.id, user.role)}"}


def context(user: User) -> RequestContext:
    """Resolved identity for calling services directly."""
    return RequestContext(user_id=user.id, role=user.role)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def factory(session_factory) -> Factory:
    return Factory(session_factory)


@pytest.fixture
def insights() -> StubInsights:
    return StubInsights()


@pytest.fixture
async def cart_service():
    redis_client = FakeAsyncRedis(decode_responses=True)
    yield CartService(client=redis_client)
    await redis_client.aclose()


@pytest.fixture
async def client(session_factory, insights, cart_service):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gemini_client] = lambda: insights
    app.dependency_overrides[get_cart_service] = lambda: cart_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
