"""
Product API Endpoints.

Public catalog search and shopkeeper inventory management.
"""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from localmart.core.database import get_db
from localmart.core.exceptions import NotFound
from localmart.core.security import RequestContext, require_shopkeeper
from localmart.models.shop import MAX_STOCK, Product
from localmart.modules.shop.service import ShopService

router = APIRouter()


# ==================== Schemas ====================


class CreateProductRequest(BaseModel):
    """Add a product to the caller's shop."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(..., ge=0, le=MAX_STOCK)
    category: str | None = Field(None, max_length=100)
    images: list[str] | None = None


class UpdateProductRequest(BaseModel):
    """Partial product update."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(None, ge=0, le=MAX_STOCK)
    category: str | None = Field(None, max_length=100)
    images: list[str] | None = None


class ProductResponse(BaseModel):
    id: int
    shop_id: int
    shop_name: str | None = None
    name: str
    description: str
    category: str
    price: float
    stock: int
    in_stock: bool
    images: list[str]
    created_at: datetime

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            shop_id=product.shop_id,
            shop_name=product.shop.name if product.shop else None,
            name=product.name,
            description=product.description,
            category=product.category,
            price=float(product.price),
            stock=product.stock,
            in_stock=product.is_in_stock,
            images=product.images or [],
            created_at=product.created_at,
        )


# ==================== Catalog ====================


@router.get("", response_model=list[ProductResponse])
async def get_products(
    search: str | None = Query(None, description="Search name, description, category"),
    shop_id: int | None = Query(None, description="Filter by shop"),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> list[ProductResponse]:
    """Search the catalog, newest products first."""
    shops = ShopService(db)
    products = await shops.get_products(search=search, shop_id=shop_id)
    return [ProductResponse.from_product(p) for p in products]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db, scope="function"),
) -> ProductResponse:
    """Get product details."""
    shops = ShopService(db)
    product = await shops.get_product(product_id)

    if not product:
        raise NotFound("Product not found")

    return ProductResponse.from_product(product)


# ==================== Inventory ====================


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    request: CreateProductRequest,
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> ProductResponse:
    """Add a product to the current shopkeeper's shop."""
    shops = ShopService(db)
    product = await shops.create_product(
        owner_id=ctx.user_id,
        name=request.name,
        price=request.price,
        stock=request.stock,
        description=request.description,
        category=request.category,
        images=request.images,
    )
    return ProductResponse.from_product(product)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    request: UpdateProductRequest,
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> ProductResponse:
    """Edit a product; setting stock here is how inventory is restocked."""
    shops = ShopService(db)
    product = await shops.update_product(
        ctx.user_id,
        product_id,
        request.model_dump(exclude_unset=True),
    )
    return ProductResponse.from_product(product)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    ctx: RequestContext = Depends(require_shopkeeper),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> dict[str, str]:
    """Delete a product from the current shopkeeper's shop."""
    shops = ShopService(db)
    await shops.delete_product(ctx.user_id, product_id)
    return {"message": "Product deleted successfully"}
