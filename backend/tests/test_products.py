import pytest

from conftest import auth
from localmart.models import OrderItem, Product, UserRole


@pytest.fixture
async def keeper_shop(factory):
    keeper = await factory.user(UserRole.SHOPKEEPER)
    shop = await factory.shop(owner=keeper)
    return keeper, shop


async def test_create_product(client, keeper_shop):
    keeper, shop = keeper_shop

    response = await client.post(
        "/api/v1/products",
        json={"name": "Mango", "price": "3.25", "stock": 12, "category": "Fruit"},
        headers=auth(keeper),
    )

    assert response.status_code == 201
    product = response.json()
    assert product["shop_id"] == shop.id
    assert product["shop_name"] == shop.name
    assert product["price"] == pytest.approx(3.25)
    assert product["in_stock"] is True
    assert product["images"] == []


async def test_default_category(client, keeper_shop):
    keeper, _ = keeper_shop
    response = await client.post(
        "/api/v1/products",
        json={"name": "Thing", "price": "1.00", "stock": 0},
        headers=auth(keeper),
    )
    assert response.json()["category"] == "General"
    assert response.json()["in_stock"] is False


async def test_product_requires_shop(client, factory):
    keeper = await factory.user(UserRole.SHOPKEEPER)
    response = await client.post(
        "/api/v1/products",
        json={"name": "Orphan", "price": "1.00", "stock": 1},
        headers=auth(keeper),
    )
    assert response.status_code == 404


async def test_negative_price_rejected(client, keeper_shop):
    keeper, _ = keeper_shop
    response = await client.post(
        "/api/v1/products",
        json={"name": "Bad", "price": "-1.00", "stock": 1},
        headers=auth(keeper),
    )
    assert response.status_code == 400


async def test_search(client, factory, keeper_shop):
    _, shop = keeper_shop
    await factory.product(shop, name="Basmati Rice", category="Grains")
    await factory.product(shop, name="Milk", description="Full cream", category="Dairy")
    other = await factory.shop()
    await factory.product(other, name="Brown Rice", category="Grains")

    found = (await client.get("/api/v1/products", params={"search": "rice"})).json()
    assert {p["name"] for p in found} == {"Basmati Rice", "Brown Rice"}

    found = (await client.get("/api/v1/products", params={"search": "CREAM"})).json()
    assert [p["name"] for p in found] == ["Milk"]

    found = (
        await client.get("/api/v1/products", params={"search": "grains", "shop_id": shop.id})
    ).json()
    assert [p["name"] for p in found] == ["Basmati Rice"]


async def test_get_product(client, factory, keeper_shop):
    _, shop = keeper_shop
    product = await factory.product(shop, name="Tea")

    assert (await client.get(f"/api/v1/products/{product.id}")).json()["name"] == "Tea"
    assert (await client.get("/api/v1/products/9999")).status_code == 404


async def test_restock_and_edit(client, factory, keeper_shop):
    keeper, shop = keeper_shop
    product = await factory.product(shop, stock=0)

    response = await client.put(
        f"/api/v1/products/{product.id}",
        json={"stock": 40, "name": "Restocked"},
        headers=auth(keeper),
    )

    assert response.status_code == 200
    assert response.json()["stock"] == 40
    assert response.json()["name"] == "Restocked"


async def test_only_owner_edits(client, factory, keeper_shop):
    _, shop = keeper_shop
    product = await factory.product(shop)
    rival = await factory.user(UserRole.SHOPKEEPER)
    await factory.shop(owner=rival)

    response = await client.put(
        f"/api/v1/products/{product.id}", json={"stock": 1}, headers=auth(rival)
    )
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/products/{product.id}", headers=auth(rival))
    assert response.status_code == 403


async def test_delete_keeps_order_history(client, factory, keeper_shop):
    keeper, shop = keeper_shop
    customer = await factory.user()
    product = await factory.product(shop, name="Limited")
    order = await factory.order(customer, shop, [(product, 1)])

    response = await client.delete(f"/api/v1/products/{product.id}", headers=auth(keeper))
    assert response.json() == {"message": "Product deleted successfully"}
    assert (await client.get(f"/api/v1/products/{product.id}")).status_code == 404

    detail = (await client.get(f"/api/v1/orders/{order.id}", headers=auth(customer))).json()
    assert detail["items"][0]["product_name"] == "Limited"
    assert (await factory.get(OrderItem, order.items[0].id)) is not None


@pytest.mark.parametrize(
    "body",
    [
        {"name": "Gold Bar", "price": "100000000.00", "stock": 1},
        {"name": "Fractional", "price": "1.005", "stock": 1},
        {"name": "Warehouse", "price": "1.00", "stock": 2**31},
    ],
)
async def test_values_beyond_column_range_rejected(client, keeper_shop, body):
    keeper, _ = keeper_shop

    response = await client.post("/api/v1/products", json=body, headers=auth(keeper))

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


async def test_restock_beyond_column_range_rejected(client, factory, keeper_shop):
    keeper, shop = keeper_shop
    product = await factory.product(shop, stock=3)

    response = await client.put(
        f"/api/v1/products/{product.id}",
        json={"stock": 2**31},
        headers=auth(keeper),
    )

    assert response.status_code == 400
    assert (await factory.get(Product, product.id)).stock == 3
