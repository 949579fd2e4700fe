import pytest

from conftest import auth
from localmart.models import Product, User


@pytest.fixture
async def stocked(factory):
    customer = await factory.user()
    first = await factory.shop(reward_rate="0.1")
    second = await factory.shop()
    tea = await factory.product(first, price="2.50", stock=10, name="Tea")
    cake = await factory.product(second, price="6.00", stock=1, name="Cake")
    return customer, first, second, tea, cake


async def test_cart_totals_across_shops(client, stocked):
    customer, _, _, tea, cake = stocked

    await client.post(
        "/api/v1/cart/items", json={"product_id": tea.id, "quantity": 2}, headers=auth(customer)
    )
    await client.post(
        "/api/v1/cart/items", json={"product_id": tea.id}, headers=auth(customer)
    )
    response = await client.post(
        "/api/v1/cart/items", json={"product_id": cake.id}, headers=auth(customer)
    )

    cart = response.json()
    assert [(i["name"], i["quantity"]) for i in cart["items"]] == [("Tea", 3), ("Cake", 1)]
    assert cart["totals"] == {"subtotal": 13.5, "item_count": 4, "shop_count": 2}


async def test_update_and_remove(client, stocked):
    customer, _, _, tea, cake = stocked
    headers = auth(customer)
    await client.post("/api/v1/cart/items", json={"product_id": tea.id}, headers=headers)
    await client.post("/api/v1/cart/items", json={"product_id": cake.id}, headers=headers)

    cart = (
        await client.put(
            "/api/v1/cart/items", json={"product_id": tea.id, "quantity": 5}, headers=headers
        )
    ).json()
    assert cart["items"][0]["total"] == 12.5

    cart = (await client.delete(f"/api/v1/cart/items/{cake.id}", headers=headers)).json()
    assert [i["name"] for i in cart["items"]] == ["Tea"]

    await client.delete("/api/v1/cart", headers=headers)
    assert (await client.get("/api/v1/cart", headers=headers)).json()["items"] == []


async def test_unknown_product(client, stocked):
    customer = stocked[0]
    response = await client.post(
        "/api/v1/cart/items", json={"product_id": 9999}, headers=auth(customer)
    )
    assert response.status_code == 404


async def test_checkout_one_shop(client, factory, stocked):
    customer, first, second, tea, cake = stocked
    headers = auth(customer)
    await client.post(
        "/api/v1/cart/items", json={"product_id": tea.id, "quantity": 4}, headers=headers
    )
    await client.post("/api/v1/cart/items", json={"product_id": cake.id}, headers=headers)

    response = await client.post(
        "/api/v1/cart/checkout", json={"shop_id": first.id}, headers=headers
    )

    assert response.status_code == 201
    order = response.json()
    assert order["shop_id"] == first.id
    assert order["total"] == 10.0
    assert order["reward_points_earned"] == 1
    assert (await factory.get(Product, tea.id)).stock == 6
    assert (await factory.get(User, customer.id)).reward_points == 1

    remaining = (await client.get("/api/v1/cart", headers=headers)).json()["items"]
    assert [i["shop_id"] for i in remaining] == [second.id]


async def test_failed_checkout_keeps_cart(client, factory, stocked):
    customer, _, second, _, cake = stocked
    headers = auth(customer)
    await client.post(
        "/api/v1/cart/items", json={"product_id": cake.id, "quantity": 3}, headers=headers
    )

    response = await client.post(
        "/api/v1/cart/checkout", json={"shop_id": second.id}, headers=headers
    )

    assert response.status_code == 400
    assert response.json()["code"] == "insufficient_stock"
    assert (await factory.get(Product, cake.id)).stock == 1
    assert len((await client.get("/api/v1/cart", headers=headers)).json()["items"]) == 1


async def test_checkout_empty_for_shop(client, stocked):
    customer, first, _, _, _ = stocked
    response = await client.post(
        "/api/v1/cart/checkout", json={"shop_id": first.id}, headers=auth(customer)
    )
    assert response.status_code == 400


async def test_carts_are_per_user(client, factory, stocked):
    customer, _, _, tea, _ = stocked
    other = await factory.user()
    await client.post("/api/v1/cart/items", json={"product_id": tea.id}, headers=auth(customer))

    assert (await client.get("/api/v1/cart", headers=auth(other))).json()["items"] == []
