import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from conftest import auth
from localmart.core.exceptions import Conflict
from localmart.core.security import RequestContext
from localmart.models import Feedback, OrderStatus, UserRole
from localmart.modules.feedback.service import FeedbackService, RatingStats


@pytest.fixture
async def completed_order(factory):
    customer = await factory.user()
    keeper = await factory.user(UserRole.SHOPKEEPER)
    shop = await factory.shop(owner=keeper)
    product = await factory.product(shop)
    order = await factory.order(customer, shop, [(product, 2)])
    return customer, keeper, shop, order


async def test_submit_feedback(client, completed_order):
    customer, _, shop, order = completed_order

    response = await client.post(
        "/api/v1/feedback",
        json={"order_id": order.id, "rating": 4, "comment": "  Fresh bread  "},
        headers=auth(customer),
    )

    assert response.status_code == 201
    feedback = response.json()["feedback"]
    assert feedback["shop_id"] == shop.id
    assert feedback["rating"] == 4
    assert feedback["comment"] == "Fresh bread"


async def test_second_feedback_conflicts(client, db, completed_order):
    customer, _, _, order = completed_order
    body = {"order_id": order.id, "rating": 5}

    first = await client.post("/api/v1/feedback", json=body, headers=auth(customer))
    second = await client.post("/api/v1/feedback", json=body, headers=auth(customer))

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["code"] == "conflict"
    count = await db.scalar(select(func.count(Feedback.id)))
    assert count == 1


async def test_unique_index_backs_the_check(db, factory, completed_order):
    customer, _, _, order = completed_order
    await factory.feedback(order, rating=3)

    service = FeedbackService(db)
    # Simulate the race where the pre-check saw nothing
    db.add(
        Feedback(
            user_id=customer.id,
            shop_id=order.shop_id,
            order_id=order.id,
            rating=5,
            comment="",
        )
    )
    with pytest.raises(IntegrityError):
        await db.flush()
    await db.rollback()

    with pytest.raises(Conflict):
        await service.submit(
            RequestContext(user_id=customer.id, role=UserRole.CUSTOMER),
            order_id=order.id,
            rating=5,
        )


async def test_feedback_requires_completed_order(client, factory):
    customer = await factory.user()
    shop = await factory.shop()
    product = await factory.product(shop)
    order = await factory.order(customer, shop, [(product, 1)], status=OrderStatus.PENDING)

    response = await client.post(
        "/api/v1/feedback",
        json={"order_id": order.id, "rating": 5},
        headers=auth(customer),
    )

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"


async def test_feedback_on_foreign_or_missing_order(client, factory, completed_order):
    _, _, _, order = completed_order
    stranger = await factory.user()

    response = await client.post(
        "/api/v1/feedback",
        json={"order_id": order.id, "rating": 5},
        headers=auth(stranger),
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/feedback",
        json={"order_id": 9999, "rating": 5},
        headers=auth(stranger),
    )
    assert response.status_code == 404


@pytest.mark.parametrize("rating", [0, 6])
async def test_rating_out_of_range(client, completed_order, rating):
    customer, _, _, order = completed_order
    response = await client.post(
        "/api/v1/feedback",
        json={"order_id": order.id, "rating": rating},
        headers=auth(customer),
    )
    assert response.status_code == 400


async def test_check_feedback(client, factory, completed_order):
    customer, _, _, order = completed_order
    url = "/api/v1/feedback/check"

    before = await client.get(url, params={"order_id": order.id}, headers=auth(customer))
    assert before.json() == {"exists": False}

    await factory.feedback(order, rating=2, comment="Slow")

    after = await client.get(url, params={"order_id": order.id}, headers=auth(customer))
    assert after.json() == {"exists": True, "feedback": {"rating": 2, "comment": "Slow"}}

    other = await factory.user()
    hidden = await client.get(url, params={"order_id": order.id}, headers=auth(other))
    assert hidden.status_code == 403


async def test_feedback_listing_by_role(client, factory, completed_order):
    customer, keeper, shop, order = completed_order
    product = await factory.product(shop)
    second = await factory.order(customer, shop, [(product, 1)])
    await factory.feedback(order, rating=5)
    await factory.feedback(second, rating=2)

    shop_view = (await client.get("/api/v1/feedback", headers=auth(keeper))).json()
    assert shop_view["total_feedbacks"] == 2
    assert shop_view["average_rating"] == 3.5
    assert shop_view["feedbacks"][0]["user"]["email"] == customer.email

    customer_view = (await client.get("/api/v1/feedback", headers=auth(customer))).json()
    assert {f["shop_name"] for f in customer_view["feedbacks"]} == {shop.name}


async def test_rating_stats_and_elite(db, factory):
    customer = await factory.user()
    shop = await factory.shop()
    product = await factory.product(shop)

    for rating in (5, 4, 3, 3, 2):
        order = await factory.order(customer, shop, [(product, 1)])
        await factory.feedback(order, rating=rating)

    stats = await FeedbackService(db).get_rating_stats([shop.id])
    assert stats[shop.id].count == 5
    assert stats[shop.id].average == pytest.approx(3.4)
    assert stats[shop.id].positive_count == 4
    assert not stats[shop.id].is_elite

    order = await factory.order(customer, shop, [(product, 1)])
    await factory.feedback(order, rating=4)

    stats = await FeedbackService(db).get_rating_stats([shop.id])
    assert stats[shop.id].is_elite


def test_empty_rating_stats_not_elite():
    assert not RatingStats().is_elite
