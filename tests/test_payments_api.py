"""HTTP tests for /api/payments, including the end-to-end order scenarios."""

import pytest

from cafepos.db.models import Product


async def _order_with_items(client, headers, table_id, items):
    order = (await client.post("/api/orders", json={"tableId": table_id}, headers=headers)).json()
    for product_id, quantity in items:
        response = await client.post(
            f"/api/orders/{order['id']}/items",
            json={"productId": product_id, "quantity": quantity},
            headers=headers,
        )
        assert response.status_code == 201, response.text
    return order


@pytest.mark.asyncio
async def test_scenario_pay_in_cash(client, seeded, headers):
    order = await _order_with_items(client, headers.staff, seeded.tables[0].id, [(seeded.espresso.id, 2)])

    response = await client.post(
        "/api/payments",
        json={"orderId": order["id"], "paymentType": "Cash", "discountPercentage": 0},
        headers=headers.cashier,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["amount"] == 50000
    assert body["orderStatus"] == "Paid"
    assert set(body) >= {
        "id", "orderId", "amount", "discountPercentage", "discountAmount",
        "originalAmount", "paymentDate", "orderStatus",
    }

    detail = (await client.get(f"/api/orders/{order['id']}", headers=headers.staff)).json()
    assert detail["order"]["status"] == "Paid"
    assert detail["order"]["totalAmount"] == 50000


@pytest.mark.asyncio
async def test_scenario_remove_only_item(client, seeded, headers):
    order = await _order_with_items(client, headers.staff, seeded.tables[1].id, [(seeded.lager.id, 1)])
    detail = (await client.get(f"/api/orders/{order['id']}", headers=headers.staff)).json()
    item_id = detail["items"][0]["id"]

    removed = await client.delete(f"/api/orders/{order['id']}/items/{item_id}", headers=headers.staff)
    assert removed.json()["orderCancelled"] is True

    detail = (await client.get(f"/api/orders/{order['id']}", headers=headers.staff)).json()
    assert detail["order"]["status"] == "Cancelled"


@pytest.mark.asyncio
async def test_scenario_pay_empty_order(client, seeded, headers):
    order = await _order_with_items(client, headers.staff, seeded.tables[2].id, [])
    response = await client.post(
        "/api/payments", json={"orderId": order["id"], "paymentType": "Cash"}, headers=headers.cashier
    )
    assert response.status_code == 400
    assert response.json()["error"] == "EmptyOrder"


@pytest.mark.asyncio
async def test_legacy_field_names_are_accepted(client, seeded, headers):
    order = await _order_with_items(client, headers.staff, seeded.tables[0].id, [(seeded.latte.id, 1)])
    response = await client.post(
        "/api/payments",
        json={"OrderID": order["id"], "PaymentType": "Banking"},
        headers=headers.manager,
    )
    assert response.status_code == 201
    assert response.json()["paymentType"] == "Banking"


@pytest.mark.asyncio
async def test_discount_and_double_payment(client, seeded, session, headers):
    platter = Product(name="Platter", price=10_000_000, category_id=seeded.coffee.id)
    session.add(platter)
    session.commit()
    order = await _order_with_items(client, headers.staff, seeded.tables[0].id, [(platter.id, 1)])

    first = await client.post(
        "/api/payments",
        json={"orderId": order["id"], "paymentType": "Card", "discountPercentage": 10},
        headers=headers.cashier,
    )
    assert first.status_code == 201
    assert first.json()["amount"] == 90000
    assert first.json()["discountAmount"] == 10000
    assert first.json()["originalAmount"] == 100000

    second = await client.post(
        "/api/payments",
        json={"orderId": order["id"], "paymentType": "Cash"},
        headers=headers.cashier,
    )
    assert second.status_code == 409
    assert second.json()["error"] == "Conflict"

    detail = (await client.get(f"/api/orders/{order['id']}", headers=headers.staff)).json()
    assert detail["order"]["totalAmount"] == 90000

    by_order = (await client.get(f"/api/payments/order/{order['id']}", headers=headers.staff)).json()
    assert len(by_order) == 1
    assert by_order[0]["paymentType"] == "Card"

    single = await client.get(f"/api/payments/{by_order[0]['id']}", headers=headers.staff)
    assert single.json()["orderTotal"] == 90000


@pytest.mark.asyncio
async def test_staff_cannot_take_payment(client, seeded, headers):
    order = await _order_with_items(client, headers.staff, seeded.tables[0].id, [(seeded.latte.id, 1)])
    response = await client.post(
        "/api/payments", json={"orderId": order["id"], "paymentType": "Cash"}, headers=headers.staff
    )
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"paymentType": "Crypto"},
        {"paymentType": "Cash", "discountPercentage": 150},
        {"paymentType": "Cash", "discountPercentage": -5},
    ],
)
async def test_invalid_payment_input(client, seeded, headers, payload):
    order = await _order_with_items(client, headers.staff, seeded.tables[0].id, [(seeded.latte.id, 1)])
    response = await client.post(
        "/api/payments", json={"orderId": order["id"], **payload}, headers=headers.cashier
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_list_payments_with_filters(client, seeded, headers):
    order = await _order_with_items(client, headers.staff, seeded.tables[0].id, [(seeded.latte.id, 2)])
    await client.post(
        "/api/payments", json={"orderId": order["id"], "paymentType": "Card"}, headers=headers.cashier
    )

    listed = (await client.get("/api/payments", headers=headers.manager)).json()
    assert len(listed) == 1
    assert listed[0]["processedBy"] == "staff"
    assert (await client.get("/api/payments?paymentType=Cash", headers=headers.manager)).json() == []

    bad = await client.get("/api/payments?startDate=yesterday", headers=headers.manager)
    assert bad.status_code == 400

    unknown = await client.get("/api/payments/987", headers=headers.staff)
    assert unknown.status_code == 404
