"""Revenue reports over paid orders."""

from datetime import date, datetime

import pytest

from cafepos.db import analytics, order_utils, payment_utils
from cafepos.db.errors import ValidationError
from cafepos.db.models import Order, Payment


def _paid_order(session, seeded, table, items, when, payment_type="Cash", discount=0):
    order = order_utils.create_order(session, table.id, seeded.cashier.id)
    for product, quantity in items:
        order_utils.add_order_item(session, order.id, product.id, quantity)
    payment_utils.create_payment(session, order.id, payment_type, discount)
    order.order_date = when
    session.query(Payment).filter(Payment.order_id == order.id).update({"payment_date": when})
    session.commit()
    return order


@pytest.fixture
def sales(session, seeded):
    """Paid orders spread over a few days of March 2026, plus one cancelled order."""
    t1, t2, t3 = seeded.tables
    _paid_order(session, seeded, t1, [(seeded.espresso, 2)], datetime(2026, 3, 10, 9, 0))           # 50,000
    _paid_order(session, seeded, t2, [(seeded.lager, 5)], datetime(2026, 3, 10, 21, 0), "Card", 10)  # 90,000
    _paid_order(session, seeded, t3, [(seeded.latte, 1)], datetime(2026, 3, 9, 8, 30), "Banking")     # 35,000
    _paid_order(session, seeded, t1, [(seeded.espresso, 4)], datetime(2026, 2, 20, 12, 0))           # 100,000

    cancelled = order_utils.create_order(session, t2.id, seeded.staff.id)
    order_utils.add_order_item(session, cancelled.id, seeded.latte.id, 10)
    order_utils.update_status(session, cancelled.id, "Cancelled")
    session.query(Order).filter(Order.id == cancelled.id).update({"order_date": datetime(2026, 3, 10, 10, 0)})
    session.commit()
    return seeded


def test_resolve_range_defaults_and_errors():
    today = date(2026, 3, 31)
    assert analytics.resolve_range(today=today) == (date(2026, 3, 1), today)
    assert analytics.resolve_range("2026-01-01", "2026-01-31") == (date(2026, 1, 1), date(2026, 1, 31))
    with pytest.raises(ValidationError):
        analytics.resolve_range("2026-13-01", None, today=today)
    with pytest.raises(ValidationError):
        analytics.resolve_range("2026-03-10", "2026-03-01")


def test_daily_revenue_counts_only_paid(session, sales):
    report = analytics.daily_revenue(session, date(2026, 3, 1), date(2026, 3, 31))
    assert report["period"] == {"startDate": "2026-03-01", "endDate": "2026-03-31"}
    assert report["dailyRevenue"] == [
        {"date": "2026-03-10", "revenue": 140000.0, "orders": 2, "averageOrderValue": 70000.0},
        {"date": "2026-03-09", "revenue": 35000.0, "orders": 1, "averageOrderValue": 35000.0},
    ]


def test_revenue_summary_growth(session, sales):
    summary = analytics.revenue_summary(session, today=date(2026, 3, 10))
    assert summary["today"] == {"revenue": 140000.0, "orders": 2, "growth": 300.0}
    assert summary["yesterday"]["revenue"] == 35000.0
    assert summary["thisMonth"]["revenue"] == 175000.0
    assert summary["thisMonth"]["growth"] == 75.0
    assert summary["lastMonth"] == {"revenue": 100000.0, "orders": 1}
    assert summary["thisYear"]["orders"] == 4


def test_growth_from_zero_is_100():
    assert analytics._growth(500, 0) == 100
    assert analytics._growth(0, 0) == 0


def test_monthly_and_yearly(session, sales):
    monthly = analytics.monthly_revenue(session, 2026)
    assert len(monthly["monthlyRevenue"]) == 12
    assert monthly["monthlyRevenue"][1]["revenue"] == 100000.0
    assert monthly["monthlyRevenue"][2]["monthName"] == "March"
    assert monthly["totalRevenue"] == 275000.0
    assert monthly["totalOrders"] == 4

    yearly = analytics.yearly_revenue(session, years=2, today=date(2026, 6, 1))
    assert yearly["period"] == "2025-2026"
    assert [row["year"] for row in yearly["yearlyRevenue"]] == [2025, 2026]
    assert yearly["totalRevenue"] == 275000.0


def test_top_selling_products(session, sales):
    report = analytics.top_selling_products(session, date(2026, 2, 1), date(2026, 3, 31), limit=2)
    top = report["topProducts"]
    assert [p["productName"] for p in top] == ["Espresso", "Lager"]
    assert top[0]["totalQuantitySold"] == 6
    assert top[0]["orderCount"] == 2
    assert top[1]["totalRevenue"] == 100000.0  # pre-discount line revenue


def test_categories_performance(session, sales):
    report = analytics.categories_performance(session, date(2026, 3, 1), date(2026, 3, 31))
    by_name = {c["categoryName"]: c for c in report["categories"]}
    assert by_name["Beer"]["totalRevenue"] == 100000.0
    assert by_name["Coffee"]["totalRevenue"] == 85000.0
    assert by_name["Coffee"]["totalQuantitySold"] == 3
    assert report["totalRevenue"] == 185000.0
    assert by_name["Beer"]["revenuePercentage"] == 54.05


def test_payment_methods(session, sales):
    report = analytics.payment_methods(session, date(2026, 3, 1), date(2026, 3, 31))
    by_method = {m["paymentMethod"]: m for m in report["paymentMethods"]}
    assert set(by_method) == {"Cash", "Card", "Banking"}
    assert by_method["Card"]["totalAmount"] == 90000.0
    assert report["totalAmount"] == 175000.0
    assert report["paymentMethods"][0]["paymentMethod"] == "Card"


def test_discount_analysis(session, sales):
    report = analytics.discount_analysis(session, date(2026, 3, 1), date(2026, 3, 31))
    summary = report["summary"]
    assert summary["totalRevenue"] == 185000.0
    assert summary["totalPaidAmount"] == 175000.0
    assert summary["totalDiscountAmount"] == 10000.0
    assert summary["discountedOrders"] == 1
    assert summary["totalOrders"] == 3
    assert summary["averageDiscountPercentage"] == 10
    tiers = {t["tier"]: t for t in report["discountTiers"]}
    assert tiers["No Discount"]["orderCount"] == 2
    assert tiers["6-10%"]["discountAmount"] == 10000.0


def test_products_revenue(session, sales):
    report = analytics.products_revenue(session, date(2026, 3, 1), date(2026, 3, 31))
    assert [p["productName"] for p in report["products"]] == ["Lager", "Espresso", "Latte"]
    assert report["totalRevenue"] == 185000.0
    lager = report["products"][0]
    assert lager["totalQuantitySold"] == 5
    assert lager["orderCount"] == 1
    assert lager["categoryName"] == "Beer"

    coffee = analytics.products_revenue(session, date(2026, 3, 1), date(2026, 3, 31), category_id=sales.coffee.id)
    assert [p["productName"] for p in coffee["products"]] == ["Espresso", "Latte"]
    assert coffee["totalRevenue"] == 85000.0
    assert coffee["products"][0]["revenuePercentage"] == 58.82


def test_products_revenue_lists_unsold_products(session, sales):
    report = analytics.products_revenue(session, date(2026, 2, 1), date(2026, 2, 28))
    by_name = {p["productName"]: p for p in report["products"]}
    assert "Old Brew" not in by_name
    assert by_name["Espresso"]["totalRevenue"] == 100000.0
    assert by_name["Latte"] == {
        "productId": sales.latte.id,
        "productName": "Latte",
        "categoryName": "Coffee",
        "unitPrice": 35000.0,
        "totalQuantitySold": 0,
        "totalRevenue": 0.0,
        "orderCount": 0,
        "revenuePercentage": 0.0,
    }


def test_comprehensive_report(session, sales):
    report = analytics.comprehensive_report(session, date(2026, 3, 1), date(2026, 3, 31))
    assert report["period"]["totalDays"] == 31
    assert report["revenueOverview"] == {
        "totalOrders": 3,
        "grossRevenue": 185000.0,
        "netRevenue": 175000.0,
        "totalDiscounts": 10000.0,
        "averageOrderValue": 61666.67,
        "averagePayment": 58333.33,
        "minOrderValue": 35000.0,
        "maxOrderValue": 100000.0,
        "discountRate": 5.41,
    }
    assert report["performanceMetrics"] == {
        "uniqueOrders": 3,
        "uniqueProductsSold": 3,
        "totalItemsSold": 8,
        "tablesUsed": 3,
        "activeDays": 2,
        "ordersPerDay": 1.5,
        "revenuePerDay": 87500.0,
    }
    assert [(h["hour"], h["revenue"]) for h in report["hourlyAnalysis"]] == [(8, 35000.0), (9, 50000.0), (21, 90000.0)]
    assert [(d["weekdayName"], d["orderCount"]) for d in report["weekdayAnalysis"]] == [("Monday", 1), ("Tuesday", 2)]
    assert report["topPerformingDays"][0] == {
        "date": "2026-03-10", "orderCount": 2, "revenue": 140000.0, "averageOrderValue": 70000.0,
    }


def test_comprehensive_report_empty_range(session, sales):
    report = analytics.comprehensive_report(session, date(2025, 1, 1), date(2025, 1, 31))
    assert report["revenueOverview"]["totalOrders"] == 0
    assert report["revenueOverview"]["discountRate"] == 0
    assert report["performanceMetrics"]["ordersPerDay"] == 0
    assert report["hourlyAnalysis"] == []
    assert report["topPerformingDays"] == []


@pytest.mark.parametrize("pct,tier", [(0, "No Discount"), (5, "1-5%"), (7.5, "6-10%"), (20, "11-20%"), (50, "21-50%"), (80, "Over 50%")])
def test_discount_tiers(pct, tier):
    assert analytics.discount_tier(pct) == tier


@pytest.mark.asyncio
async def test_analytics_endpoints(client, sales, headers):
    daily = await client.get(
        "/api/analytics/revenue/daily?startDate=2026-03-01&endDate=2026-03-31", headers=headers.cashier
    )
    assert daily.status_code == 200
    assert len(daily.json()["dailyRevenue"]) == 2

    bad = await client.get("/api/analytics/revenue/daily?startDate=March", headers=headers.cashier)
    assert bad.status_code == 400

    staff = await client.get("/api/analytics/revenue/summary", headers=headers.staff)
    assert staff.status_code == 403

    for path in (
        "/api/analytics/revenue/summary",
        "/api/analytics/revenue/monthly?year=2026",
        "/api/analytics/revenue/yearly?years=3",
        "/api/analytics/products/top-selling?limit=5",
        "/api/analytics/categories/performance",
        "/api/analytics/payment-methods",
        "/api/analytics/discounts",
        "/api/analytics/products/revenue?categoryId=1",
        "/api/analytics/comprehensive?startDate=2026-03-01&endDate=2026-03-31",
    ):
        response = await client.get(path, headers=headers.manager)
        assert response.status_code == 200, path
