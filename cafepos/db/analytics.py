"""Read-only revenue reporting over paid orders.

Only orders in Paid status count, and they are bucketed by their order date.
Queries load the matching rows and aggregate in Python so the same code runs
on every database SQLAlchemy supports.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Any, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload, selectinload

from cafepos.db.errors import ValidationError
from cafepos.db.models import Category, Product, Order, OrderItem
from cafepos.db.order_status import OrderStatus
from cafepos.utils.time_utils import today_local, local_day_bounds

DEFAULT_RANGE_DAYS = 30

DISCOUNT_TIERS = (
    ("No Discount", 0),
    ("1-5%", 5),
    ("6-10%", 10),
    ("11-20%", 20),
    ("21-50%", 50),
    ("Over 50%", 100),
)


def _money(cents) -> float:
    return round(cents / 100.0, 2)


def _pct(part, whole) -> float:
    return round(part / whole * 100, 2) if whole else 0


def _growth(current, previous) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 2)
    return 100 if current > 0 else 0


def parse_date(value: Optional[str], field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD")


def resolve_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """Parse a report range; defaults to the last 30 days ending today."""
    today = today or today_local()
    end = parse_date(end_date, "endDate") or today
    start = parse_date(start_date, "startDate") or (today - timedelta(days=DEFAULT_RANGE_DAYS))
    if start > end:
        raise ValidationError("startDate must be on or before endDate")
    return start, end


def _period(start: date, end: date) -> Dict[str, str]:
    return {"startDate": start.isoformat(), "endDate": end.isoformat()}


def _paid_orders(session: Session, start: date, end: date, with_items: bool = False) -> List[Order]:
    lower, upper = local_day_bounds(start, end)
    stmt = (
        select(Order)
        .options(joinedload(Order.payment))
        .where(Order.status == OrderStatus.PAID.value)
        .where(Order.order_date >= lower)
        .where(Order.order_date < upper)
    )
    if with_items:
        stmt = stmt.options(
            selectinload(Order.items).joinedload(OrderItem.product).joinedload(Product.category)
        )
    return session.execute(stmt).unique().scalars().all()


def _revenue(order: Order) -> int:
    return order.total_amount or 0


def revenue_summary(session: Session, today: Optional[date] = None) -> Dict[str, Any]:
    """Today/yesterday/month/year revenue with day-over-day and month-over-month growth."""
    today = today or today_local()
    yesterday = today - timedelta(days=1)
    month_start = today.replace(day=1)
    last_month_end = month_start - timedelta(days=1)
    last_month_start = last_month_end.replace(day=1)
    year_start = today.replace(month=1, day=1)

    orders = _paid_orders(session, min(year_start, last_month_start), today)

    buckets = {
        "today": (today, today),
        "yesterday": (yesterday, yesterday),
        "thisMonth": (month_start, today),
        "lastMonth": (last_month_start, last_month_end),
        "thisYear": (year_start, today),
    }
    revenue = {key: 0 for key in buckets}
    counts = {key: 0 for key in buckets}
    for order in orders:
        day = order.order_date.date()
        for key, (lo, hi) in buckets.items():
            if lo <= day <= hi:
                revenue[key] += _revenue(order)
                counts[key] += 1

    return {
        "today": {
            "revenue": _money(revenue["today"]),
            "orders": counts["today"],
            "growth": _growth(revenue["today"], revenue["yesterday"]),
        },
        "yesterday": {"revenue": _money(revenue["yesterday"]), "orders": counts["yesterday"]},
        "thisMonth": {
            "revenue": _money(revenue["thisMonth"]),
            "orders": counts["thisMonth"],
            "growth": _growth(revenue["thisMonth"], revenue["lastMonth"]),
        },
        "lastMonth": {"revenue": _money(revenue["lastMonth"]), "orders": counts["lastMonth"]},
        "thisYear": {"revenue": _money(revenue["thisYear"]), "orders": counts["thisYear"]},
    }


def daily_revenue(session: Session, start: date, end: date) -> Dict[str, Any]:
    by_day = defaultdict(list)
    for order in _paid_orders(session, start, end):
        by_day[order.order_date.date()].append(_revenue(order))

    rows = []
    for day in sorted(by_day, reverse=True):
        amounts = by_day[day]
        rows.append({
            "date": day.isoformat(),
            "revenue": _money(sum(amounts)),
            "orders": len(amounts),
            "averageOrderValue": _money(sum(amounts) / len(amounts)),
        })
    return {"period": _period(start, end), "dailyRevenue": rows}


def monthly_revenue(session: Session, year: int) -> Dict[str, Any]:
    revenue = defaultdict(int)
    counts = defaultdict(int)
    for order in _paid_orders(session, date(year, 1, 1), date(year, 12, 31)):
        revenue[order.order_date.month] += _revenue(order)
        counts[order.order_date.month] += 1

    months = [
        {
            "month": month,
            "monthName": calendar.month_name[month],
            "year": year,
            "revenue": _money(revenue[month]),
            "orders": counts[month],
        }
        for month in range(1, 13)
    ]
    return {
        "year": year,
        "monthlyRevenue": months,
        "totalRevenue": _money(sum(revenue.values())),
        "totalOrders": sum(counts.values()),
    }


def yearly_revenue(session: Session, years: int = 5, today: Optional[date] = None) -> Dict[str, Any]:
    if years < 1:
        raise ValidationError("years must be at least 1")
    current_year = (today or today_local()).year
    start_year = current_year - years + 1

    revenue = defaultdict(int)
    counts = defaultdict(int)
    for order in _paid_orders(session, date(start_year, 1, 1), date(current_year, 12, 31)):
        revenue[order.order_date.year] += _revenue(order)
        counts[order.order_date.year] += 1

    rows = [
        {"year": year, "revenue": _money(revenue[year]), "orders": counts[year]}
        for year in range(start_year, current_year + 1)
    ]
    return {
        "period": f"{start_year}-{current_year}",
        "yearlyRevenue": rows,
        "totalRevenue": _money(sum(revenue.values())),
        "totalOrders": sum(counts.values()),
    }


def top_selling_products(session: Session, start: date, end: date, limit: int = 10) -> Dict[str, Any]:
    """Products ranked by quantity sold (line revenue is pre-discount)."""
    if limit < 1:
        raise ValidationError("limit must be at least 1")

    stats: Dict[int, Dict[str, Any]] = {}
    for order in _paid_orders(session, start, end, with_items=True):
        for item in order.items:
            product = item.product
            entry = stats.setdefault(item.product_id, {
                "productId": item.product_id,
                "productName": product.name,
                "categoryName": product.category.name if product.category else "No Category",
                "unitPrice": _money(product.price),
                "totalQuantitySold": 0,
                "_revenue": 0,
                "_orders": set(),
                "_lines": 0,
            })
            entry["totalQuantitySold"] += item.quantity
            entry["_revenue"] += item.subtotal
            entry["_orders"].add(order.id)
            entry["_lines"] += 1

    ranked = sorted(stats.values(), key=lambda e: (-e["totalQuantitySold"], e["productId"]))[:limit]
    products = []
    for entry in ranked:
        products.append({
            "productId": entry["productId"],
            "productName": entry["productName"],
            "categoryName": entry["categoryName"],
            "unitPrice": entry["unitPrice"],
            "totalQuantitySold": entry["totalQuantitySold"],
            "totalRevenue": _money(entry["_revenue"]),
            "orderCount": len(entry["_orders"]),
            "averageQuantityPerOrder": round(entry["totalQuantitySold"] / entry["_lines"], 2),
        })
    return {"period": _period(start, end), "topProducts": products}


def products_revenue(
    session: Session,
    start: date,
    end: date,
    category_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Revenue per available product, including products that sold nothing."""
    stmt = (
        select(Product)
        .options(joinedload(Product.category))
        .where(Product.available.is_(True))
        .order_by(Product.id)
    )
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    products = session.execute(stmt).scalars().all()

    stats = {
        p.id: {"product": p, "_quantity": 0, "_revenue": 0, "_orders": set()}
        for p in products
    }
    for order in _paid_orders(session, start, end, with_items=True):
        for item in order.items:
            entry = stats.get(item.product_id)
            if entry is None:
                continue
            entry["_quantity"] += item.quantity
            entry["_revenue"] += item.subtotal
            entry["_orders"].add(order.id)

    total = sum(e["_revenue"] for e in stats.values())
    rows = []
    for e in sorted(stats.values(), key=lambda e: (-e["_revenue"], e["product"].name)):
        product = e["product"]
        rows.append({
            "productId": product.id,
            "productName": product.name,
            "categoryName": product.category.name if product.category else "No Category",
            "unitPrice": _money(product.price),
            "totalQuantitySold": e["_quantity"],
            "totalRevenue": _money(e["_revenue"]),
            "orderCount": len(e["_orders"]),
            "revenuePercentage": _pct(e["_revenue"], total),
        })
    return {"period": _period(start, end), "totalRevenue": _money(total), "products": rows}


def _bucket_rows(buckets: Dict[Any, List[int]]) -> Dict[Any, Dict[str, Any]]:
    return {
        key: {
            "orderCount": len(amounts),
            "revenue": _money(sum(amounts)),
            "averageOrderValue": _money(sum(amounts) / len(amounts)),
        }
        for key, amounts in buckets.items()
    }


def comprehensive_report(session: Session, start: date, end: date) -> Dict[str, Any]:
    """
    One-page overview for a date range.

    Gross revenue is the pre-discount item sum, net revenue what was
    actually paid. Hours and weekdays come from the order date; weekdays
    are numbered Monday=1 .. Sunday=7.
    """
    orders = [o for o in _paid_orders(session, start, end, with_items=True) if o.payment is not None]

    gross_values = []
    net_values = []
    hourly = defaultdict(list)
    weekdays = defaultdict(list)
    days = defaultdict(list)
    products = set()
    tables = set()
    items_sold = 0

    for order in orders:
        gross = sum(item.subtotal for item in order.items)
        net = order.payment.amount
        gross_values.append(gross)
        net_values.append(net)
        hourly[order.order_date.hour].append(net)
        weekdays[order.order_date.isoweekday()].append(net)
        days[order.order_date.date()].append(net)
        tables.add(order.table_id)
        for item in order.items:
            products.add(item.product_id)
            items_sold += item.quantity

    gross_total = sum(gross_values)
    net_total = sum(net_values)
    count = len(orders)
    active_days = len(days)

    overview = {
        "totalOrders": count,
        "grossRevenue": _money(gross_total),
        "netRevenue": _money(net_total),
        "totalDiscounts": _money(gross_total - net_total),
        "averageOrderValue": _money(gross_total / count) if count else 0,
        "averagePayment": _money(net_total / count) if count else 0,
        "minOrderValue": _money(min(gross_values)) if count else 0,
        "maxOrderValue": _money(max(gross_values)) if count else 0,
        "discountRate": _pct(gross_total - net_total, gross_total),
    }
    metrics = {
        "uniqueOrders": count,
        "uniqueProductsSold": len(products),
        "totalItemsSold": items_sold,
        "tablesUsed": len(tables),
        "activeDays": active_days,
        "ordersPerDay": round(count / active_days, 2) if active_days else 0,
        "revenuePerDay": _money(net_total / active_days) if active_days else 0,
    }

    hour_rows = _bucket_rows(hourly)
    weekday_rows = _bucket_rows(weekdays)
    day_rows = _bucket_rows(days)
    top_days = sorted(day_rows.items(), key=lambda kv: (-sum(days[kv[0]]), kv[0]))[:10]

    return {
        "period": {**_period(start, end), "totalDays": (end - start).days + 1},
        "revenueOverview": overview,
        "performanceMetrics": metrics,
        "hourlyAnalysis": [{"hour": hour, **hour_rows[hour]} for hour in sorted(hour_rows)],
        "weekdayAnalysis": [
            {"weekday": day, "weekdayName": calendar.day_name[day - 1], **weekday_rows[day]}
            for day in sorted(weekday_rows)
        ],
        "topPerformingDays": [{"date": day.isoformat(), **row} for day, row in top_days],
    }


def categories_performance(session: Session, start: date, end: date) -> Dict[str, Any]:
    """Revenue and quantity per available category, with revenue share."""
    categories = session.execute(
        select(Category).where(Category.available.is_(True)).order_by(Category.name)
    ).scalars().all()
    stats = {
        c.id: {"categoryId": c.id, "categoryName": c.name, "_products": set(), "_quantity": 0, "_revenue": 0, "_orders": set()}
        for c in categories
    }
    active_products = session.execute(
        select(Product.id, Product.category_id).where(Product.available.is_(True))
    ).all()
    for product_id, category_id in active_products:
        if category_id in stats:
            stats[category_id]["_products"].add(product_id)

    for order in _paid_orders(session, start, end, with_items=True):
        for item in order.items:
            entry = stats.get(item.product.category_id)
            if entry is None:
                continue
            entry["_quantity"] += item.quantity
            entry["_revenue"] += item.subtotal
            entry["_orders"].add(order.id)

    total = sum(e["_revenue"] for e in stats.values())
    rows = [
        {
            "categoryId": e["categoryId"],
            "categoryName": e["categoryName"],
            "totalProducts": len(e["_products"]),
            "totalQuantitySold": e["_quantity"],
            "totalRevenue": _money(e["_revenue"]),
            "orderCount": len(e["_orders"]),
            "revenuePercentage": _pct(e["_revenue"], total),
        }
        for e in sorted(stats.values(), key=lambda e: (-e["_revenue"], e["categoryName"]))
    ]
    return {"period": _period(start, end), "totalRevenue": _money(total), "categories": rows}


def payment_methods(session: Session, start: date, end: date) -> Dict[str, Any]:
    amounts = defaultdict(list)
    for order in _paid_orders(session, start, end):
        if order.payment is not None:
            amounts[order.payment.payment_type].append(order.payment.amount)

    total = sum(sum(values) for values in amounts.values())
    rows = [
        {
            "paymentMethod": method,
            "transactionCount": len(values),
            "totalAmount": _money(sum(values)),
            "averageAmount": _money(sum(values) / len(values)),
            "minAmount": _money(min(values)),
            "maxAmount": _money(max(values)),
            "percentage": _pct(sum(values), total),
        }
        for method, values in sorted(amounts.items(), key=lambda kv: -sum(kv[1]))
    ]
    return {"period": _period(start, end), "totalAmount": _money(total), "paymentMethods": rows}


def discount_tier(percentage: float) -> str:
    if not percentage:
        return DISCOUNT_TIERS[0][0]
    for name, upper in DISCOUNT_TIERS[1:]:
        if percentage <= upper:
            return name
    return DISCOUNT_TIERS[-1][0]


def discount_analysis(session: Session, start: date, end: date) -> Dict[str, Any]:
    """Gross (pre-discount) vs net (paid) totals and a breakdown by discount tier."""
    gross_total = 0
    paid_total = 0
    discounted = []
    tiers = {name: {"orderCount": 0, "original": 0, "paid": 0} for name, _ in DISCOUNT_TIERS}

    orders = [o for o in _paid_orders(session, start, end, with_items=True) if o.payment is not None]
    for order in orders:
        gross = sum(item.subtotal for item in order.items)
        paid = order.payment.amount
        pct = order.payment.discount_percentage or 0
        gross_total += gross
        paid_total += paid
        if pct > 0:
            discounted.append(pct)
        tier = tiers[discount_tier(pct)]
        tier["orderCount"] += 1
        tier["original"] += gross
        tier["paid"] += paid

    discount_total = gross_total - paid_total
    summary = {
        "totalRevenue": _money(gross_total),
        "totalDiscountAmount": _money(discount_total),
        "totalPaidAmount": _money(paid_total),
        "totalOrders": len(orders),
        "discountedOrders": len(discounted),
        "discountOrderPercentage": _pct(len(discounted), len(orders)),
        "averageDiscountPercentage": round(sum(discounted) / len(discounted), 2) if discounted else 0,
        "discountImpact": _pct(discount_total, gross_total),
    }
    tier_rows = [
        {
            "tier": name,
            "orderCount": t["orderCount"],
            "originalAmount": _money(t["original"]),
            "paidAmount": _money(t["paid"]),
            "discountAmount": _money(t["original"] - t["paid"]),
        }
        for name, t in tiers.items()
        if t["orderCount"]
    ]
    return {"period": _period(start, end), "summary": summary, "discountTiers": tier_rows}
