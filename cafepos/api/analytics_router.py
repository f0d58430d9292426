"""Revenue reports (Cashier/Manager)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cafepos.db import analytics
from cafepos.db.models import User
from cafepos.db.dependencies import get_sqlalchemy_session, require_cashier_or_manager
from cafepos.utils.time_utils import today_local

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/revenue/summary")
async def revenue_summary(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    return analytics.revenue_summary(session)


@router.get("/revenue/daily")
async def daily_revenue(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.daily_revenue(session, start, end)


@router.get("/revenue/monthly")
async def monthly_revenue(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    return analytics.monthly_revenue(session, year or today_local().year)


@router.get("/revenue/yearly")
async def yearly_revenue(
    years: int = Query(5),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    return analytics.yearly_revenue(session, years)


@router.get("/products/top-selling")
async def top_selling_products(
    limit: int = Query(10),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.top_selling_products(session, start, end, limit)


@router.get("/products/revenue")
async def products_revenue(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.products_revenue(session, start, end, category_id)


@router.get("/categories/performance")
async def categories_performance(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.categories_performance(session, start, end)


@router.get("/payment-methods")
async def payment_methods(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.payment_methods(session, start, end)


@router.get("/discounts")
async def discounts(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.discount_analysis(session, start, end)


@router.get("/comprehensive")
async def comprehensive_report(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    start, end = analytics.resolve_range(start_date, end_date)
    return analytics.comprehensive_report(session, start, end)
