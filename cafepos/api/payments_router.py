"""Payment endpoints backed by cafepos.db.payment_utils."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, Field
from sqlalchemy.orm import Session

from cafepos.api.schemas import CamelModel
from cafepos.db import payment_utils
from cafepos.db.analytics import parse_date
from cafepos.db.models import User
from cafepos.db.dependencies import get_sqlalchemy_session, require_any_role, require_cashier_or_manager

router = APIRouter(prefix="/api/payments", tags=["payments"])


class CreatePaymentRequest(CamelModel):
    order_id: int = Field(validation_alias=AliasChoices("orderId", "OrderID", "order_id"))
    payment_type: Any = Field(None, validation_alias=AliasChoices("paymentType", "PaymentType", "payment_type"))
    discount_percentage: Any = 0


@router.post("", status_code=201, summary="Settle an order")
async def create_payment(
    request: CreatePaymentRequest,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    return payment_utils.create_payment(
        session, request.order_id, request.payment_type, request.discount_percentage
    )


@router.get("", summary="List payments")
async def list_payments(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    payment_type: Optional[str] = Query(None, alias="paymentType"),
    order_id: Optional[int] = Query(None, alias="orderId"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_cashier_or_manager),
):
    return payment_utils.list_payments(
        session,
        start_date=parse_date(start_date, "startDate"),
        end_date=parse_date(end_date, "endDate"),
        payment_type=payment_type,
        order_id=order_id,
    )


@router.get("/order/{order_id}", summary="Payments for an order")
async def payments_for_order(
    order_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return payment_utils.payments_for_order(session, order_id)


@router.get("/{payment_id}", summary="Payment detail")
async def get_payment(
    payment_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return payment_utils.get_payment(session, payment_id)
