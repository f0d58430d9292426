"""Table management. Reads for any role, writes for managers."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from cafepos.api.schemas import CamelModel, MessageResponse
from cafepos.db.models import Table, Order, User
from cafepos.db.dependencies import get_sqlalchemy_session, require_any_role, require_manager
from cafepos.db.order_status import OrderStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tables", tags=["tables"])


class TableResponse(CamelModel):
    id: int
    table_name: str
    seating_capacity: int
    description: Optional[str] = None
    active_order_id: Optional[int] = None


class TableRequest(CamelModel):
    table_name: str
    seating_capacity: Any
    description: Optional[str] = None


def _validate(request: TableRequest) -> tuple:
    name = (request.table_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Table name is required")
    capacity = request.seating_capacity
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
        raise HTTPException(status_code=400, detail="Seating capacity must be a positive integer")
    return name, capacity


def _active_orders(session: Session) -> dict:
    rows = session.execute(
        select(Order.table_id, Order.id).where(Order.status == OrderStatus.ORDERING.value)
    ).all()
    return {table_id: order_id for table_id, order_id in rows}


def _to_response(table: Table, active: dict) -> TableResponse:
    return TableResponse(
        id=table.id,
        table_name=table.name,
        seating_capacity=table.seating_capacity,
        description=table.description,
        active_order_id=active.get(table.id),
    )


def _get_table(session: Session, table_id: int) -> Table:
    table = session.get(Table, table_id)
    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")
    return table


def _name_taken(session: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Table.id).where(Table.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Table.id != exclude_id)
    return session.execute(stmt).first() is not None


@router.get("", response_model=list[TableResponse], summary="List tables")
async def list_tables(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    tables = session.execute(select(Table).order_by(Table.name)).scalars().all()
    active = _active_orders(session)
    return [_to_response(t, active) for t in tables]


@router.get("/{table_id}", response_model=TableResponse)
async def get_table(
    table_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return _to_response(_get_table(session, table_id), _active_orders(session))


@router.post("", response_model=TableResponse, status_code=201, summary="Create table")
async def create_table(
    request: TableRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    name, capacity = _validate(request)
    if _name_taken(session, name):
        raise HTTPException(status_code=409, detail="Table name already exists")

    table = Table(name=name, seating_capacity=capacity, description=request.description)
    session.add(table)
    session.commit()
    logger.info("Table %s created", table.name)
    return _to_response(table, {})


@router.put("/{table_id}", response_model=TableResponse, summary="Update table")
async def update_table(
    table_id: int,
    request: TableRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    table = _get_table(session, table_id)
    name, capacity = _validate(request)
    if _name_taken(session, name, exclude_id=table_id):
        raise HTTPException(status_code=409, detail="Table name already exists")

    table.name = name
    table.seating_capacity = capacity
    table.description = request.description
    session.commit()
    return _to_response(table, _active_orders(session))


@router.delete("/{table_id}", response_model=MessageResponse, summary="Delete table")
async def delete_table(
    table_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    table = _get_table(session, table_id)
    referenced = session.execute(select(Order.id).where(Order.table_id == table_id)).first()
    if referenced is not None:
        raise HTTPException(status_code=409, detail="Cannot delete table: it is referenced by orders")

    session.delete(table)
    session.commit()
    logger.info("Table %s deleted", table_id)
    return MessageResponse(message="Table deleted successfully")
