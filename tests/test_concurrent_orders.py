"""Concurrent writers on the same table or order: one open order, one line per product."""

import threading

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from cafepos.db import order_utils
from cafepos.db.errors import Conflict, InvalidState
from cafepos.db.models import Order, OrderItem


def test_partial_unique_index_blocks_second_open_order(storage, session, seeded):
    """Bypassing the service pre-check still cannot create two open orders."""
    table_id = seeded.tables[0].id
    session.add(Order(table_id=table_id, user_id=seeded.staff.id, status="Ordering"))
    session.commit()

    session.add(Order(table_id=table_id, user_id=seeded.staff.id, status="Ordering"))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()

    # Closed orders do not count against the index
    session.add(Order(table_id=table_id, user_id=seeded.staff.id, status="Cancelled"))
    session.add(Order(table_id=table_id, user_id=seeded.staff.id, status="Cancelled"))
    session.commit()


@pytest.mark.slow
def test_concurrent_create_order_single_winner(storage, seeded):
    table_id = seeded.tables[1].id
    user_id = seeded.staff.id
    barrier = threading.Barrier(6)
    outcomes = []
    lock = threading.Lock()

    def worker():
        db_session = storage._get_session()
        try:
            barrier.wait()
            order = order_utils.create_order(db_session, table_id, user_id)
            result = ("ok", order.id)
        except Conflict:
            result = ("conflict", None)
        finally:
            db_session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(outcomes) == 6
    assert sum(1 for kind, _ in outcomes if kind == "ok") == 1

    check = storage._get_session()
    try:
        open_orders = check.execute(
            select(func.count(Order.id)).where(Order.table_id == table_id).where(Order.status == "Ordering")
        ).scalar_one()
    finally:
        check.close()
    assert open_orders == 1


def test_order_items_unique_per_product(session, seeded):
    """A second line for the same product is rejected by the schema."""
    order = order_utils.create_order(session, seeded.tables[2].id, seeded.staff.id)
    order_utils.add_order_item(session, order.id, seeded.espresso.id, 1)

    session.add(OrderItem(order_id=order.id, product_id=seeded.espresso.id, quantity=1, unit_price=1))
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()


@pytest.mark.slow
def test_concurrent_adds_merge_into_one_line(storage, seeded):
    setup = storage._get_session()
    try:
        order_id = order_utils.create_order(setup, seeded.tables[0].id, seeded.staff.id).id
    finally:
        setup.close()

    workers = 8
    barrier = threading.Barrier(workers)
    errors = []
    lock = threading.Lock()

    def worker():
        db_session = storage._get_session()
        try:
            barrier.wait()
            order_utils.add_order_item(db_session, order_id, seeded.espresso.id, 1)
        except Exception as e:
            with lock:
                errors.append(e)
        finally:
            db_session.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    check = storage._get_session()
    try:
        quantities = check.execute(
            select(OrderItem.quantity).where(OrderItem.order_id == order_id)
        ).scalars().all()
    finally:
        check.close()
    assert quantities == [workers]


@pytest.mark.slow
def test_add_racing_last_item_removal_never_lands_on_cancelled_order(storage, seeded):
    setup = storage._get_session()
    try:
        order_id = order_utils.create_order(setup, seeded.tables[1].id, seeded.staff.id).id
        item_id = order_utils.add_order_item(setup, order_id, seeded.espresso.id, 1).item.id
    finally:
        setup.close()

    barrier = threading.Barrier(2)
    outcomes = {}

    def remove():
        db_session = storage._get_session()
        try:
            barrier.wait()
            outcomes["remove"] = order_utils.remove_order_item(db_session, order_id, item_id)
        except Exception as e:
            outcomes["remove"] = e
        finally:
            db_session.close()

    def add():
        db_session = storage._get_session()
        try:
            barrier.wait()
            outcomes["add"] = order_utils.add_order_item(db_session, order_id, seeded.lager.id, 1)
        except Exception as e:
            outcomes["add"] = e
        finally:
            db_session.close()

    threads = [threading.Thread(target=remove), threading.Thread(target=add)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    check = storage._get_session()
    try:
        order = check.get(Order, order_id)
        items = check.execute(
            select(func.count(OrderItem.id)).where(OrderItem.order_id == order_id)
        ).scalar_one()
    finally:
        check.close()

    if order.status == "Cancelled":
        assert items == 0
        assert isinstance(outcomes["add"], InvalidState)
    else:
        assert order.status == "Ordering"
        assert items == 1
        assert outcomes["remove"].order_cancelled is False
