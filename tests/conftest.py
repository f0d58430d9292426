import os
import sys
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cafepos.db.dependencies import hash_password, token_for_user
from cafepos.db.models import Table, Category, Product, User
from cafepos.main import app
from cafepos.storage import SQLAlchemyStorage

PASSWORD = "secret123"


@pytest.fixture
def storage(tmp_path):
    """File-backed SQLite storage, one per test."""
    storage = SQLAlchemyStorage(f"sqlite:///{tmp_path / 'cafepos.db'}")
    yield storage
    storage.close()


@pytest.fixture
def session(storage):
    db_session = storage._get_session()
    yield db_session
    db_session.close()


def make_user(session, username, role, available=True):
    user = User(
        username=username,
        password_hash=hash_password(PASSWORD),
        full_name=username.capitalize(),
        role=role,
        available=available,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def seeded(session):
    """Three users, three tables, two categories and a few products (prices in cents)."""
    manager = make_user(session, "manager", "Manager")
    cashier = make_user(session, "cashier", "Cashier")
    staff = make_user(session, "staff", "Staff")

    tables = [Table(name=f"Table {n}", seating_capacity=4) for n in (1, 2, 3)]
    coffee = Category(name="Coffee")
    beer = Category(name="Beer")
    session.add_all(tables + [coffee, beer])
    session.flush()

    espresso = Product(name="Espresso", price=2_500_000, category_id=coffee.id)
    latte = Product(name="Latte", price=3_500_000, category_id=coffee.id)
    lager = Product(name="Lager", price=2_000_000, category_id=beer.id)
    retired = Product(name="Old Brew", price=1_000_000, category_id=beer.id, available=False)
    session.add_all([espresso, latte, lager, retired])
    session.commit()

    return SimpleNamespace(
        manager=manager,
        cashier=cashier,
        staff=staff,
        tables=tables,
        coffee=coffee,
        beer=beer,
        espresso=espresso,
        latte=latte,
        lager=lager,
        retired=retired,
    )


@pytest_asyncio.fixture
async def client(storage):
    """Async HTTP client against the app with this test's storage installed."""
    original_storage = app.state.storage
    app.state.storage = storage
    try:
        async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c
    finally:
        app.state.storage = original_storage


def bearer(user):
    return {"Authorization": f"Bearer {token_for_user(user)}"}


@pytest.fixture
def headers(seeded):
    """Authorization headers per role."""
    return SimpleNamespace(
        manager=bearer(seeded.manager),
        cashier=bearer(seeded.cashier),
        staff=bearer(seeded.staff),
    )
