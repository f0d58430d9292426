"""Seeding script: inserts missing rows only."""

from sqlalchemy import select, func

from cafepos.db.dependencies import verify_password
from cafepos.db.models import Table, Category, Product, User
from scripts.seed_data import seed_data, load_seed_json, DEFAULT_DATA

SAMPLE = {
    "tables": [{"name": "Bar 1", "seatingCapacity": 2}, {"name": "Patio", "seatingCapacity": 8}],
    "categories": {
        "Tea": [{"name": "Green Tea", "price": 18000}],
        "Juice": [{"name": "Orange Juice", "price": 22500.5, "imageUrl": "https://img.example/oj.png"}],
    },
}


def _count(session, model):
    return session.execute(select(func.count()).select_from(model)).scalar()


def test_seed_creates_rows_with_cent_prices(session):
    stats = seed_data(session, SAMPLE, manager_username="boss", manager_password="pw12345")
    assert stats == {"users": 1, "tables": 2, "categories": 2, "products": 2}

    juice = session.execute(select(Product).where(Product.name == "Orange Juice")).scalar_one()
    assert juice.price == 2250050
    assert juice.description == "https://img.example/oj.png"

    boss = session.execute(select(User).where(User.username == "boss")).scalar_one()
    assert boss.role == "Manager"
    assert verify_password("pw12345", boss.password_hash)


def test_seed_is_idempotent(session):
    seed_data(session, SAMPLE, manager_username="boss", manager_password="pw12345")
    stats = seed_data(session, SAMPLE, manager_username="boss", manager_password="pw12345")
    assert stats == {"users": 0, "tables": 0, "categories": 0, "products": 0}
    assert _count(session, Table) == 2
    assert _count(session, Product) == 2


def test_seed_without_password_skips_manager(session):
    stats = seed_data(session, {"tables": [], "categories": {}})
    assert stats["users"] == 0
    assert _count(session, User) == 0


def test_seed_reuses_existing_category(session):
    session.add(Category(name="Tea"))
    session.commit()
    stats = seed_data(session, SAMPLE)
    assert stats["categories"] == 1
    assert _count(session, Category) == 2


def test_default_data_seeds(session):
    stats = seed_data(session, DEFAULT_DATA)
    assert stats["tables"] == 8
    assert stats["categories"] == 3
    assert stats["products"] == 7


def test_load_seed_json(tmp_path):
    path = tmp_path / "seed.json"
    path.write_text('{"tables": [{"name": "T"}], "categories": {}}', encoding="utf-8")
    assert load_seed_json(str(path))["tables"] == [{"name": "T"}]
