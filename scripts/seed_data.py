"""
Seed a manager account, tables, categories and products.

Seeding is idempotent: rows are matched by name (username for users) and
only missing ones are created. Existing rows are left untouched.

Usage:
    python -m scripts.seed_data [--data-file path/to/seed.json] [--manager-password secret]

Environment:
    APP_DATABASE_URL: Database connection (default: sqlite:///cafepos.db)

The JSON file has the shape::

    {
      "tables": [{"name": "Table 1", "seatingCapacity": 4}],
      "categories": {"Coffee": [{"name": "Espresso", "price": 25000}]}
    }
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict, Any, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker, Session

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_DATA: Dict[str, Any] = {
    "tables": [
        {"name": f"Table {n}", "seatingCapacity": 4 if n <= 6 else 6} for n in range(1, 9)
    ],
    "categories": {
        "Coffee": [
            {"name": "Espresso", "price": 25000},
            {"name": "Cappuccino", "price": 35000},
            {"name": "Iced Milk Coffee", "price": 30000},
        ],
        "Beer": [
            {"name": "Draft Beer", "price": 20000},
            {"name": "Craft IPA", "price": 65000},
        ],
        "Snacks": [
            {"name": "Roasted Peanuts", "price": 15000},
            {"name": "French Fries", "price": 40000},
        ],
    },
}


def load_seed_json(data_file: str) -> Dict[str, Any]:
    if not os.path.exists(data_file):
        raise FileNotFoundError(f"Seed file not found: {data_file}")
    with open(data_file, 'r', encoding='utf-8') as f:
        data = json.load(f)
    logger.info("Loaded seed data from %s", data_file)
    return data


def seed_data(
    session: Session,
    data: Dict[str, Any],
    manager_username: str = "admin",
    manager_password: Optional[str] = None,
) -> Dict[str, int]:
    """
    Insert missing seed rows.

    Args:
        session: SQLAlchemy session
        data: dict with "tables" and "categories" (see module docstring)
        manager_username: username of the bootstrap manager
        manager_password: password for the manager; no manager is created when None

    Returns:
        Counts of created rows: users, tables, categories, products
    """
    from cafepos.db.dependencies import hash_password, ROLE_MANAGER
    from cafepos.db.models import Table, Category, Product, User
    from cafepos.utils.money import to_cents

    stats = {"users": 0, "tables": 0, "categories": 0, "products": 0}

    if manager_password:
        exists = session.execute(select(User).where(User.username == manager_username)).scalar_one_or_none()
        if exists is None:
            session.add(User(
                username=manager_username,
                password_hash=hash_password(manager_password),
                full_name="Manager",
                role=ROLE_MANAGER,
            ))
            stats["users"] += 1

    for entry in data.get("tables", []):
        if session.execute(select(Table).where(Table.name == entry["name"])).scalar_one_or_none() is None:
            session.add(Table(
                name=entry["name"],
                seating_capacity=int(entry.get("seatingCapacity", 4)),
                description=entry.get("description"),
            ))
            stats["tables"] += 1

    for category_name, products in data.get("categories", {}).items():
        category = session.execute(
            select(Category).where(Category.name == category_name)
        ).scalar_one_or_none()
        if category is None:
            category = Category(name=category_name, available=True)
            session.add(category)
            session.flush()
            stats["categories"] += 1

        for entry in products:
            exists = session.execute(
                select(Product)
                .where(Product.name == entry["name"])
                .where(Product.category_id == category.id)
            ).scalar_one_or_none()
            if exists is None:
                session.add(Product(
                    name=entry["name"],
                    price=to_cents(entry["price"]),
                    category_id=category.id,
                    description=entry.get("imageUrl"),
                    available=True,
                ))
                stats["products"] += 1

    session.commit()
    logger.info("Seed complete: %s", stats)
    return stats


def main():
    parser = argparse.ArgumentParser(description='Seed CafePOS reference data')
    parser.add_argument('--data-file', help='Path to seed JSON (default: built-in sample data)', default=None)
    parser.add_argument('--manager-username', default='admin')
    parser.add_argument(
        '--manager-password',
        help='Create the manager account with this password (skipped when omitted)',
        default=os.getenv('SEED_MANAGER_PASSWORD'),
    )
    parser.add_argument(
        '--database-url',
        help='Database URL (default: env var APP_DATABASE_URL or sqlite:///cafepos.db)',
        default=None
    )
    args = parser.parse_args()

    try:
        data = load_seed_json(args.data_file) if args.data_file else DEFAULT_DATA
    except (OSError, ValueError) as e:
        logger.error("Failed to load seed data: %s", e)
        return 1

    db_url = args.database_url or os.getenv('APP_DATABASE_URL', 'sqlite:///cafepos.db')
    logger.info("Using database: %s", db_url)

    from cafepos.db import init_db
    engine = create_engine(db_url)
    init_db(engine, use_alembic=False)

    session = sessionmaker(bind=engine)()
    try:
        stats = seed_data(session, data, args.manager_username, args.manager_password)
        print("\n" + "=" * 60)
        print("SEED RESULTS")
        print("=" * 60)
        for key, value in stats.items():
            print(f"{key.capitalize():<12} created: {value}")
        print("=" * 60 + "\n")
        return 0
    except Exception as e:
        logger.error("Seeding failed: %s", e, exc_info=True)
        session.rollback()
        return 1
    finally:
        session.close()
        engine.dispose()


if __name__ == '__main__':
    sys.exit(main())
