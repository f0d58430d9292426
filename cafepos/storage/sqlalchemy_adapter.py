"""
SQLAlchemy storage: owns the engine and session factory for the CafePOS schema.
"""

import logging
import os

from sqlalchemy import create_engine, delete, event
from sqlalchemy.orm import sessionmaker, Session

from cafepos.db import init_db
from cafepos.db.models import Base, Table, Category, Product, User, Order, OrderItem, Payment

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class SQLAlchemyStorage:
    """
    SQLAlchemy-backed storage.

    Routers and services never create engines themselves; they take sessions
    from here (see ``cafepos.db.dependencies.get_sqlalchemy_session``).
    """

    def __init__(self, database_url: str = "sqlite:///cafepos.db"):
        """
        Initialize storage and make sure the schema exists.

        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        is_sqlite = database_url.startswith("sqlite")

        self.engine = create_engine(
            self.database_url,
            connect_args={"check_same_thread": False, "timeout": 30} if is_sqlite else {},
            echo=False,
            future=True,
            pool_pre_ping=True,
        )
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        use_alembic = os.getenv("USE_ALEMBIC", "false").lower() == "true"
        init_db(self.engine, use_alembic=use_alembic, base=Base)
        logger.info("Database initialized at %s", self.database_url)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def clear(self) -> None:
        """Delete every row, children first."""
        db_session = self._get_session()
        try:
            with db_session.begin():
                for model in (Payment, OrderItem, Order, Product, Category, Table, User):
                    db_session.execute(delete(model))
        finally:
            db_session.close()

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
