"""Database models and schema bootstrap for CafePOS."""

import logging
import os
from typing import Optional, Any
from sqlalchemy.engine import Engine

from cafepos.db.models import Base

logger = logging.getLogger(__name__)


def init_db(engine: Engine, use_alembic: bool = True, base: Optional[Any] = None) -> None:
    """
    Initialize database schema using Alembic or create_all fallback.

    Args:
        engine: SQLAlchemy engine instance
        use_alembic: If True, run Alembic migrations; else use Base.metadata.create_all()
        base: SQLAlchemy declarative base to use. If None, uses cafepos.db.models.Base.

    Raises:
        RuntimeError: If Alembic migration fails or alembic.ini is not found
    """
    if base is None:
        base = Base

    if use_alembic:
        from alembic.config import Config
        from alembic import command

        # cafepos/db/__init__.py -> project root
        root_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        alembic_ini = os.path.join(root_dir, "alembic.ini")

        if not os.path.exists(alembic_ini):
            raise RuntimeError(f"alembic.ini not found at {alembic_ini}")

        config = Config(alembic_ini)
        try:
            with engine.begin() as connection:
                config.attributes["connection"] = connection
                command.upgrade(config, "head")
        except Exception as e:
            raise RuntimeError(f"Alembic migration failed: {e}") from e
        logger.info("Alembic migrations applied to %s", engine.url)
    else:
        # Creates only missing tables, existing data is preserved
        base.metadata.create_all(engine)
        logger.info("Schema synchronized from %s metadata", base.__name__)


__all__ = ["Base", "init_db"]
