"""Storage layer for CafePOS."""

from .sqlalchemy_adapter import SQLAlchemyStorage

__all__ = ["SQLAlchemyStorage"]
