"""CafePOS backend: tables, catalog, orders, payments and reporting for a cafe/bar."""

__version__ = "1.0.0"
