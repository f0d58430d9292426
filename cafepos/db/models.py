"""
Canonical relational database models for CafePOS.

These models represent the full relational schema and are used by Alembic
for migration generation. Money columns hold integer cents.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import declarative_base, relationship

from cafepos.utils.time_utils import now_local_naive

Base = declarative_base()

# Partial index predicate: one open tab per table. Only dialects with filtered
# indexes (SQLite, PostgreSQL, SQL Server) are supported.
OPEN_ORDER_PREDICATE = "status = 'Ordering'"


class Table(Base):
    """A physical seating unit."""

    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    seating_capacity = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)

    # Relationships
    orders = relationship("Order", back_populates="table")

    def __repr__(self):
        return f"<Table(id={self.id}, name={self.name})>"


class Category(Base):
    """Product grouping (soft-deleted via available=False)."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    available = Column(Boolean, default=True, nullable=False)

    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category(id={self.id}, name={self.name}, available={self.available})>"


class Product(Base):
    """Sellable item. Soft-deleted so historical order lines stay valid."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)  # Price in cents
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    description = Column(String(255), nullable=True)  # Image URL
    available = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("idx_products_available", "available"),
    )

    category = relationship("Category", back_populates="products")
    order_items = relationship("OrderItem", back_populates="product")

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name}, price={self.price})>"


class User(Base):
    """System users: Staff, Cashier, Manager."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=now_local_naive, nullable=False)

    orders = relationship("Order", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"


class Order(Base):
    """A tab opened for one table."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_date = Column(DateTime, default=now_local_naive, nullable=False)
    status = Column(String(20), default="Ordering", nullable=False)  # Ordering, Paid, Cancelled
    total_amount = Column(Integer, nullable=True)  # Frozen total in cents once Paid

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_order_date", "order_date"),
        Index(
            "uq_orders_open_per_table",
            "table_id",
            unique=True,
            sqlite_where=text(OPEN_ORDER_PREDICATE),
            postgresql_where=text(OPEN_ORDER_PREDICATE),
            mssql_where=text(OPEN_ORDER_PREDICATE),
        ),
    )

    # Relationships
    table = relationship("Table", back_populates="orders")
    user = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    payment = relationship("Payment", back_populates="order", uselist=False)

    def __repr__(self):
        return f"<Order(id={self.id}, table_id={self.table_id}, status={self.status})>"


class OrderItem(Base):
    """One product line within an order."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)  # Cents, captured when the line is created
    notes = Column(String(500), nullable=True)

    # One line per product; repeat adds merge into it
    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_items_order_product"),
    )

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

    @property
    def subtotal(self) -> int:
        return self.quantity * self.unit_price

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"


class Payment(Base):
    """Settlement record that closes an order."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    payment_type = Column(String(20), nullable=False)  # Cash, Card, Banking
    amount = Column(Integer, nullable=False)  # Final amount in cents, after discount
    discount_percentage = Column(Float, default=0, nullable=False)
    payment_date = Column(DateTime, default=now_local_naive, nullable=False, index=True)

    order = relationship("Order", back_populates="payment")

    def __repr__(self):
        return f"<Payment(id={self.id}, order_id={self.order_id}, amount={self.amount})>"
