"""Product catalog with soft delete."""

import logging
import math
from typing import Any, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from cafepos.api.schemas import CamelModel, MessageResponse
from cafepos.db.models import Category, Product, User
from cafepos.db.dependencies import get_sqlalchemy_session, require_any_role, require_manager
from cafepos.utils.money import MAX_AMOUNT, to_cents, from_cents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductResponse(CamelModel):
    id: int
    product_name: str
    unit_price: float
    category_id: int
    category_name: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool


class ProductRequest(CamelModel):
    product_name: str
    category_id: Any
    unit_price: Any
    image_url: Optional[str] = None


def _to_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        product_name=product.name,
        unit_price=from_cents(product.price),
        category_id=product.category_id,
        category_name=product.category.name if product.category else None,
        image_url=product.description,
        is_available=product.available,
    )


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _validate(session: Session, request: ProductRequest) -> dict:
    name = (request.product_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Product name is required")

    category_id = request.category_id
    if isinstance(category_id, bool) or not isinstance(category_id, int) or category_id <= 0:
        raise HTTPException(status_code=400, detail="categoryId must be a positive integer")
    category = session.get(Category, category_id)
    if category is None or not category.available:
        raise HTTPException(status_code=400, detail="Category not found or unavailable")

    price = request.unit_price
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise HTTPException(status_code=400, detail="Price must be a non-negative number")
    if (isinstance(price, float) and not math.isfinite(price)) or price < 0:
        raise HTTPException(status_code=400, detail="Price must be a non-negative number")
    if price > MAX_AMOUNT:
        raise HTTPException(status_code=400, detail=f"Price must not exceed {MAX_AMOUNT}")

    image_url = (request.image_url or "").strip() or None
    if image_url is not None and not _is_url(image_url):
        raise HTTPException(status_code=400, detail="imageUrl must be a valid http(s) URL")

    return {"name": name, "category_id": category_id, "price": to_cents(price), "description": image_url}


def _get_product(session: Session, product_id: int, available: bool = True) -> Product:
    product = session.get(Product, product_id)
    if product is None or product.available != available:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("", response_model=list[ProductResponse], summary="List available products")
async def list_products(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    stmt = (
        select(Product)
        .options(joinedload(Product.category))
        .where(Product.available.is_(True))
        .order_by(Product.name)
    )
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    return [_to_response(p) for p in session.execute(stmt).scalars().all()]


@router.get("/deleted", response_model=list[ProductResponse], summary="List deleted products")
async def list_deleted_products(
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    products = session.execute(
        select(Product).options(joinedload(Product.category))
        .where(Product.available.is_(False)).order_by(Product.name)
    ).scalars().all()
    return [_to_response(p) for p in products]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return _to_response(_get_product(session, product_id))


@router.post("", response_model=ProductResponse, status_code=201, summary="Create product")
async def create_product(
    request: ProductRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    product = Product(available=True, **_validate(session, request))
    session.add(product)
    session.commit()
    logger.info("Product %s created at %s cents", product.name, product.price)
    return _to_response(product)


@router.put("/{product_id}", response_model=ProductResponse, summary="Update product")
async def update_product(
    product_id: int,
    request: ProductRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    product = _get_product(session, product_id)
    for field, value in _validate(session, request).items():
        setattr(product, field, value)
    session.commit()
    # Existing order lines keep the price captured when they were added
    return _to_response(product)


@router.delete("/{product_id}", response_model=MessageResponse, summary="Soft-delete product")
async def delete_product(
    product_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    product = _get_product(session, product_id)
    product.available = False
    session.commit()
    logger.info("Product %s soft-deleted", product_id)
    return MessageResponse(message="Product deleted successfully")


@router.put("/{product_id}/restore", response_model=ProductResponse, summary="Restore product")
async def restore_product(
    product_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    product = _get_product(session, product_id, available=False)
    if not product.category.available:
        raise HTTPException(status_code=400, detail="Restore the product's category first")
    product.available = True
    session.commit()
    return _to_response(product)
