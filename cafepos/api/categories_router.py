"""Category management with soft delete."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from cafepos.api.schemas import CamelModel, MessageResponse
from cafepos.db.models import Category, Product, User
from cafepos.db.dependencies import get_sqlalchemy_session, require_any_role, require_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryResponse(CamelModel):
    id: int
    category_name: str
    is_available: bool


class CategoryCreateResponse(CategoryResponse):
    restored: bool = False


class CategoryRequest(CamelModel):
    category_name: str


def _to_response(category: Category) -> CategoryResponse:
    return CategoryResponse(id=category.id, category_name=category.name, is_available=category.available)


def _clean_name(request: CategoryRequest) -> str:
    name = (request.category_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Category name is required")
    return name


def _get_category(session: Session, category_id: int, available: bool = True) -> Category:
    category = session.get(Category, category_id)
    if category is None or category.available != available:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get("", response_model=list[CategoryResponse], summary="List categories")
async def list_categories(
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    categories = session.execute(
        select(Category).where(Category.available.is_(True)).order_by(Category.name)
    ).scalars().all()
    return [_to_response(c) for c in categories]


@router.get("/deleted", response_model=list[CategoryResponse], summary="List deleted categories")
async def list_deleted_categories(
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    categories = session.execute(
        select(Category).where(Category.available.is_(False)).order_by(Category.name)
    ).scalars().all()
    return [_to_response(c) for c in categories]


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    user: User = Depends(require_any_role),
):
    return _to_response(_get_category(session, category_id))


@router.post("", response_model=CategoryCreateResponse, status_code=201, summary="Create category")
async def create_category(
    request: CategoryRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    """Create a category; a deleted category with the same name is restored instead."""
    name = _clean_name(request)
    existing = session.execute(select(Category).where(Category.name == name)).scalar_one_or_none()
    if existing is not None:
        if existing.available:
            raise HTTPException(status_code=409, detail="Category name already exists")
        existing.available = True
        session.commit()
        logger.info("Category %s restored on create", name)
        return CategoryCreateResponse(id=existing.id, category_name=existing.name, is_available=True, restored=True)

    category = Category(name=name, available=True)
    session.add(category)
    session.commit()
    return CategoryCreateResponse(id=category.id, category_name=category.name, is_available=True)


@router.put("/{category_id}", response_model=CategoryResponse, summary="Rename category")
async def update_category(
    category_id: int,
    request: CategoryRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    category = _get_category(session, category_id)
    name = _clean_name(request)
    clash = session.execute(
        select(Category.id).where(Category.name == name).where(Category.id != category_id)
    ).first()
    if clash is not None:
        raise HTTPException(status_code=409, detail="Category name already exists")

    category.name = name
    session.commit()
    return _to_response(category)


@router.delete("/{category_id}", response_model=MessageResponse, summary="Soft-delete category")
async def delete_category(
    category_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    category = _get_category(session, category_id)
    active_products = session.execute(
        select(Product.id).where(Product.category_id == category_id).where(Product.available.is_(True))
    ).first()
    if active_products is not None:
        raise HTTPException(status_code=409, detail="Cannot delete category with active products")

    category.available = False
    session.commit()
    logger.info("Category %s soft-deleted", category_id)
    return MessageResponse(message="Category deleted successfully")


@router.put("/{category_id}/restore", response_model=CategoryResponse, summary="Restore category")
async def restore_category(
    category_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    category = _get_category(session, category_id, available=False)
    category.available = True
    session.commit()
    return _to_response(category)
