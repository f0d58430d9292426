"""Staff account management (Manager only)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from cafepos.api.schemas import CamelModel, MessageResponse
from cafepos.db.models import User
from cafepos.db.dependencies import get_sqlalchemy_session, require_manager, hash_password, VALID_ROLES
from cafepos.utils.time_utils import isoformat_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

MIN_PASSWORD_LENGTH = 6


class UserResponse(CamelModel):
    id: int
    username: str
    full_name: str
    role: str
    is_available: bool
    created_at: str


class CreateUserRequest(CamelModel):
    username: str
    password: str
    full_name: str
    role: str


class UpdateUserRequest(CamelModel):
    password: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[str] = None
    is_available: Optional[bool] = None


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        role=user.role,
        is_available=user.available,
        created_at=isoformat_local(user.created_at),
    )


def _validate_role(role: str) -> str:
    if role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail=f"Role must be one of: {', '.join(VALID_ROLES)}")
    return role


def _validate_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return password


def _get_user(session: Session, user_id: int, available: bool = True) -> User:
    user = session.get(User, user_id)
    if user is None or user.available != available:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=list[UserResponse], summary="List active users")
async def list_users(
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    users = session.execute(
        select(User).where(User.available.is_(True)).order_by(User.username)
    ).scalars().all()
    return [_to_response(user) for user in users]


@router.get("/deleted", response_model=list[UserResponse], summary="List deactivated users")
async def list_deleted_users(
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    users = session.execute(
        select(User).where(User.available.is_(False)).order_by(User.username)
    ).scalars().all()
    return [_to_response(user) for user in users]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    return _to_response(_get_user(session, user_id))


@router.post("", response_model=UserResponse, status_code=201, summary="Create user")
async def create_user(
    request: CreateUserRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    username = request.username.strip()
    full_name = request.full_name.strip()
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")
    if not full_name:
        raise HTTPException(status_code=400, detail="Full name is required")
    _validate_password(request.password)
    _validate_role(request.role)

    # Deactivated accounts still own their username
    if session.execute(select(User).where(User.username == username)).scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(request.password),
        full_name=full_name,
        role=request.role,
    )
    session.add(user)
    session.commit()
    logger.info("User %s created by %s", user.username, manager.username)
    return _to_response(user)


@router.put("/{user_id}", response_model=UserResponse, summary="Update user")
async def update_user(
    user_id: int,
    request: UpdateUserRequest,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    user = session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    is_self = user.id == manager.id
    if is_self and request.is_available is False:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    if is_self and request.role is not None and request.role != user.role:
        raise HTTPException(status_code=400, detail="You cannot change your own role")

    if request.password is not None:
        user.password_hash = hash_password(_validate_password(request.password))
    if request.full_name is not None:
        if not request.full_name.strip():
            raise HTTPException(status_code=400, detail="Full name cannot be empty")
        user.full_name = request.full_name.strip()
    if request.role is not None:
        user.role = _validate_role(request.role)
    if request.is_available is not None:
        user.available = request.is_available

    session.commit()
    return _to_response(user)


@router.delete("/{user_id}", response_model=MessageResponse, summary="Deactivate user")
async def delete_user(
    user_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    if user_id == manager.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = _get_user(session, user_id)
    user.available = False
    session.commit()
    logger.info("User %s deactivated by %s", user.username, manager.username)
    return MessageResponse(message="User deleted successfully")


@router.put("/{user_id}/restore", response_model=UserResponse, summary="Reactivate user")
async def restore_user(
    user_id: int,
    session: Session = Depends(get_sqlalchemy_session),
    manager: User = Depends(require_manager),
):
    user = _get_user(session, user_id, available=False)
    user.available = True
    session.commit()
    return _to_response(user)
