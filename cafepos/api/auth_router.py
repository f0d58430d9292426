"""Auth endpoints for login, token verification and bootstrap signup."""

import logging
import os

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cafepos.api.schemas import CamelModel
from cafepos.db.models import User
from cafepos.db.dependencies import (
    get_sqlalchemy_session,
    get_current_user,
    hash_password,
    verify_password,
    token_for_user,
    VALID_ROLES,
)
from cafepos.utils.time_utils import iso_local, isoformat_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(CamelModel):
    username: str
    password: str


class AuthUser(CamelModel):
    id: int
    username: str
    full_name: str
    role: str
    created_at: str


class TokenResponse(CamelModel):
    access_token: str
    token_type: str
    user: AuthUser


class SignupRequest(CamelModel):
    username: str
    password: str
    full_name: str
    role: str = "Manager"


class VerifyResponse(CamelModel):
    id: int
    username: str
    full_name: str
    role: str
    verified_at: str


def _auth_user(user: User) -> AuthUser:
    return AuthUser(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        role=user.role,
        created_at=isoformat_local(user.created_at),
    )


@router.post("/signup", response_model=AuthUser, status_code=201, summary="Create a user (dev/bootstrap)")
async def signup_user(request: SignupRequest, session: Session = Depends(get_sqlalchemy_session)):
    """
    Create a user for dev/bootstrap.

    Allowed when ENVIRONMENT=dev or when no users exist yet.
    """
    allow_dev = os.getenv("ENVIRONMENT", "dev").lower() == "dev"
    existing_users = session.execute(select(func.count(User.id))).scalar_one()
    if not allow_dev and existing_users > 0:
        raise HTTPException(status_code=403, detail="Signup disabled")

    username = request.username.strip()
    if not username or not request.password or not request.full_name.strip():
        raise HTTPException(status_code=400, detail="username, password and fullName are required")
    if len(request.password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
    if request.role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail=f"Role must be one of: {', '.join(VALID_ROLES)}")

    if session.execute(select(User).where(User.username == username)).scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(request.password),
        full_name=request.full_name.strip(),
        role=request.role,
    )
    session.add(user)
    session.commit()
    logger.info("Bootstrap user %s created with role %s", user.username, user.role)
    return _auth_user(user)


@router.post("/login", response_model=TokenResponse, summary="Login and get JWT token")
async def login_user(request: LoginRequest, session: Session = Depends(get_sqlalchemy_session)):
    """Authenticate a user and return a JWT access token."""
    user = session.execute(
        select(User).where(User.username == request.username.strip())
    ).scalar_one_or_none()
    if not user or not user.available or not verify_password(request.password, user.password_hash):
        logger.warning("Failed login for %s", request.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return TokenResponse(access_token=token_for_user(user), token_type="bearer", user=_auth_user(user))


@router.get("/verify", response_model=VerifyResponse, summary="Check a bearer token")
async def verify_token(current_user: User = Depends(get_current_user)):
    return VerifyResponse(
        id=current_user.id,
        username=current_user.username,
        full_name=current_user.full_name,
        role=current_user.role,
        verified_at=iso_local(),
    )
