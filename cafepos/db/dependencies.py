"""FastAPI dependencies for database session injection and auth."""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from cafepos.db.models import User
from cafepos.storage import SQLAlchemyStorage

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("APP_DATABASE_URL", "sqlite:///cafepos.db")

ROLE_STAFF = "Staff"
ROLE_CASHIER = "Cashier"
ROLE_MANAGER = "Manager"
VALID_ROLES = (ROLE_STAFF, ROLE_CASHIER, ROLE_MANAGER)


def get_storage(request: Request) -> SQLAlchemyStorage:
    """Return the app's storage, creating it from APP_DATABASE_URL on first use."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        storage = SQLAlchemyStorage(DATABASE_URL)
        request.app.state.storage = storage
    return storage


def get_sqlalchemy_session(request: Request):
    """
    FastAPI dependency yielding a SQLAlchemy session.

    The session is rolled back if the handler raised, and always closed.
    """
    session = get_storage(request)._get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------- Auth helpers ----------

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def hash_password(password: str) -> str:
    """Hash a plain text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def token_for_user(user: User) -> str:
    """Issue a token carrying the claims the clients read."""
    return create_access_token(
        data={
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
            "full_name": user.full_name,
        }
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_sqlalchemy_session),
) -> User:
    """Get the current (available) user from the bearer token."""
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"}
    )

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        user_id = int(user_id)
    except (JWTError, ValueError):
        raise credentials_exception

    user = session.get(User, user_id)
    if user is None or not user.available:
        raise HTTPException(
            status_code=401,
            detail="User not found or deactivated",
            headers={"WWW-Authenticate": "Bearer"}
        )
    if user.role not in VALID_ROLES:
        raise HTTPException(status_code=401, detail="Invalid user role")
    return user


def require_roles(*roles: str):
    """Build a dependency that lets only ``roles`` through."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning("User %s (%s) denied, needs one of %s", current_user.username, current_user.role, roles)
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required roles: {', '.join(roles)}"
            )
        return current_user

    return dependency


require_any_role = require_roles(ROLE_STAFF, ROLE_CASHIER, ROLE_MANAGER)
require_cashier_or_manager = require_roles(ROLE_CASHIER, ROLE_MANAGER)
require_manager = require_roles(ROLE_MANAGER)
