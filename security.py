"""
Token issuance, password hashing and the auth dependencies used by routes.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import get_db, to_object_id
from errors import ForbiddenError, NotFoundError, UnauthorizedError
from schemas import ADMIN_ROLES

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{config.API_PREFIX}/auth/admin-login", auto_error=False)


# ------------------------
# Utils
# ------------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_user_id(token: str) -> str:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise UnauthorizedError()
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError()
    return user_id


def _load_user(db: Database, token: str) -> Dict[str, Any]:
    user_id = decode_user_id(token)
    try:
        user = db["user"].find_one({"_id": to_object_id(user_id, "User")})
    except NotFoundError:
        user = None
    if user is None:
        raise UnauthorizedError()
    return user


def user_profile(user: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a user document; never includes credentials."""
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "phone": user.get("phone"),
        "email": user.get("email"),
        "avatar": user.get("avatar"),
        "bio": user.get("bio"),
        "role": user.get("role", "user"),
        "is_verified": user.get("is_verified", False),
    }


def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    return bool(user) and user.get("role") in ADMIN_ROLES


def ensure_owner(owner_id: Optional[str], user: Dict[str, Any], action: str, allow_admin: bool = True) -> None:
    if owner_id == str(user["_id"]):
        return
    if allow_admin and is_admin(user):
        return
    raise ForbiddenError(f"Not authorized to {action}")


# ------------------------
# Dependencies
# ------------------------
def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    if not token:
        raise UnauthorizedError("Access denied. No token provided.")
    return _load_user(db, token)


def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        return _load_user(db, token)
    except UnauthorizedError:
        # Public endpoints still answer when the token is stale
        return None


def get_current_user_id(user: Dict[str, Any] = Depends(get_current_user)) -> str:
    return str(user["_id"])


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not is_admin(user):
        raise ForbiddenError("Access denied. Admin privileges required.")
    return user


def require_superadmin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "superadmin":
        raise ForbiddenError("Access denied. Super admin privileges required.")
    return user
