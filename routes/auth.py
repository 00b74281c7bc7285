"""
Phone/OTP sign-in for readers and password sign-in for admins.

The OTP service is a development stand-in: every phone receives
``OTP_CODE``. Pending codes live in process memory and expire after
``OTP_TTL_MINUTES``.
"""
import logging
from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

import config
import schemas
from database import get_db, utcnow
from errors import NotFoundError, UnauthorizedError, ValidationFailedError
from repositories import UserRepository
from security import create_access_token, decode_user_id, get_current_user, user_profile, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

# phone -> {"otp", "expires_at", "name", "email"}
otp_store: Dict[str, Dict[str, Any]] = {}


def _purge_expired_otps() -> None:
    now = utcnow()
    for phone, pending in list(otp_store.items()):
        if pending["expires_at"] < now:
            otp_store.pop(phone, None)


def _token_for(user: Dict[str, Any]) -> str:
    return create_access_token({"sub": str(user["_id"])})


@router.post("/send-otp")
def send_otp(body: schemas.SendOtpRequest):
    _purge_expired_otps()
    otp_store[body.phone] = {
        "otp": config.OTP_CODE,
        "expires_at": utcnow() + timedelta(minutes=config.OTP_TTL_MINUTES),
        "name": body.name,
        "email": body.email,
    }
    logger.info("OTP issued for %s", body.phone)
    response: Dict[str, Any] = {"success": True, "message": "OTP sent successfully"}
    if config.EXPOSE_OTP:
        response["otp"] = config.OTP_CODE
    return response


@router.post("/verify-otp")
def verify_otp(body: schemas.VerifyOtpRequest, db: Database = Depends(get_db)):
    pending = otp_store.get(body.phone)
    if pending is None or pending["expires_at"] < utcnow():
        raise ValidationFailedError([], message="OTP expired or invalid")
    if pending["otp"] != body.otp:
        raise ValidationFailedError([], message="Invalid OTP")
    del otp_store[body.phone]

    users = UserRepository(db)
    user = users.find_by_phone(body.phone)
    is_new_user = user is None
    if is_new_user:
        user = users.create(
            schemas.User(
                phone=body.phone,
                name=pending["name"] or "User",
                email=pending["email"],
                is_verified=True,
            )
        )
        logger.info("New user created: %s", user["_id"])
    else:
        user = users.update(str(user["_id"]), {"is_verified": True, "last_active": utcnow()})
        logger.info("User logged in: %s", user["_id"])

    return {
        "success": True,
        "message": "Account created successfully" if is_new_user else "Login successful",
        "data": {"user": user_profile(user), "token": _token_for(user), "is_new_user": is_new_user},
    }


@router.post("/refresh-token")
def refresh_token(body: schemas.RefreshTokenRequest, db: Database = Depends(get_db)):
    if not body.refresh_token:
        raise UnauthorizedError("Refresh token required")
    try:
        user = UserRepository(db).get(decode_user_id(body.refresh_token))
    except (UnauthorizedError, NotFoundError):
        raise UnauthorizedError("Invalid refresh token")
    return {"success": True, "data": {"token": _token_for(user)}}


@router.post("/logout")
def logout(user: Dict[str, Any] = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    logger.info("User logged out: %s", user["_id"])
    return {"success": True, "message": "Logged out successfully"}


@router.put("/update-profile")
def update_profile(
    body: schemas.ProfileUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    changes = body.model_dump(include={"name", "email"}, exclude_none=True)
    updated = UserRepository(db).update(str(user["_id"]), changes) if changes else user
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": user_profile(updated)},
    }


@router.post("/admin-login")
def admin_login(body: schemas.AdminLoginRequest, db: Database = Depends(get_db)):
    admin = UserRepository(db).find_admin(body.username)
    if admin is None or not admin.get("password_hash") or not verify_password(body.password, admin["password_hash"]):
        logger.warning("Failed admin login for %s", body.username)
        raise UnauthorizedError("Invalid admin credentials")
    logger.info("Admin logged in: %s", body.username)
    return {
        "success": True,
        "message": "Admin login successful",
        "data": {"user": user_profile(admin), "token": _token_for(admin)},
    }
