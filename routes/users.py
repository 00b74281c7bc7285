from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

import schemas
from database import get_db
from repositories import UserRepository
from responses import envelope
from security import get_current_user, user_profile

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/profile")
def get_profile(user: Dict[str, Any] = Depends(get_current_user)):
    return envelope({"user": user_profile(user)})


@router.put("/profile")
def update_profile(
    body: schemas.ProfileUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    changes = body.model_dump(include={"name", "bio", "avatar"}, exclude_none=True)
    updated = UserRepository(db).update(str(user["_id"]), changes) if changes else user
    return envelope({"user": user_profile(updated)}, message="Profile updated successfully")
