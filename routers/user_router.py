from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db
from errors import NotFound, ValidationError
from schemas import Role
from security import AuthContext, get_current_admin
from users import get_user, order_stats, public_user

router = APIRouter(prefix="/api/admin/users", tags=["Admin users"])


class RoleUpdate(BaseModel):
    role: str


@router.get("")
def list_users(admin: AuthContext = Depends(get_current_admin), db: Database = Depends(get_db)):
    users = db["user"].find({}, {"password_hash": 0}).sort("createdAt", -1)
    return {"success": True, "data": [public_user(u) for u in users]}


@router.get("/{user_id}")
def get_user_by_id(user_id: str, admin: AuthContext = Depends(get_current_admin), db: Database = Depends(get_db)):
    return {"success": True, "data": public_user(get_user(db, user_id))}


@router.patch("/{user_id}/role")
def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    admin: AuthContext = Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    if payload.role not in {r.value for r in Role}:
        raise ValidationError('Invalid role. Must be "user" or "admin"')
    # Prevent demoting yourself
    if user_id == admin.user_id:
        raise ValidationError("You cannot change your own role")

    user = get_user(db, user_id)
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": {"role": payload.role, "updatedAt": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("User not found")
    return {"success": True, "message": f"User role updated to {payload.role}", "data": public_user(updated)}


@router.delete("/{user_id}")
def delete_user(user_id: str, admin: AuthContext = Depends(get_current_admin), db: Database = Depends(get_db)):
    if user_id == admin.user_id:
        raise ValidationError("You cannot delete your own account")
    user = get_user(db, user_id)
    db["user"].delete_one({"_id": user["_id"]})
    db["order"].delete_many({"user": user["_id"]})
    db["cart"].delete_one({"user": user["_id"]})
    return {"success": True, "message": "User deleted successfully"}


@router.get("/{user_id}/stats")
def user_stats(user_id: str, admin: AuthContext = Depends(get_current_admin), db: Database = Depends(get_db)):
    user = get_user(db, user_id)
    stats = order_stats(db, user)
    created = user.get("createdAt")
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    stats["accountAge"] = (datetime.now(timezone.utc) - created).days if created else 0
    return {"success": True, "data": {"user": public_user(user), "stats": stats}}
