from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo.database import Database

from database import get_db
from errors import ValidationError
from security import AuthContext, get_current_user, hash_password, verify_password
from users import get_user, order_stats, public_user

router = APIRouter(prefix="/api/profile", tags=["Profile"])


class CamelInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfileUpdate(CamelInput):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class PasswordChange(CamelInput):
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class AccountDelete(CamelInput):
    password: Optional[str] = None


@router.get("")
def get_profile(current_user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    user = get_user(db, current_user.user_id)
    stats = order_stats(db, user)
    return {
        "success": True,
        "data": {
            "user": public_user(user),
            "stats": {
                "totalOrders": stats["totalOrders"],
                "totalSpent": stats["totalSpent"],
                "memberSince": user.get("createdAt"),
            },
        },
    }


@router.put("")
def update_profile(
    payload: ProfileUpdate,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    user = get_user(db, current_user.user_id)
    changes = payload.model_dump(exclude_unset=True, by_alias=True)
    # an empty name would leave the account nameless
    if not changes.get("name"):
        changes.pop("name", None)
    changes["updatedAt"] = datetime.now(timezone.utc)
    db["user"].update_one({"_id": user["_id"]}, {"$set": changes})
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": public_user(db["user"].find_one({"_id": user["_id"]})),
    }


@router.put("/change-password")
def change_password(
    payload: PasswordChange,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.current_password or not payload.new_password or not payload.confirm_password:
        raise ValidationError("Please provide all required fields")
    if payload.new_password != payload.confirm_password:
        raise ValidationError("New passwords do not match")
    if len(payload.new_password) < 6:
        raise ValidationError("Password must be at least 6 characters")

    user = get_user(db, current_user.user_id)
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise ValidationError("Current password is incorrect")

    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(payload.new_password), "updatedAt": datetime.now(timezone.utc)}},
    )
    return {"success": True, "message": "Password changed successfully"}


@router.delete("")
def delete_account(
    payload: AccountDelete,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.password:
        raise ValidationError("Please provide your password to confirm")
    user = get_user(db, current_user.user_id)
    if not verify_password(payload.password, user.get("password_hash", "")):
        raise ValidationError("Incorrect password")

    # orders are kept for bookkeeping
    db["cart"].delete_one({"user": user["_id"]})
    db["user"].delete_one({"_id": user["_id"]})
    return {"success": True, "message": "Account deleted successfully"}
