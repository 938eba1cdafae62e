from typing import Any, Dict

from pymongo.database import Database

from database import serialize_doc, to_object_id
from errors import NotFound


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(user)
    # Never send password hash
    user.pop("password_hash", None)
    return user


def get_user(db: Database, user_id: str) -> Dict[str, Any]:
    oid = to_object_id(user_id)
    user = db["user"].find_one({"_id": oid}) if oid is not None else None
    if not user:
        raise NotFound("User not found")
    return user


def order_stats(db: Database, user: Dict[str, Any]) -> Dict[str, Any]:
    orders = list(db["order"].find({"user": user["_id"]}).sort("createdAt", 1))
    return {
        "totalOrders": len(orders),
        "totalSpent": round(sum(o.get("pricing", {}).get("total", 0) for o in orders), 2),
        "lastOrderDate": orders[-1].get("createdAt") if orders else None,
    }
