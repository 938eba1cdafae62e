from datetime import datetime, timezone
from typing import Any, Dict, List

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo import ReturnDocument
from pymongo.database import Database

from database import get_db, serialize_doc, to_object_id
from errors import NotFound, ValidationError
from schemas import CartItem
from security import AuthContext, get_current_user

router = APIRouter(prefix="/api/cart", tags=["Cart"])


class CartItemInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: str
    size: float
    quantity: int = 1


class CartItemRef(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: str
    size: float


def _load_or_create(db: Database, user_oid: ObjectId) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    return db["cart"].find_one_and_update(
        {"user": user_oid},
        {"$setOnInsert": {"items": [], "createdAt": now, "updatedAt": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def _populated(db: Database, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach current product details to each cart line."""
    out = []
    for it in items:
        prod = db["product"].find_one({"_id": it["product"]})
        out.append({**serialize_doc(it), "product": serialize_doc(prod) if prod else None})
    return out


def _save(db: Database, cart: Dict[str, Any], items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    db["cart"].update_one(
        {"_id": cart["_id"]},
        {"$set": {"items": items, "updatedAt": datetime.now(timezone.utc)}},
    )
    return _populated(db, items)


def _same_line(item: Dict[str, Any], product_oid: ObjectId, size: float) -> bool:
    return item["product"] == product_oid and item.get("size") == size


@router.get("")
def get_cart(current_user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = _load_or_create(db, ObjectId(current_user.user_id))
    return {"success": True, "data": _populated(db, cart.get("items", []))}


@router.post("/add")
def add_to_cart(
    item: CartItemInput,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if item.quantity < 1:
        raise ValidationError("quantity must be at least 1")
    product_oid = to_object_id(item.product_id)
    prod = db["product"].find_one({"_id": product_oid}) if product_oid is not None else None
    if not prod:
        raise NotFound("Product not found")

    cart = _load_or_create(db, ObjectId(current_user.user_id))
    items = cart.get("items", [])
    for it in items:
        if _same_line(it, product_oid, item.size):
            it["quantity"] = int(it.get("quantity", 1)) + item.quantity
            break
    else:
        items.append(CartItem(product=product_oid, size=item.size, quantity=item.quantity).model_dump(by_alias=True))
    return {"success": True, "data": _save(db, cart, items)}


@router.put("/update")
def update_cart_item(
    item: CartItemInput,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    cart = db["cart"].find_one({"user": ObjectId(current_user.user_id)})
    if not cart:
        raise NotFound("Cart not found")
    product_oid = to_object_id(item.product_id)
    items = []
    for it in cart.get("items", []):
        if _same_line(it, product_oid, item.size):
            if item.quantity <= 0:
                continue
            it["quantity"] = item.quantity
        items.append(it)
    return {"success": True, "data": _save(db, cart, items)}


@router.delete("/remove")
def remove_cart_item(
    item: CartItemRef,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    cart = db["cart"].find_one({"user": ObjectId(current_user.user_id)})
    if not cart:
        raise NotFound("Cart not found")
    product_oid = to_object_id(item.product_id)
    items = [it for it in cart.get("items", []) if not _same_line(it, product_oid, item.size)]
    return {"success": True, "data": _save(db, cart, items)}


@router.delete("/clear")
def clear_cart(current_user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    db["cart"].update_one(
        {"user": ObjectId(current_user.user_id)},
        {"$set": {"items": [], "updatedAt": datetime.now(timezone.utc)}},
    )
    return {"success": True, "data": []}
