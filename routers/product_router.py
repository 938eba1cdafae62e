import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, serialize_doc, to_object_id
from errors import NotFound, ValidationError
from schemas import Category, Product, SizeStock
from security import AuthContext, get_current_admin

router = APIRouter(prefix="/api/products", tags=["Products"])

SEARCH_FIELDS = ("name", "brand", "category", "description")


def _text_match(term: str) -> Dict[str, Any]:
    pattern = re.escape(term.strip())
    return {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in SEARCH_FIELDS]}


def _product_or_404(db: Database, product_id: str) -> Dict[str, Any]:
    oid = to_object_id(product_id)
    product = db["product"].find_one({"_id": oid}) if oid is not None else None
    if not product:
        raise NotFound("Product not found")
    return product


@router.get("/search")
def search_products(q: Optional[str] = None, limit: int = 10, db: Database = Depends(get_db)):
    if not q or not q.strip():
        return {"success": True, "data": []}
    projection = {"name": 1, "brand": 1, "category": 1, "price": 1, "images": 1, "averageRating": 1}
    docs = list(db["product"].find(_text_match(q), projection).limit(max(limit, 1)))
    return {"success": True, "count": len(docs), "data": serialize_doc(docs)}


@router.get("")
def list_products(
    search: Optional[str] = None,
    brand: Optional[str] = None,
    category: Optional[str] = None,
    minPrice: Optional[float] = None,
    maxPrice: Optional[float] = None,
    size: Optional[float] = None,
    db: Database = Depends(get_db),
):
    conditions: List[Dict[str, Any]] = []
    if search and search.strip():
        conditions.append(_text_match(search))
    if brand:
        conditions.append({"brand": brand})
    if category:
        conditions.append({"category": category})
    price_filter: Dict[str, Any] = {}
    if minPrice is not None:
        price_filter["$gte"] = float(minPrice)
    if maxPrice is not None:
        price_filter["$lte"] = float(maxPrice)
    if price_filter:
        conditions.append({"price": price_filter})
    if size is not None:
        conditions.append({"sizes.size": size})

    query = {"$and": conditions} if conditions else {}
    docs = list(db["product"].find(query))
    return {"success": True, "count": len(docs), "data": serialize_doc(docs)}


@router.get("/featured")
def featured_products(db: Database = Depends(get_db)):
    docs = list(db["product"].find({"featured": True}).limit(6))
    return {"success": True, "data": serialize_doc(docs)}


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(_product_or_404(db, product_id))}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    data: Product,
    admin: AuthContext = Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    # ratings are derived from reviews, never set by hand
    data.average_rating = 0
    data.total_reviews = 0
    new_id = create_document(db, "product", data)
    return {"success": True, "data": serialize_doc(db["product"].find_one({"_id": new_id}))}


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    brand: Optional[str] = None
    category: Optional[Category] = None
    sizes: Optional[List[SizeStock]] = None
    images: Optional[List[str]] = None
    featured: Optional[bool] = None


@router.put("/{product_id}")
def update_product(
    product_id: str,
    data: ProductUpdate,
    admin: AuthContext = Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    product = _product_or_404(db, product_id)
    update_dict = data.model_dump(exclude_unset=True, mode="json")
    if not update_dict:
        raise ValidationError("No fields to update")
    # Re-validate the merged document so size uniqueness and ranges still hold
    merged = {k: v for k, v in product.items() if k != "_id"}
    merged.update(update_dict)
    try:
        Product.model_validate(merged)
    except ValueError as e:
        raise ValidationError(f"Update failed: {e}")
    update_dict["updatedAt"] = datetime.now(timezone.utc)
    updated = db["product"].find_one_and_update(
        {"_id": product["_id"]},
        {"$set": update_dict},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("Product not found")
    return {"success": True, "data": serialize_doc(updated)}


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    admin: AuthContext = Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    oid = to_object_id(product_id)
    res = db["product"].delete_one({"_id": oid}) if oid is not None else None
    if res is None or res.deleted_count == 0:
        raise NotFound("Product not found")
    return {"success": True, "message": "Product deleted successfully"}
