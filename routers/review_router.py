from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, serialize_doc, to_object_id
from errors import Conflict, NotFound, Unauthenticated, Unauthorized, ValidationError
from ratings import recompute_product_rating, toggle_helpful
from schemas import OrderStatus, PaymentStatus, Review
from security import AuthContext, get_current_user, get_optional_auth, owns

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])

PURCHASED_STATES = [OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value]


class ReviewInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: Optional[str] = None
    rating: Optional[int] = None
    title: Optional[str] = Field(None, max_length=100)
    comment: Optional[str] = Field(None, max_length=1000)


def _check_rating(rating: Optional[int]) -> None:
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")


def _with_user_name(db: Database, review: Dict[str, Any]) -> Dict[str, Any]:
    out = serialize_doc(review)
    user = db["user"].find_one({"_id": review["user"]}, {"name": 1})
    out["user"] = {"id": str(review["user"]), "name": user.get("name") if user else None}
    return out


def _own_review(db: Database, review_id: str, auth: AuthContext, action: str) -> Dict[str, Any]:
    oid = to_object_id(review_id)
    review = db["review"].find_one({"_id": oid}) if oid is not None else None
    if not review:
        raise NotFound("Review not found")
    if not owns(auth, review["user"]):
        raise Unauthorized(f"You can only {action} your own reviews")
    return review


@router.get("/product/{product_id}")
def product_reviews(product_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(product_id)
    if oid is None:
        return {"success": True, "data": []}
    docs = db["review"].find({"product": oid}).sort("createdAt", -1)
    return {"success": True, "data": [_with_user_name(db, r) for r in docs]}


@router.get("/can-review/{product_id}")
def can_review(product_id: str, current_user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    product_oid = to_object_id(product_id)
    user_oid = ObjectId(current_user.user_id)
    existing = db["review"].find_one({"product": product_oid, "user": user_oid})
    if existing:
        return {
            "success": True,
            "canReview": False,
            "reason": "already_reviewed",
            "existingReview": serialize_doc(existing),
        }
    purchased = db["order"].find_one({
        "user": user_oid,
        "items.product": product_oid,
        "orderStatus": {"$in": PURCHASED_STATES},
    })
    return {
        "success": True,
        "canReview": purchased is not None,
        "reason": "can_review" if purchased else "no_purchase",
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewInput,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.product_id or not payload.rating or not payload.title or not payload.comment:
        raise ValidationError("Please provide all required fields")
    _check_rating(payload.rating)

    product_oid = to_object_id(payload.product_id)
    if product_oid is None or not db["product"].find_one({"_id": product_oid}, {"_id": 1}):
        raise NotFound("Product not found")

    user_oid = ObjectId(current_user.user_id)
    if db["review"].find_one({"product": product_oid, "user": user_oid}, {"_id": 1}):
        raise Conflict("You have already reviewed this product")

    paid_order = db["order"].find_one({
        "user": user_oid,
        "items.product": product_oid,
        "paymentInfo.paymentStatus": PaymentStatus.PAID.value,
    })
    review = Review(
        product=product_oid,
        user=user_oid,
        order=paid_order["_id"] if paid_order else None,
        rating=payload.rating,
        title=payload.title,
        comment=payload.comment,
        is_verified_purchase=paid_order is not None,
    )
    try:
        review_id = create_document(db, "review", review)
    except DuplicateKeyError:
        raise Conflict("You have already reviewed this product")

    recompute_product_rating(db, product_oid)

    return {
        "success": True,
        "message": "Review created successfully",
        "data": _with_user_name(db, db["review"].find_one({"_id": review_id})),
    }


@router.put("/{review_id}")
def update_review(
    review_id: str,
    payload: ReviewInput,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    review = _own_review(db, review_id, current_user, "edit")
    _check_rating(payload.rating)

    changes: Dict[str, Any] = {}
    if payload.rating:
        changes["rating"] = payload.rating
    if payload.title:
        changes["title"] = payload.title
    if payload.comment:
        changes["comment"] = payload.comment
    changes["updatedAt"] = datetime.now(timezone.utc)

    updated = db["review"].find_one_and_update(
        {"_id": review["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Review not found")
    recompute_product_rating(db, review["product"])

    return {
        "success": True,
        "message": "Review updated successfully",
        "data": _with_user_name(db, updated),
    }


@router.delete("/{review_id}")
def delete_review(
    review_id: str,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    review = _own_review(db, review_id, current_user, "delete")
    db["review"].delete_one({"_id": review["_id"]})
    recompute_product_rating(db, review["product"])
    return {"success": True, "message": "Review deleted successfully"}


@router.patch("/{review_id}/helpful")
def mark_helpful(
    review_id: str,
    auth: Optional[AuthContext] = Depends(get_optional_auth),
    db: Database = Depends(get_db),
):
    if auth is None:
        raise Unauthenticated("Please login to mark reviews as helpful")
    oid = to_object_id(review_id)
    if oid is None:
        raise NotFound("Review not found")
    result = toggle_helpful(db, oid, ObjectId(auth.user_id))
    return {"success": True, "data": result}


@router.get("/{review_id}/helpful-status")
def helpful_status(
    review_id: str,
    auth: Optional[AuthContext] = Depends(get_optional_auth),
    db: Database = Depends(get_db),
):
    if auth is None:
        return {"success": True, "userMarkedHelpful": False}
    oid = to_object_id(review_id)
    review = db["review"].find_one({"_id": oid}, {"helpfulBy": 1}) if oid is not None else None
    if not review:
        raise NotFound("Review not found")
    marked: List[ObjectId] = review.get("helpfulBy", [])
    return {"success": True, "userMarkedHelpful": ObjectId(auth.user_id) in marked}
