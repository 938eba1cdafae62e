"""
Rating aggregation and helpful votes.

``averageRating``/``totalReviews`` on a product are always recomputed from the
full review set, never adjusted incrementally, so any drift is repaired by the
next review write.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from bson import ObjectId
from pymongo.database import Database

from errors import NotFound

logger = logging.getLogger(__name__)


def round_rating(value: float) -> float:
    """Round half up to one decimal (4.25 -> 4.3)."""
    return math.floor(value * 10 + 0.5) / 10


def recompute_product_rating(db: Database, product_id: ObjectId) -> Tuple[float, int]:
    ratings = [r["rating"] for r in db["review"].find({"product": product_id}, {"rating": 1})]
    if ratings:
        average = round_rating(sum(ratings) / len(ratings))
    else:
        average = 0
    total = len(ratings)
    db["product"].update_one(
        {"_id": product_id},
        {"$set": {"averageRating": average, "totalReviews": total, "updatedAt": datetime.now(timezone.utc)}},
    )
    logger.debug("Rating for product %s recomputed: %s over %d review(s)", product_id, average, total)
    return average, total


def toggle_helpful(db: Database, review_id: ObjectId, user_id: ObjectId) -> Dict[str, Any]:
    """Add the user's helpful vote, or take it back if already given.

    Set membership and the counter move together in one update, guarded on
    membership, so ``helpful == len(helpfulBy)`` holds under concurrent votes.
    """
    now = datetime.now(timezone.utc)
    removed = db["review"].update_one(
        {"_id": review_id, "helpfulBy": user_id},
        {"$pull": {"helpfulBy": user_id}, "$inc": {"helpful": -1}, "$set": {"updatedAt": now}},
    )
    if not removed.modified_count:
        db["review"].update_one(
            {"_id": review_id, "helpfulBy": {"$ne": user_id}},
            {"$addToSet": {"helpfulBy": user_id}, "$inc": {"helpful": 1}, "$set": {"updatedAt": now}},
        )
    return _helpful_state(db, review_id, user_id)


def _helpful_state(db: Database, review_id: ObjectId, user_id: ObjectId) -> Dict[str, Any]:
    review = db["review"].find_one({"_id": review_id}, {"helpful": 1, "helpfulBy": 1})
    if review is None:
        raise NotFound("Review not found")
    return {
        "helpful": review.get("helpful", 0),
        "userMarkedHelpful": user_id in review.get("helpfulBy", []),
    }
