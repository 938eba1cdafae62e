"""
Inventory reservation.

Stock is kept per size on the product document (``sizes: [{size, stock}]``).
Reservation never reads stock and writes it back: each line is a single
conditional update that only matches while ``stock >= quantity``, so two
concurrent checkouts cannot both take the last pair.

A reservation is all-or-nothing. When any line fails, every decrement already
applied by the same call is put back before the error is raised.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import to_object_id
from errors import InsufficientStock, ProductNotFound, SizeUnavailable, StoreError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: str
    size: float
    quantity: int


def merge_lines(items: Iterable[Any]) -> List[StockLine]:
    """Collapse duplicate (product, size) lines, keeping first-seen order.

    ``items`` may be StockLine objects or anything exposing
    ``product_id``/``size``/``quantity``.
    """
    merged: Dict[Tuple[str, float], int] = {}
    for item in items:
        qty = int(item.quantity)
        if qty <= 0:
            raise ValidationError("quantity must be > 0")
        key = (str(item.product_id), float(item.size))
        merged[key] = merged.get(key, 0) + qty
    return [StockLine(pid, size, qty) for (pid, size), qty in merged.items()]


def lines_from_order(order: Dict[str, Any]) -> List[StockLine]:
    return [
        StockLine(str(item["product"]), float(item["size"]), int(item["quantity"]))
        for item in order.get("items", [])
    ]


def find_size(product: Dict[str, Any], size: float) -> Optional[Dict[str, Any]]:
    for entry in product.get("sizes", []):
        if entry.get("size") == size:
            return entry
    return None


def _size_match(size: float, min_stock: Optional[int] = None) -> Dict[str, Any]:
    cond: Dict[str, Any] = {"size": size}
    if min_stock is not None:
        cond["stock"] = {"$gte": min_stock}
    return {"$elemMatch": cond}


def _adjust(db: Database, oid: ObjectId, line: StockLine, delta: int, *, min_stock: Optional[int] = None):
    result = db["product"].update_one(
        {"_id": oid, "sizes": _size_match(line.size, min_stock)},
        {
            "$inc": {"sizes.$.stock": delta},
            "$set": {"updatedAt": datetime.now(timezone.utc)},
        },
    )
    if result.modified_count == 0:
        return None
    return db["product"].find_one({"_id": oid})


def _explain_failure(db: Database, oid: Optional[ObjectId], line: StockLine) -> StoreError:
    product = db["product"].find_one({"_id": oid}) if oid is not None else None
    if product is None:
        return ProductNotFound(line.product_id)
    name = product.get("name", line.product_id)
    entry = find_size(product, line.size)
    if entry is None:
        return SizeUnavailable(name, line.size)
    return InsufficientStock(name, line.size, available=int(entry.get("stock", 0)), requested=line.quantity)


def _put_back(db: Database, lines: List[StockLine], sign: int) -> None:
    for line in reversed(lines):
        try:
            _adjust(db, ObjectId(line.product_id), line, sign * line.quantity)
        except PyMongoError:
            logger.exception(
                "Could not undo stock change for %s (Size %g) by %+d",
                line.product_id, line.size, sign * line.quantity,
            )


def reserve_stock(db: Database, items: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
    """Decrement stock for every line or for none of them.

    Returns the updated product documents keyed by product id, which callers
    use to snapshot order lines.

    Raises ProductNotFound, SizeUnavailable or InsufficientStock for the first
    line that cannot be satisfied.
    """
    lines = merge_lines(items)
    applied: List[StockLine] = []
    products: Dict[str, Dict[str, Any]] = {}
    try:
        for line in lines:
            oid = to_object_id(line.product_id)
            product = None
            if oid is not None:
                product = _adjust(db, oid, line, -line.quantity, min_stock=line.quantity)
            if product is None:
                raise _explain_failure(db, oid, line)
            applied.append(line)
            products[line.product_id] = product
            left = find_size(product, line.size)
            logger.info(
                "Stock updated for %s (Size %g): %d -> %d",
                product.get("name"), line.size, left["stock"] + line.quantity, left["stock"],
            )
    except (StoreError, PyMongoError):
        if applied:
            logger.warning("Reservation failed, restoring %d reserved line(s)", len(applied))
            _put_back(db, applied, +1)
        raise
    return products


def release_stock(db: Database, items: Iterable[Any]) -> int:
    """Give reserved stock back. Returns the number of lines restored.

    Products or sizes that no longer exist are skipped. If the database fails
    part way through, the increments already made are undone and the error is
    raised so the caller can keep the order in its previous state.
    """
    lines = merge_lines(items)
    restored: List[StockLine] = []
    try:
        for line in lines:
            oid = to_object_id(line.product_id)
            product = _adjust(db, oid, line, line.quantity) if oid is not None else None
            if product is None:
                logger.warning(
                    "Stock not restored for %s (Size %g): product or size no longer exists",
                    line.product_id, line.size,
                )
                continue
            restored.append(line)
            logger.info("Stock restored: %s (Size %g) +%d units", product.get("name"), line.size, line.quantity)
    except PyMongoError:
        _put_back(db, restored, -1)
        raise
    return len(restored)
