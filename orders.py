"""
Order creation and lifecycle.

``orderStatus`` moves through a fixed transition table. Both cancel paths
(owner and admin) go through the same guard and the same side effects:
status -> cancelled, payment -> refunded, reserved stock released.
"""

import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import create_document, get_documents, to_object_id
from errors import Conflict, InvalidTransition, NotFound, Unauthorized, ValidationError
from inventory import lines_from_order, release_stock, reserve_stock
from schemas import Order, OrderItem, OrderStatus, PaymentInfo, PaymentStatus, Pricing, ShippingInfo
from security import AuthContext, owns

logger = logging.getLogger(__name__)

PROCESSING = OrderStatus.PROCESSING.value
SHIPPED = OrderStatus.SHIPPED.value
DELIVERED = OrderStatus.DELIVERED.value
CANCELLED = OrderStatus.CANCELLED.value

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PROCESSING: frozenset({SHIPPED, DELIVERED, CANCELLED}),
    SHIPPED: frozenset({DELIVERED, CANCELLED}),
    DELIVERED: frozenset(),
    CANCELLED: frozenset(),
}

# States each actor may cancel from
OWNER_CANCELLABLE = frozenset({PROCESSING})
ADMIN_CANCELLABLE = frozenset({PROCESSING, SHIPPED})

_BASE36 = string.digits + string.ascii_lowercase


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_owner_cancel(current: str) -> None:
    if current == CANCELLED:
        raise InvalidTransition("Order is already cancelled", current=current, target=CANCELLED)
    if current not in OWNER_CANCELLABLE or not can_transition(current, CANCELLED):
        raise InvalidTransition(
            "Only processing orders can be cancelled. Please contact support for assistance.",
            current=current,
            target=CANCELLED,
        )


def check_admin_cancel(current: str) -> None:
    if current == CANCELLED:
        raise InvalidTransition("Order is already cancelled", current=current, target=CANCELLED)
    if current == DELIVERED:
        raise InvalidTransition(
            "Cannot cancel delivered orders. Please process a return instead.",
            current=current,
            target=CANCELLED,
        )
    if current not in ADMIN_CANCELLABLE or not can_transition(current, CANCELLED):
        raise InvalidTransition(f"Cannot cancel an order in status '{current}'", current=current, target=CANCELLED)


def _to_base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
    return out or "0"


def generate_order_number() -> str:
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"ORD-{stamp}-{suffix}"


def get_order(db: Database, order_id: str) -> Dict[str, Any]:
    oid = to_object_id(order_id)
    order = db["order"].find_one({"_id": oid}) if oid is not None else None
    if not order:
        raise NotFound("Order not found")
    return order


def get_order_by_number(db: Database, order_number: str) -> Dict[str, Any]:
    order = db["order"].find_one({"orderNumber": order_number})
    if not order:
        raise NotFound("Order not found")
    return order


def list_orders(db: Database, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if user_id is not None:
        query["user"] = ObjectId(user_id)
    return get_documents(db, "order", query, sort=[("createdAt", -1)])


def create_order(
    db: Database,
    *,
    items: List[Any],
    shipping_info: ShippingInfo,
    pricing: Pricing,
    payment_intent_id: Optional[str] = None,
    auth: Optional[AuthContext] = None,
) -> Dict[str, Any]:
    """Reserve stock and persist a new order in ``processing``.

    ``items`` expose ``product_id``, ``size`` and ``quantity``. Line names,
    prices and images are copied from the product documents returned by the
    reservation.
    """
    if not items:
        raise ValidationError("Missing required order information")

    products = reserve_stock(db, items)

    try:
        order = Order(
            user=ObjectId(auth.user_id) if auth else None,
            order_number=generate_order_number(),
            items=[_snapshot(products[str(item.product_id)], item) for item in items],
            shipping_info=shipping_info,
            pricing=pricing,
            payment_info=PaymentInfo(
                stripe_payment_intent_id=payment_intent_id,
                payment_method="card" if payment_intent_id else None,
                payment_status=PaymentStatus.PAID if payment_intent_id else PaymentStatus.PENDING,
            ),
        )
        order_id = create_document(db, "order", order)
    except DuplicateKeyError:
        release_stock(db, items)
        raise Conflict("Duplicate order number, please retry")
    except Exception:
        release_stock(db, items)
        raise

    created = db["order"].find_one({"_id": order_id})
    logger.info(
        "Order created: %s user=%s items=%d",
        created["orderNumber"], created.get("user"), len(created["items"]),
    )
    return created


def _snapshot(product: Dict[str, Any], item: Any) -> OrderItem:
    images = product.get("images") or []
    return OrderItem(
        product=product["_id"],
        name=product.get("name", ""),
        price=float(product.get("price", 0)),
        size=float(item.size),
        quantity=int(item.quantity),
        image=images[0] if images else None,
    )


def cancel_order(db: Database, order_id: str, actor: AuthContext, *, as_admin: bool = False) -> Dict[str, Any]:
    """Cancel an order, refund it and give its stock back.

    The status change is claimed with a conditional update on the status the
    guard saw, so a concurrent cancel or status change makes this call fail
    instead of releasing stock twice.
    """
    order = get_order(db, order_id)
    current = order.get("orderStatus", PROCESSING)

    if as_admin:
        if not actor.is_admin:
            raise Unauthorized()
        check_admin_cancel(current)
    else:
        if not owns(actor, order.get("user")):
            raise Unauthorized("You can only cancel your own orders")
        check_owner_cancel(current)

    previous_payment = order.get("paymentInfo", {}).get("paymentStatus", PaymentStatus.PENDING.value)
    now = datetime.now(timezone.utc)
    claimed = db["order"].update_one(
        {"_id": order["_id"], "orderStatus": current},
        {"$set": {
            "orderStatus": CANCELLED,
            "paymentInfo.paymentStatus": PaymentStatus.REFUNDED.value,
            "updatedAt": now,
        }},
    )
    if claimed.modified_count == 0:
        latest = get_order(db, order_id)
        raise InvalidTransition(
            f"Order status changed to '{latest.get('orderStatus')}' while cancelling",
            current=latest.get("orderStatus"),
            target=CANCELLED,
        )

    try:
        release_stock(db, lines_from_order(order))
    except PyMongoError:
        db["order"].update_one(
            {"_id": order["_id"], "orderStatus": CANCELLED},
            {"$set": {
                "orderStatus": current,
                "paymentInfo.paymentStatus": previous_payment,
                "updatedAt": datetime.now(timezone.utc),
            }},
        )
        logger.error("Stock release failed for order %s, status reverted to %s", order["orderNumber"], current)
        raise

    who = "admin" if as_admin else "user"
    logger.info("Order %s cancelled by %s and stock restored", order["orderNumber"], who)
    return db["order"].find_one({"_id": order["_id"]})


def set_order_status(db: Database, order_id: str, order_status: str) -> Dict[str, Any]:
    """Direct status write for admins.

    Only the enum is checked. There is no transition guard and no stock side
    effect, so setting ``cancelled`` here does not restore inventory.
    """
    try:
        status = OrderStatus(order_status).value
    except ValueError:
        raise ValidationError(
            f"Invalid orderStatus '{order_status}'. Must be one of: "
            + ", ".join(s.value for s in OrderStatus)
        )
    oid = to_object_id(order_id)
    updated = None
    if oid is not None:
        updated = db["order"].find_one_and_update(
            {"_id": oid},
            {"$set": {"orderStatus": status, "updatedAt": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
    if updated is None:
        raise NotFound("Order not found")
    if status == CANCELLED:
        logger.warning(
            "Order %s set to cancelled via direct status update; stock was not restored",
            updated.get("orderNumber"),
        )
    return updated
