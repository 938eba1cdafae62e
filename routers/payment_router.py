from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pymongo.database import Database

import orders
from database import get_db, serialize_doc
from payments import create_payment_intent
from schemas import Pricing, ShippingInfo
from security import AuthContext, get_current_admin, get_current_user, get_optional_auth

router = APIRouter(prefix="/api/payment", tags=["Payment"])


class CamelInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaymentIntentInput(CamelInput):
    amount: Optional[float] = None


class OrderItemInput(CamelInput):
    product_id: str = Field(..., min_length=1)
    size: float
    quantity: int = Field(..., ge=1)


class CreateOrderInput(CamelInput):
    items: List[OrderItemInput] = Field(..., min_length=1)
    shipping_info: ShippingInfo
    pricing: Pricing
    payment_intent_id: Optional[str] = None


class StatusUpdateInput(CamelInput):
    order_status: str


@router.post("/create-payment-intent")
def payment_intent(payload: PaymentIntentInput):
    client_secret = create_payment_intent(payload.amount)
    return {"success": True, "clientSecret": client_secret}


@router.post("/create-order", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderInput,
    auth: Optional[AuthContext] = Depends(get_optional_auth),
    db: Database = Depends(get_db),
):
    order = orders.create_order(
        db,
        items=payload.items,
        shipping_info=payload.shipping_info,
        pricing=payload.pricing,
        payment_intent_id=payload.payment_intent_id,
        auth=auth,
    )
    return {"success": True, "data": serialize_doc(order)}


@router.get("/order/{order_number}")
def get_order_by_number(order_number: str, db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(orders.get_order_by_number(db, order_number))}


@router.get("/my-orders")
def my_orders(current_user: AuthContext = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(orders.list_orders(db, user_id=current_user.user_id))}


@router.patch("/orders/{order_id}/cancel")
def cancel_own_order(
    order_id: str,
    current_user: AuthContext = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    order = orders.cancel_order(db, order_id, current_user)
    return {
        "success": True,
        "message": "Order cancelled successfully. Stock has been restored and refund will be processed.",
        "data": serialize_doc(order),
    }


@router.get("/admin/orders")
def all_orders(admin: AuthContext = Depends(get_current_admin), db: Database = Depends(get_db)):
    return {"success": True, "data": serialize_doc(orders.list_orders(db))}


@router.patch("/admin/orders/{order_id}/cancel")
def admin_cancel_order(
    order_id: str,
    admin: AuthContext = Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    order = orders.cancel_order(db, order_id, admin, as_admin=True)
    return {
        "success": True,
        "message": "Order cancelled and stock restored successfully",
        "data": serialize_doc(order),
    }


@router.patch("/admin/orders/{order_id}")
def admin_update_order_status(
    order_id: str,
    payload: StatusUpdateInput,
    admin: AuthContext = Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    order = orders.set_order_status(db, order_id, payload.order_status)
    return {"success": True, "data": serialize_doc(order)}
