"""
ROBOSTORE Store Service - Orders

Order documents, server-side totals and per-user order history.
Accepts the storefront's camelCase payload keys as input aliases.
"""

import logging
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator

from core.database import get_database
from shared.utils import get_now_iso

logger = logging.getLogger(__name__)

ORDERS_COLLECTION = "orders"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    COD = "cod"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class OrderItem(BaseModel):
    """A cart line: a robot snapshot plus quantity."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str
    price: float = Field(..., ge=0)
    image: str
    description: str
    category: str
    quantity: int = Field(..., ge=1)


class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


class OrderCreate(BaseModel):
    items: List[OrderItem] = []
    customer_info: CustomerInfo = Field(
        ..., validation_alias=AliasChoices("customer_info", "customerInfo")
    )
    payment_method: PaymentMethod = Field(
        ..., validation_alias=AliasChoices("payment_method", "paymentMethod")
    )
    payment_status: PaymentStatus = Field(
        PaymentStatus.PENDING, validation_alias=AliasChoices("payment_status", "paymentStatus")
    )
    total_amount: Optional[float] = Field(
        None, ge=0, validation_alias=AliasChoices("total_amount", "totalAmount")
    )

    @model_validator(mode="after")
    def _require_amount(self):
        if not self.items and self.total_amount is None:
            raise ValueError("An order needs items or a total amount")
        return self


class Order(BaseModel):
    id: str
    items: List[OrderItem]
    customer_info: CustomerInfo
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    total_amount: float
    user_id: str
    order_status: OrderStatus
    created_at: str
    updated_at: str


def calculate_total(items: List[OrderItem]) -> float:
    """Sum of price * quantity over all lines, rounded to cents."""
    return round(sum(item.price * item.quantity for item in items), 2)


def create_order(user_id: str, order: OrderCreate) -> Order:
    """
    Store an order for a user. The client's total is only trusted when
    there are no items to compute it from.
    """
    now = get_now_iso()
    total = calculate_total(order.items) if order.items else order.total_amount

    data = {
        "items": [item.model_dump() for item in order.items],
        "customer_info": order.customer_info.model_dump(),
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status.value,
        "total_amount": total,
        "user_id": user_id,
        "order_status": OrderStatus.PROCESSING.value,
        "created_at": now,
        "updated_at": now,
    }

    _, order_ref = get_database().collection(ORDERS_COLLECTION).add(data)
    logger.info(f"🧾 Order {order_ref.id} for user {user_id}: {len(order.items)} items, total {total}")
    return Order(id=order_ref.id, **data)


def list_orders_for_user(user_id: str) -> List[Order]:
    """A user's orders, newest first."""
    docs = get_database().collection(ORDERS_COLLECTION).where("user_id", "==", user_id).stream()
    orders = [Order(id=doc.id, **doc.to_dict()) for doc in docs]
    orders.sort(key=lambda o: o.created_at, reverse=True)
    return orders
