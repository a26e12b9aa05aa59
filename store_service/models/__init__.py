"""
ROBOSTORE Store Service Models

Robot catalog and order documents.
"""

from .catalog import (
    Robot,
    RobotCreate,
    list_robots,
    get_robot,
    create_robot,
)

from .orders import (
    Order,
    OrderCreate,
    OrderItem,
    CustomerInfo,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    calculate_total,
    create_order,
    list_orders_for_user,
)

__all__ = [
    # Catalog
    "Robot",
    "RobotCreate",
    "list_robots",
    "get_robot",
    "create_robot",
    # Orders
    "Order",
    "OrderCreate",
    "OrderItem",
    "CustomerInfo",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "calculate_total",
    "create_order",
    "list_orders_for_user",
]
