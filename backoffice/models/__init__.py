from backoffice.models.product import Product
from backoffice.models.stock import StockMovement, MovementKind, ReferenceType
from backoffice.models.order import Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod
from backoffice.models.sequence import SequenceCounter
from backoffice.models.log import Log

__all__ = [
    "Product",
    "StockMovement",
    "MovementKind",
    "ReferenceType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "SequenceCounter",
    "Log",
]
