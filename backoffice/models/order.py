# backoffice/models/order.py
import enum
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, CheckConstraint, Index, func
from sqlalchemy.orm import relationship
from backoffice.database import Base


class OrderStatus(str, enum.Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CREDIT = "credit"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    # NULL until issued; unique once set
    invoice_number = Column(String(32), unique=True, nullable=True, index=True)

    # Customer snapshot, not a live reference
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    customer_address = Column(String, nullable=True)
    customer_gstin = Column(String, nullable=True)

    subtotal = Column(Numeric(14, 2), CheckConstraint("subtotal >= 0"), nullable=False)
    total_discount = Column(Numeric(14, 2), CheckConstraint("total_discount >= 0"), nullable=False, default=0)
    total_gst = Column(Numeric(14, 2), CheckConstraint("total_gst >= 0"), nullable=False, default=0)
    grand_total = Column(Numeric(14, 2), CheckConstraint("grand_total >= 0"), nullable=False)

    # Payment details
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    amount_paid = Column(Numeric(14, 2), CheckConstraint("amount_paid >= 0"), nullable=False, default=0)
    # Negative when the customer has overpaid (credit)
    amount_due = Column(Numeric(14, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=OrderStatus.DRAFT.value)
    notes = Column(String(1000), nullable=True)

    created_by = Column(String, nullable=False)
    processed_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    invoiced_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic lock: concurrent writers of the same order raise StaleDataError
    version_id = Column(Integer, nullable=False, default=1)

    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    __table_args__ = (
        Index("ix_orders_status_created", "status", "created_at"),
    )
    __mapper_args__ = {"version_id_col": version_id}


# Line item copied from the catalog at order time
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    product_name = Column(String, nullable=False)
    sku = Column(String, nullable=False)
    unit = Column(String, nullable=False)

    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False)
    unit_price = Column(Numeric(12, 2), CheckConstraint("unit_price >= 0"), nullable=False)
    discount = Column(Numeric(12, 2), CheckConstraint("discount >= 0"), nullable=False, default=0)
    gst_rate = Column(Numeric(5, 2), nullable=False)
    gst_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
