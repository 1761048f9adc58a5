from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal
from decimal import Decimal
from datetime import datetime

from backoffice.models.order import PaymentMethod


# Customer details copied onto the order
class CustomerIn(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    gstin: Optional[str] = None


# Requested line; product_id is the product SKU
class OrderItemIn(BaseModel):
    product_id: str
    quantity: int


# Input schema for creating a new order
class OrderCreatePayload(BaseModel):
    customer: CustomerIn
    items: List[OrderItemIn] = Field(min_length=1)
    payment_method: Optional[PaymentMethod] = None
    amount_paid: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=1000)
    status: Literal["draft", "confirmed"] = "confirmed"


# Payment and status update; omitted fields are left unchanged
class OrderUpdatePayload(BaseModel):
    status: Optional[str] = None
    amount_paid: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=1000)


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    product_name: str
    sku: str
    unit: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    gst_rate: Decimal
    gst_amount: Decimal
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    order_number: str
    invoice_number: Optional[str] = None

    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    customer_gstin: Optional[str] = None

    items: List[OrderItemOut]
    subtotal: Decimal
    total_discount: Decimal
    total_gst: Decimal
    grand_total: Decimal

    payment_method: str
    payment_status: str
    amount_paid: Decimal
    amount_due: Decimal

    status: str
    notes: Optional[str] = None
    created_by: str
    processed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    invoiced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int
