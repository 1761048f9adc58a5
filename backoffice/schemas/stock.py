# backoffice/schemas/stock.py
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Literal

# Kinds accepted by the adjustment endpoint
AdjustmentKind = Literal["adjustment", "return", "damage"]


# Schema for receiving stock
class StockInCreate(BaseModel):
    product_id: str
    quantity: int
    unit_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    supplier_name: Optional[str] = None
    invoice_no: Optional[str] = None
    notes: Optional[str] = None


# Schema for issuing stock
class StockOutCreate(BaseModel):
    product_id: str
    quantity: int
    reason: Optional[str] = None
    notes: Optional[str] = None


# Schema for adjustments, returns and damage write-offs
class StockAdjustmentCreate(BaseModel):
    product_id: str
    quantity: int
    type: AdjustmentKind
    notes: Optional[str] = None


# Generic movement of any kind
class StockMovementCreate(BaseModel):
    product_id: str
    kind: str
    quantity: int
    unit_price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    supplier_name: Optional[str] = None
    supplier_invoice_no: Optional[str] = None
    notes: Optional[str] = None


# Schema for returning stock movement details
class StockMovementResponse(BaseModel):
    id: int
    product_id: str
    product_name: str
    sequence: int
    kind: str
    quantity: int
    previous_stock: int
    new_stock: int
    # True when a decrement was reduced to keep stock at zero
    clamped: bool
    unit_price: Optional[Decimal] = None
    total_value: Optional[Decimal] = None
    supplier_name: Optional[str] = None
    supplier_invoice_no: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    notes: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None


# Paginated response for stock movement history
class StockMovementPage(BaseModel):
    items: List[StockMovementResponse]
    total: int
    page: int
    page_size: int


class MovementTotals(BaseModel):
    count: int
    total_quantity: int


class StockSummaryResponse(BaseModel):
    total_products: int
    in_stock: int
    out_of_stock: int
    low_stock: int
    movements: Dict[str, MovementTotals]
