from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal


# Catalog entry with ledger-derived availability
class ProductResponse(BaseModel):
    sku: str
    name: str
    category: str
    price: Decimal
    unit: str
    description: Optional[str] = None
    on_hand: int
    in_stock: bool


class ProductPage(BaseModel):
    items: List[ProductResponse]
    total: int
    page: int
    page_size: int
