# backoffice/routes/products.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from backoffice.database import get_db
from backoffice.models.product import Product
from backoffice.permissions import Capability
from backoffice.services import ledger
from backoffice.utils.tokenJWT import Caller, require
import backoffice.schemas.product as product_schemas

router = APIRouter(prefix="/products", tags=["Products"])


def _product_to_out(product: Product, on_hand: int) -> dict:
    return {
        "sku": product.sku,
        "name": product.name,
        "category": product.category,
        "price": product.price,
        "unit": product.unit,
        "description": product.description,
        "on_hand": on_hand,
        "in_stock": on_hand > 0,
    }


# Read-only catalog lookup; availability comes from the stock ledger
@router.get("", response_model=product_schemas.ProductPage)
def list_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.VIEW_PRODUCTS)),
):
    query = db.query(Product)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    if category:
        query = query.filter(Product.category == category.lower())

    total = query.count()
    rows = query.order_by(Product.sku.asc()).offset((page - 1) * page_size).limit(page_size).all()
    levels = ledger.on_hand_by_product(db, [p.id for p in rows])
    items = [_product_to_out(p, levels.get(p.id, 0)) for p in rows]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{sku}", response_model=product_schemas.ProductResponse)
def get_product(
    sku: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.VIEW_PRODUCTS)),
):
    product = ledger.get_product(db, sku)
    return _product_to_out(product, ledger.on_hand(db, product))
