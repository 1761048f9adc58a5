# backoffice/services/ledger.py
"""
Stock Ledger & Inventory Reconciler.

The ``stock_movements`` table is the only record of inventory. A product's
on-hand quantity is the ``new_stock`` of its latest movement, which is the
same as folding the actual deltas of its whole history; availability is
``on_hand > 0``. Nothing else is stored, so there is no second write that
could drift from the ledger.

Writers serialize per product through the ``(product_id, sequence)``
unique constraint: a movement takes the next sequence after the head it
read. If another writer appended first, the insert fails, the unit of work
is rolled back and retried against the new head.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from backoffice.config import settings
from backoffice.errors import InvalidQuantity, ProductNotFound, ValidationError
from backoffice.models.product import Product
from backoffice.models.stock import StockMovement, MovementKind, ReferenceType, INBOUND_KINDS
from backoffice.services.concurrency import run_with_retry
from backoffice.services.pricing import UNIT_PRICE_LIMIT, to_money

logger = logging.getLogger(__name__)

NOTES_MAX_LENGTH = 500


@dataclass
class MovementMetadata:
    unit_price: Optional[object] = None
    supplier_name: Optional[str] = None
    supplier_invoice_no: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class MovementFilter:
    kind: Optional[str] = None
    product_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None


@dataclass
class StockSummary:
    total_products: int
    in_stock: int
    out_of_stock: int
    low_stock: int
    movements: Dict[str, Dict[str, int]] = field(default_factory=dict)


# =========================
# PURE LEDGER RULES
# =========================
def parse_kind(kind) -> MovementKind:
    try:
        return MovementKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown movement kind: {kind}")


def parse_reference_type(reference_type) -> ReferenceType:
    try:
        return ReferenceType(reference_type)
    except ValueError:
        raise ValidationError(f"Unknown reference type: {reference_type}")


def next_stock(previous_stock: int, kind: MovementKind, quantity: int) -> int:
    """Apply one movement; decrements are clamped at zero."""
    if kind in INBOUND_KINDS:
        return previous_stock + quantity
    return max(0, previous_stock - quantity)


def replay(movements: Iterable[Tuple[str, int]], opening: int = 0) -> int:
    """Fold (kind, quantity) pairs into an on-hand quantity."""
    stock = opening
    for kind, quantity in movements:
        stock = next_stock(stock, parse_kind(kind), quantity)
    return stock


# =========================
# READS
# =========================
def get_product(db: Session, product_id: str) -> Product:
    product = db.query(Product).filter(Product.sku == product_id).first()
    if not product:
        raise ProductNotFound(product_id)
    return product


def _head(db: Session, product_pk: int) -> Optional[StockMovement]:
    return (
        db.query(StockMovement)
        .filter(StockMovement.product_id == product_pk)
        .order_by(StockMovement.sequence.desc())
        .first()
    )


def on_hand(db: Session, product: Product) -> int:
    head = _head(db, product.id)
    return head.new_stock if head else 0


def _latest_sequence_subquery():
    return (
        select(StockMovement.product_id, func.max(StockMovement.sequence).label("sequence"))
        .group_by(StockMovement.product_id)
        .subquery()
    )


def on_hand_by_product(db: Session, product_pks: Optional[List[int]] = None) -> Dict[int, int]:
    """Current on-hand for many products in one query (missing = never moved)."""
    latest = _latest_sequence_subquery()
    query = (
        db.query(StockMovement.product_id, StockMovement.new_stock)
        .join(
            latest,
            (StockMovement.product_id == latest.c.product_id)
            & (StockMovement.sequence == latest.c.sequence),
        )
    )
    if product_pks is not None:
        query = query.filter(StockMovement.product_id.in_(product_pks))
    return {product_pk: new_stock for product_pk, new_stock in query.all()}


def stock_summary(db: Session) -> StockSummary:
    total_products = db.query(func.count(Product.id)).scalar() or 0
    levels = on_hand_by_product(db)
    in_stock = sum(1 for qty in levels.values() if qty > 0)
    low_stock = sum(1 for qty in levels.values() if 0 < qty <= settings.LOW_STOCK_THRESHOLD)

    movements = {}
    rows = (
        db.query(StockMovement.kind, func.count(StockMovement.id), func.sum(StockMovement.quantity))
        .group_by(StockMovement.kind)
        .all()
    )
    for kind, count, total_quantity in rows:
        movements[kind] = {"count": count, "total_quantity": int(total_quantity or 0)}

    return StockSummary(
        total_products=total_products,
        in_stock=in_stock,
        out_of_stock=total_products - in_stock,
        low_stock=low_stock,
        movements=movements,
    )


def list_movements(db: Session, filters: Optional[MovementFilter] = None, page: int = 1, page_size: int = 20):
    """Newest-first page of movements; returns (rows, total)."""
    filters = filters or MovementFilter()
    query = db.query(StockMovement).options(joinedload(StockMovement.product))

    if filters.kind:
        query = query.filter(StockMovement.kind == parse_kind(filters.kind).value)
    if filters.product_id:
        query = query.join(Product).filter(Product.sku == filters.product_id)
    if filters.start_date:
        query = query.filter(StockMovement.created_at >= filters.start_date)
    if filters.end_date:
        query = query.filter(StockMovement.created_at <= filters.end_date)
    if filters.reference_type:
        query = query.filter(StockMovement.reference_type == parse_reference_type(filters.reference_type).value)
    if filters.reference_id is not None:
        query = query.filter(StockMovement.reference_id == filters.reference_id)

    total = query.count()
    rows = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


# =========================
# WRITES
# =========================
def _validate(kind, quantity, metadata: MovementMetadata) -> MovementKind:
    kind = parse_kind(kind)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")
    if metadata.notes and len(metadata.notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
    if metadata.reference_type is not None:
        parse_reference_type(metadata.reference_type)
    if metadata.unit_price is not None and to_money(metadata.unit_price, UNIT_PRICE_LIMIT) < 0:
        raise ValidationError("Unit price must be positive")
    return kind


def append_movement(
    db: Session, product: Product, kind, quantity: int, actor: str,
    metadata: Optional[MovementMetadata] = None,
) -> StockMovement:
    """
    Append one movement inside the caller's transaction.

    Reads the ledger head, computes the clamped new stock and flushes the
    row; a concurrent append on the same product fails the flush with an
    IntegrityError for the caller's retry loop.
    """
    metadata = metadata or MovementMetadata()
    kind = _validate(kind, quantity, metadata)

    head = _head(db, product.id)
    previous_stock = head.new_stock if head else 0
    sequence = (head.sequence if head else 0) + 1
    new_stock = next_stock(previous_stock, kind, quantity)

    unit_price = metadata.unit_price
    if unit_price is None and kind in (MovementKind.STOCK_IN, MovementKind.STOCK_OUT):
        unit_price = product.price
    unit_price = to_money(unit_price, UNIT_PRICE_LIMIT) if unit_price is not None else None

    movement = StockMovement(
        product_id=product.id,
        sequence=sequence,
        kind=kind.value,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        unit_price=unit_price,
        total_value=to_money(unit_price * quantity) if unit_price is not None else None,
        supplier_name=metadata.supplier_name,
        supplier_invoice_no=metadata.supplier_invoice_no,
        reference_type=metadata.reference_type,
        reference_id=metadata.reference_id,
        notes=metadata.notes,
        created_by=actor,
    )
    db.add(movement)
    db.flush()

    if movement.clamped:
        logger.info(
            "Clamped %s for %s: requested %s, on hand %s",
            kind.value, product.sku, quantity, previous_stock,
        )
    return movement


def apply_movement(
    db: Session, product_id: str, kind, quantity: int, actor: str,
    metadata: Optional[MovementMetadata] = None,
) -> StockMovement:
    """Validate, append and commit a single movement for the product SKU."""
    metadata = metadata or MovementMetadata()
    _validate(kind, quantity, metadata)

    def _op():
        product = get_product(db, product_id)
        return append_movement(db, product, kind, quantity, actor, metadata)

    movement = run_with_retry(db, _op)
    db.refresh(movement)
    return movement
