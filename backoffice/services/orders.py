# backoffice/services/orders.py
"""
Order lifecycle: creation, payments, status transitions and invoicing.

Payment status is never set directly; it is recomputed from
``(amount_paid, grand_total)`` on every payment change. Order status moves
along TRANSITIONS, except ``completed`` which only invoice issuance can
reach. Confirmation removes the ordered quantities from stock through the
ledger, cancellation of a confirmed order puts back what was actually
removed.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session, selectinload

from backoffice.config import settings
from backoffice.errors import (
    InvalidTransition, InvoiceAlreadyIssued, OrderNotFound, ValidationError,
)
from backoffice.models.order import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from backoffice.models.product import Product
from backoffice.models.stock import MovementKind, ReferenceType, StockMovement
from backoffice.services import ledger, pricing, sequence
from backoffice.services.concurrency import run_with_retry

logger = logging.getLogger(__name__)

NOTES_MAX_LENGTH = 1000

# Manual transitions. COMPLETED is reachable only through issue_invoice.
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

INVOICEABLE: FrozenSet[OrderStatus] = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING})

# Statuses in which the order's quantities are out of stock
STOCK_COMMITTED: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.COMPLETED,
})

INITIAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.DRAFT, OrderStatus.CONFIRMED})


@dataclass
class CustomerInfo:
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    gstin: Optional[str] = None


# =========================
# PAYMENT STATE
# =========================
def payment_status_for(amount_paid, grand_total) -> PaymentStatus:
    amount_paid = Decimal(amount_paid)
    grand_total = Decimal(grand_total)
    if amount_paid >= grand_total:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def apply_payment(order: Order, amount_paid) -> None:
    """Record the cumulative amount paid and derive due and status."""
    if amount_paid is None:
        amount_paid = Decimal(0)
    amount_paid = pricing.to_money(amount_paid)
    if amount_paid < 0:
        raise ValidationError("Amount paid cannot be negative")
    grand_total = pricing.to_money(order.grand_total)
    order.amount_paid = amount_paid
    # Overpayment leaves a negative amount due, i.e. a customer credit
    order.amount_due = grand_total - amount_paid
    order.payment_status = payment_status_for(amount_paid, grand_total).value


# =========================
# ORDER STATE
# =========================
def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value}")


def parse_payment_method(value) -> PaymentMethod:
    if value is None:
        return PaymentMethod.CASH
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Unknown payment method: {value}")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def _commit_stock(db: Session, order: Order, actor: str) -> None:
    for item in order.items:
        ledger.append_movement(
            db, item.product, MovementKind.STOCK_OUT, item.quantity, actor,
            ledger.MovementMetadata(
                reference_type=ReferenceType.ORDER.value,
                reference_id=order.id,
                unit_price=item.unit_price,
                notes=f"Order {order.order_number}",
            ),
        )


def _release_stock(db: Session, order: Order, actor: str) -> None:
    # Return only what the order's stock_out entries actually removed
    removed = defaultdict(int)
    movements = (
        db.query(StockMovement)
        .filter(
            StockMovement.reference_type == ReferenceType.ORDER.value,
            StockMovement.reference_id == order.id,
            StockMovement.kind == MovementKind.STOCK_OUT.value,
        )
        .all()
    )
    for movement in movements:
        removed[movement.product_id] += movement.previous_stock - movement.new_stock

    for product_pk, quantity in removed.items():
        if quantity <= 0:
            continue
        product = db.get(Product, product_pk)
        ledger.append_movement(
            db, product, MovementKind.RETURN, quantity, actor,
            ledger.MovementMetadata(
                reference_type=ReferenceType.ORDER.value,
                reference_id=order.id,
                notes=f"Cancelled order {order.order_number}",
            ),
        )


def transition(db: Session, order: Order, target, actor: str) -> Order:
    """Move ``order`` to ``target`` and apply the stock side effects."""
    current = OrderStatus(order.status)
    target = parse_status(target)
    if target == current:
        return order
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot change status from {current.value} to {target.value}")

    if target == OrderStatus.CONFIRMED and current not in STOCK_COMMITTED:
        _commit_stock(db, order, actor)
    elif target == OrderStatus.CANCELLED and current in STOCK_COMMITTED:
        _release_stock(db, order, actor)

    order.status = target.value
    return order


# =========================
# QUERIES
# =========================
def _load(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise OrderNotFound(f"Order not found: {order_id}")
    return order


def get_order(db: Session, order_id: int) -> Order:
    return _load(db, order_id)


def list_orders(db: Session, status: Optional[str] = None, search: Optional[str] = None,
                page: int = 1, page_size: int = 20):
    query = db.query(Order).options(selectinload(Order.items))
    if status:
        query = query.filter(Order.status == parse_status(status).value)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Order.order_number.ilike(like), Order.customer_name.ilike(like)))

    total = query.count()
    rows = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


# =========================
# COMMANDS
# =========================
def _validate_notes(notes: Optional[str]) -> None:
    if notes and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")


def create_order(
    db: Session,
    customer: CustomerInfo,
    items: Iterable[pricing.RequestedItem],
    actor: str,
    payment_method: Optional[str] = None,
    amount_paid=None,
    notes: Optional[str] = None,
    status=OrderStatus.CONFIRMED,
) -> Order:
    """
    Price, number and persist a new order in one transaction.

    Orders created as ``confirmed`` take their quantities out of stock
    immediately; ``draft`` orders do so when later confirmed.
    """
    if not customer or not (customer.name or "").strip():
        raise ValidationError("Customer name is required")
    method = parse_payment_method(payment_method)
    status = parse_status(status)
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"Orders cannot be created as {status.value}")
    _validate_notes(notes)
    items = list(items)

    def _op():
        def lookup(sku):
            return db.query(Product).filter(Product.sku == sku).first()

        priced = pricing.price_items(items, lookup, settings.GST_RATE)

        order = Order(
            order_number=sequence.next_identifier(db, sequence.ORDER_SCOPE),
            customer_name=customer.name.strip(),
            customer_phone=customer.phone,
            customer_email=customer.email,
            customer_address=customer.address,
            customer_gstin=customer.gstin,
            subtotal=priced.subtotal,
            total_discount=priced.total_discount,
            total_gst=priced.total_gst,
            grand_total=priced.grand_total,
            payment_method=method.value,
            status=OrderStatus.DRAFT.value,
            notes=notes,
            created_by=actor,
        )
        order.items = [
            OrderItem(
                product=line.product,
                product_name=line.product_name,
                sku=line.sku,
                unit=line.unit,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount=line.discount,
                gst_rate=line.gst_rate,
                gst_amount=line.gst_amount,
                total_amount=line.total_amount,
            )
            for line in priced.items
        ]
        apply_payment(order, amount_paid)
        db.add(order)
        db.flush()

        if status == OrderStatus.CONFIRMED:
            transition(db, order, OrderStatus.CONFIRMED, actor)
        return order

    order = run_with_retry(db, _op)
    logger.info("Created order %s (%s) total %s", order.order_number, order.status, order.grand_total)
    return _load(db, order.id)


def update_order_payment(
    db: Session,
    order_id: int,
    actor: str,
    amount_paid=None,
    status=None,
    notes: Optional[str] = None,
) -> Order:
    """Record a payment, a status change and/or notes on an existing order."""
    if status is not None and parse_status(status) == OrderStatus.COMPLETED:
        raise InvalidTransition("Orders are completed by issuing an invoice")
    _validate_notes(notes)

    def _op():
        order = _load(db, order_id)
        if amount_paid is not None:
            apply_payment(order, amount_paid)
        if status is not None:
            transition(db, order, status, actor)
        if notes:
            order.notes = notes
        order.processed_by = actor
        db.flush()
        return order

    order = run_with_retry(db, _op)
    return _load(db, order.id)


def issue_invoice(db: Session, order_id: int, actor: str) -> Order:
    """
    Assign an invoice number and complete the order, exactly once.

    The number is claimed with a conditional UPDATE on
    ``invoice_number IS NULL``; a concurrent second issuer matches no row
    and is rejected instead of overwriting the first number.
    """
    def _op():
        order = _load(db, order_id)
        if order.invoice_number:
            raise InvoiceAlreadyIssued(f"Invoice {order.invoice_number} already issued")
        if OrderStatus(order.status) not in INVOICEABLE:
            raise InvalidTransition(f"Cannot invoice an order in status {order.status}")

        invoice_number = sequence.next_identifier(db, sequence.INVOICE_SCOPE)
        result = db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.invoice_number.is_(None),
                Order.status.in_([s.value for s in INVOICEABLE]),
            )
            .values(
                invoice_number=invoice_number,
                status=OrderStatus.COMPLETED.value,
                processed_by=actor,
                invoiced_at=datetime.now(timezone.utc),
                version_id=Order.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            # Lost the race: report what the winner did
            db.refresh(order)
            if order.invoice_number:
                raise InvoiceAlreadyIssued(f"Invoice {order.invoice_number} already issued")
            raise InvalidTransition(f"Cannot invoice an order in status {order.status}")
        return order

    order = run_with_retry(db, _op)
    db.expire_all()
    order = _load(db, order.id)
    logger.info("Issued invoice %s for order %s", order.invoice_number, order.order_number)
    return order
