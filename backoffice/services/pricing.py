# backoffice/services/pricing.py
"""
Order Total Calculator.

Turns requested ``(product_id, quantity)`` pairs into priced line records
and order aggregates. All money is ``Decimal`` quantized to paise with
ROUND_HALF_UP; floats never enter the calculation.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Iterable, List, Optional

from backoffice.config import settings
from backoffice.errors import InvalidQuantity, ProductNotFound, ValidationError
from backoffice.models.product import Product

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Exclusive upper bounds of the Numeric(14, 2) totals and Numeric(12, 2) unit prices
MONEY_LIMIT = Decimal("1e12")
UNIT_PRICE_LIMIT = Decimal("1e10")


def to_money(value, limit: Decimal = MONEY_LIMIT) -> Decimal:
    """Coerce to Decimal and round half-up to the smallest currency unit.

    Non-numeric values and amounts the money columns cannot hold raise
    ValidationError.
    """
    if isinstance(value, float):
        # str() keeps the short repr, so 0.1 becomes Decimal("0.1") not the binary expansion
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or abs(amount) >= limit:
        raise ValidationError(f"Amount out of range: {value}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class RequestedItem:
    product_id: str
    quantity: int


@dataclass
class PricedItem:
    product: Product
    product_name: str
    sku: str
    unit: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    gst_rate: Decimal
    gst_amount: Decimal
    total_amount: Decimal

    @property
    def item_total(self) -> Decimal:
        return self.unit_price * self.quantity - self.discount


@dataclass
class PricedOrder:
    items: List[PricedItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_gst: Decimal = ZERO
    grand_total: Decimal = ZERO


def compute_grand_total(subtotal: Decimal, total_gst: Decimal, total_discount: Decimal = ZERO) -> Decimal:
    # total_discount is tracked for reporting only and is not subtracted here
    return to_money(subtotal + total_gst)


def validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")
    return quantity


def price_line(product: Product, quantity: int, gst_rate: Decimal) -> PricedItem:
    quantity = validate_quantity(quantity)
    unit_price = to_money(product.price, UNIT_PRICE_LIMIT)
    discount = ZERO
    item_total = unit_price * quantity - discount
    gst_amount = to_money(item_total * gst_rate / Decimal(100))
    return PricedItem(
        product=product,
        product_name=product.name,
        sku=product.sku,
        unit=product.unit,
        quantity=quantity,
        unit_price=unit_price,
        discount=discount,
        gst_rate=Decimal(gst_rate),
        gst_amount=gst_amount,
        total_amount=to_money(item_total + gst_amount),
    )


def price_items(
    items: Iterable[RequestedItem],
    catalog_lookup: Callable[[str], Optional[Product]],
    gst_rate: Optional[Decimal] = None,
) -> PricedOrder:
    """
    Price every requested item against ``catalog_lookup``.

    Fails on the first unknown product or bad quantity; nothing is
    returned partially priced.
    """
    gst_rate = settings.GST_RATE if gst_rate is None else Decimal(gst_rate)
    items = list(items)
    if not items:
        raise ValidationError("Order must contain at least one item")

    priced = PricedOrder()
    for requested in items:
        validate_quantity(requested.quantity)
        product = catalog_lookup(requested.product_id)
        if product is None:
            raise ProductNotFound(requested.product_id)
        line = price_line(product, requested.quantity, gst_rate)
        priced.items.append(line)
        priced.subtotal += line.item_total
        priced.total_discount += line.discount
        priced.total_gst += line.gst_amount

    priced.subtotal = to_money(priced.subtotal)
    priced.total_discount = to_money(priced.total_discount)
    priced.total_gst = to_money(priced.total_gst)
    priced.grand_total = compute_grand_total(priced.subtotal, priced.total_gst, priced.total_discount)
    return priced
