# backoffice/models/stock.py
import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, DateTime, CheckConstraint,
    UniqueConstraint, Index, func,
)
from sqlalchemy.orm import relationship
from backoffice.database import Base


class MovementKind(str, enum.Enum):
    STOCK_IN = "stock_in"
    STOCK_OUT = "stock_out"
    ADJUSTMENT = "adjustment"
    RETURN = "return"
    DAMAGE = "damage"


# Kinds that add to on-hand quantity; every other kind removes from it
INBOUND_KINDS = frozenset({MovementKind.STOCK_IN, MovementKind.RETURN})


class ReferenceType(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    MANUAL = "manual"
    ORDER = "order"


# Append-only ledger entry. Rows are inserted once and never updated.
class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    # Position of this entry in the product's ledger (1, 2, 3, ...)
    sequence = Column(Integer, nullable=False)

    kind = Column(String(20), nullable=False, index=True)
    # Requested quantity, before any clamping
    quantity = Column(Integer, CheckConstraint("quantity > 0"), nullable=False)
    previous_stock = Column(Integer, CheckConstraint("previous_stock >= 0"), nullable=False)
    new_stock = Column(Integer, CheckConstraint("new_stock >= 0"), nullable=False)

    unit_price = Column(Numeric(12, 2), nullable=True)
    total_value = Column(Numeric(14, 2), nullable=True)

    supplier_name = Column(String, nullable=True)
    supplier_invoice_no = Column(String, nullable=True)

    reference_type = Column(String(20), nullable=True)
    reference_id = Column(Integer, nullable=True, index=True)

    notes = Column(String(500), nullable=True)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    product = relationship("Product")

    __table_args__ = (
        # Two writers that read the same ledger head collide here
        UniqueConstraint("product_id", "sequence", name="uq_stock_movement_product_sequence"),
        Index("ix_stock_movements_product_created", "product_id", "created_at"),
    )

    @property
    def delta(self) -> int:
        """Actual effect on on-hand quantity after clamping."""
        return self.new_stock - self.previous_stock

    @property
    def clamped(self) -> bool:
        """True when a decrement removed less than was requested."""
        return MovementKind(self.kind) not in INBOUND_KINDS and -self.delta < self.quantity
