# backoffice/seed.py
"""Loads the sample catalog and opening stock into an empty database.

Run with ``python -m backoffice.seed``.
"""
import logging
from decimal import Decimal

from backoffice.database import SessionLocal, init_db
from backoffice.models.product import Product
from backoffice.models.stock import MovementKind, ReferenceType
from backoffice.services import ledger

logger = logging.getLogger(__name__)

SEED_ACTOR = "seed"
OPENING_STOCK = 100

PRODUCTS = [
    {"sku": "s1", "name": "TMT Bar - Grade 550D", "category": "steel", "price": Decimal("65000"), "unit": "Ton",
     "description": "High-strength TMT bars suitable for heavy construction. Earthquake resistant."},
    {"sku": "s2", "name": "MS Square Pipes", "category": "steel", "price": Decimal("58"), "unit": "Kg",
     "description": "Mild Steel square pipes for structural fabrication."},
    {"sku": "c1", "name": "UltraTech OPC 53 Grade", "category": "cement", "price": Decimal("420"), "unit": "Bag",
     "description": "Ordinary Portland Cement for high-strength concrete."},
    {"sku": "c2", "name": "White Cement", "category": "cement", "price": Decimal("850"), "unit": "Bag",
     "description": "White cement for finishing and decorative work."},
    {"sku": "e1", "name": "Modular Switches Set", "category": "electronics", "price": Decimal("1200"), "unit": "Box",
     "description": "Elegant modular switches, fire resistant."},
    {"sku": "e2", "name": "Copper Wiring 2.5mm", "category": "electronics", "price": Decimal("1800"), "unit": "Coil",
     "description": "Pure copper wiring for domestic and industrial use."},
]


def seed(db, opening_stock: int = OPENING_STOCK) -> int:
    """Insert missing catalog entries with an opening stock_in each; returns how many were added."""
    added = 0
    for data in PRODUCTS:
        if db.query(Product).filter(Product.sku == data["sku"]).first():
            continue
        db.add(Product(**data))
        db.commit()
        ledger.apply_movement(
            db, data["sku"], MovementKind.STOCK_IN, opening_stock, SEED_ACTOR,
            ledger.MovementMetadata(reference_type=ReferenceType.PURCHASE.value, notes="Opening stock"),
        )
        added += 1
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
    session = SessionLocal()
    try:
        count = seed(session)
        logger.info("Seeded %s products", count)
    finally:
        session.close()
