# backoffice/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint, func
from backoffice.database import Base

# Catalog entry owned by catalog management.
# The core only reads price and unit; on-hand quantity and availability
# are derived from the stock ledger (see services/ledger.py), never stored here.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False, index=True)

    price = Column(Numeric(12, 2), CheckConstraint("price >= 0"), nullable=False)
    unit = Column(String, nullable=False)

    description = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
