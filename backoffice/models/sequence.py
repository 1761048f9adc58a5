# backoffice/models/sequence.py
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, func
from backoffice.database import Base


# One counter row per (scope, period), e.g. ("order", "202610").
# Incremented with a single UPDATE so concurrent issuers never share a value.
class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True)
    scope = Column(String(32), nullable=False)
    period = Column(String(6), nullable=False)
    last_value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("scope", "period", name="uq_sequence_counters_scope_period"),
    )
