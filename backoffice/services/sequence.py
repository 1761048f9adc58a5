# backoffice/services/sequence.py
"""
Human-readable document numbers, unique per scope and calendar month.

Format: PREFIX + YYYY + MM + zero-padded ordinal, e.g. ORD2026100007.

The ordinal comes from a counter row that is bumped with a single
``UPDATE ... SET last_value = last_value + 1``; the database serializes
concurrent updates of that row, so two callers can never read the same
value. The very first number of a period inserts the row instead, and a
concurrent first insert loses on the (scope, period) unique constraint.
That IntegrityError is left to propagate: the caller's ``run_with_retry``
rolls the whole unit of work back and tries again, and by then the row
exists.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update, select
from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.errors import ValidationError, SequenceExhausted
from backoffice.models.sequence import SequenceCounter
from backoffice.services.concurrency import run_with_retry

ORDER_SCOPE = "order"
INVOICE_SCOPE = "invoice"


def _prefixes() -> dict:
    return {
        ORDER_SCOPE: settings.ORDER_NUMBER_PREFIX,
        INVOICE_SCOPE: settings.INVOICE_NUMBER_PREFIX,
    }


def current_period(now: Optional[datetime] = None) -> str:
    """YYYYMM of the given moment (UTC now by default)."""
    now = now or datetime.now(timezone.utc)
    return f"{now.year:04d}{now.month:02d}"


def format_identifier(prefix: str, period: str, ordinal: int, pad: int = None) -> str:
    pad = pad or settings.SEQUENCE_PAD
    return f"{prefix}{period}{ordinal:0{pad}d}"


def allocate(db: Session, scope: str, period: str) -> int:
    """Bump the counter for (scope, period) inside the caller's transaction."""
    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.scope == scope, SequenceCounter.period == period)
        .values(last_value=SequenceCounter.last_value + 1)
    )
    result = db.execute(stmt)
    if result.rowcount:
        return db.execute(
            select(SequenceCounter.last_value).where(
                SequenceCounter.scope == scope, SequenceCounter.period == period
            )
        ).scalar_one()

    db.add(SequenceCounter(scope=scope, period=period, last_value=1))
    db.flush()
    return 1


def next_identifier(db: Session, scope: str, period: Optional[str] = None) -> str:
    """
    Issue the next identifier for ``scope`` within the caller's transaction.

    The number is only reserved once the caller commits; callers wrap their
    whole unit of work in ``run_with_retry``.
    """
    prefixes = _prefixes()
    if scope not in prefixes:
        raise ValidationError(f"Unknown sequence scope: {scope}")
    period = period or current_period()
    ordinal = allocate(db, scope, period)
    return format_identifier(prefixes[scope], period, ordinal)


def issue_identifier(db: Session, scope: str, period: Optional[str] = None) -> str:
    """Issue and commit a standalone identifier."""
    return run_with_retry(
        db, lambda: next_identifier(db, scope, period), conflict_error=SequenceExhausted
    )
