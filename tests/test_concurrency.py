from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from backoffice.errors import Conflict, SequenceExhausted, Unavailable
from backoffice.models.product import Product
from backoffice.services.concurrency import run_with_retry


class Flaky:
    """Adds a product, then fails with ``error`` for the first ``failures`` calls."""

    def __init__(self, db, error, failures):
        self.db = db
        self.error = error
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        self.db.add(Product(sku=f"x{self.calls}", name="Tile", category="tiles", price=Decimal("1"), unit="Box"))
        self.db.flush()
        if self.calls <= self.failures:
            raise self.error
        return self.calls


def integrity_error():
    return IntegrityError("INSERT INTO products", {}, Exception("UNIQUE constraint failed"))


def operational_error():
    return OperationalError("UPDATE sequence_counters", {}, Exception("database is locked"))


@pytest.mark.parametrize("error, expected", [
    (integrity_error(), Conflict),
    (StaleDataError("version mismatch"), Conflict),
    (operational_error(), Unavailable),
])
def test_gives_up_after_the_attempt_budget(db, error, expected):
    work = Flaky(db, error, failures=10)
    with pytest.raises(expected):
        run_with_retry(db, work, attempts=3, backoff_base=0)

    assert work.calls == 3
    # Every failed attempt was rolled back
    assert db.query(Product).count() == 0


def test_conflict_error_can_be_specialised(db):
    with pytest.raises(SequenceExhausted):
        run_with_retry(db, Flaky(db, integrity_error(), failures=10), attempts=2, backoff_base=0,
                       conflict_error=SequenceExhausted)


def test_succeeds_once_the_conflict_clears(db):
    work = Flaky(db, operational_error(), failures=2)
    assert run_with_retry(db, work, attempts=3, backoff_base=0) == 3

    assert [p.sku for p in db.query(Product).all()] == ["x3"]


def test_other_errors_are_not_retried(db):
    work = Flaky(db, KeyError("boom"), failures=10)
    with pytest.raises(KeyError):
        run_with_retry(db, work, attempts=3, backoff_base=0)

    assert work.calls == 1
    assert db.query(Product).count() == 0
