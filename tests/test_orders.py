from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from backoffice.errors import (
    InvalidQuantity, InvalidTransition, InvoiceAlreadyIssued, OrderNotFound, ProductNotFound, ValidationError,
)
from backoffice.models.order import Order, PaymentStatus
from backoffice.models.sequence import SequenceCounter
from backoffice.models.stock import MovementKind, StockMovement
from backoffice.services import ledger, sequence
from backoffice.services.orders import (
    CustomerInfo, create_order, issue_invoice, payment_status_for, update_order_payment, get_order, list_orders,
)
from backoffice.services.pricing import RequestedItem

CUSTOMER = CustomerInfo(name="Civil Tech Constructions", phone="9840000000", gstin="33ABCDE1234F1Z5")


def _order(db, items=None, **kwargs):
    items = items or [RequestedItem("s1", 2), RequestedItem("s2", 10)]
    return create_order(db, CUSTOMER, items, actor="staff-1", **kwargs)


@pytest.mark.parametrize("paid, total, expected", [
    (0, 100, PaymentStatus.PENDING),
    (50, 100, PaymentStatus.PARTIAL),
    (100, 100, PaymentStatus.PAID),
    (150, 100, PaymentStatus.PAID),
    (Decimal("99.99"), Decimal("100.00"), PaymentStatus.PARTIAL),
])
def test_payment_status_is_a_function_of_paid_and_total(paid, total, expected):
    assert payment_status_for(paid, total) == expected


def test_create_order_prices_numbers_and_snapshots(db, stocked):
    order = _order(db)

    assert order.order_number == f"ORD{sequence.current_period()}0001"
    assert order.invoice_number is None
    assert order.status == "confirmed"
    assert order.subtotal == Decimal("130580.00")
    assert order.total_gst == Decimal("23504.40")
    assert order.grand_total == Decimal("154084.40")
    assert order.total_discount == Decimal("0.00")
    assert order.payment_method == "cash"
    assert order.payment_status == "pending"
    assert order.amount_paid == Decimal("0.00")
    assert order.amount_due == Decimal("154084.40")
    assert order.customer_name == "Civil Tech Constructions"
    assert order.customer_gstin == "33ABCDE1234F1Z5"
    assert order.created_by == "staff-1"

    first, second = order.items
    assert (first.sku, first.product_name, first.unit, first.quantity) == ("s1", "TMT Bar - Grade 550D", "Ton", 2)
    assert (second.sku, second.quantity, second.gst_amount) == ("s2", 10, Decimal("104.40"))


def test_order_numbers_increase(db, stocked):
    numbers = [_order(db, [RequestedItem("c1", 1)]).order_number for _ in range(3)]
    period = sequence.current_period()
    assert numbers == [f"ORD{period}0001", f"ORD{period}0002", f"ORD{period}0003"]


def test_initial_payment_sets_status(db, stocked):
    order = _order(db, [RequestedItem("s2", 10)], amount_paid=Decimal("300"), payment_method="upi")
    assert order.grand_total == Decimal("684.40")
    assert order.payment_status == "partial"
    assert order.amount_due == Decimal("384.40")
    assert order.payment_method == "upi"


def test_confirmed_order_takes_stock(db, stocked):
    order = _order(db)

    assert ledger.on_hand(db, stocked["s1"]) == 18
    assert ledger.on_hand(db, stocked["s2"]) == 10
    outs = db.query(StockMovement).filter(StockMovement.reference_id == order.id).all()
    assert {(m.kind, m.reference_type, m.quantity) for m in outs} == {
        ("stock_out", "order", 2), ("stock_out", "order", 10),
    }


def test_draft_order_takes_stock_on_confirmation(db, stocked):
    order = _order(db, [RequestedItem("c1", 5)], status="draft")
    assert order.status == "draft"
    assert ledger.on_hand(db, stocked["c1"]) == 20

    order = update_order_payment(db, order.id, actor="admin-1", status="confirmed")
    assert order.status == "confirmed"
    assert ledger.on_hand(db, stocked["c1"]) == 15


def test_cancelling_returns_what_was_actually_removed(db, products):
    ledger.apply_movement(db, "c1", MovementKind.STOCK_IN, 1, "tester")
    order = _order(db, [RequestedItem("c1", 3)])
    assert ledger.on_hand(db, products["c1"]) == 0

    order = update_order_payment(db, order.id, actor="admin-1", status="cancelled")
    assert order.status == "cancelled"
    assert ledger.on_hand(db, products["c1"]) == 1
    returned = (
        db.query(StockMovement)
        .filter(StockMovement.reference_id == order.id, StockMovement.kind == "return")
        .one()
    )
    assert returned.quantity == 1


def test_cancelling_draft_leaves_stock_alone(db, stocked):
    order = _order(db, [RequestedItem("c1", 5)], status="draft")
    update_order_payment(db, order.id, actor="admin-1", status="cancelled")
    assert ledger.on_hand(db, stocked["c1"]) == 20


def test_create_order_fails_atomically_on_unknown_product(db, stocked):
    with pytest.raises(ProductNotFound):
        _order(db, [RequestedItem("s1", 1), RequestedItem("missing", 1)])

    assert db.query(Order).count() == 0
    assert db.query(StockMovement).filter(StockMovement.kind == "stock_out").count() == 0
    assert db.query(SequenceCounter).count() == 0


def test_create_order_rejects_bad_input(db, stocked):
    with pytest.raises(InvalidQuantity):
        _order(db, [RequestedItem("s1", 0)])
    with pytest.raises(ValidationError):
        create_order(db, CustomerInfo(name="  "), [RequestedItem("s1", 1)], actor="staff-1")
    with pytest.raises(ValidationError):
        _order(db, payment_method="cheque")
    with pytest.raises(ValidationError):
        _order(db, status="completed")
    with pytest.raises(ValidationError):
        _order(db, amount_paid=Decimal("-1"))
    assert db.query(Order).count() == 0


def test_payment_updates(db, stocked):
    order = _order(db, [RequestedItem("s2", 10)])

    order = update_order_payment(db, order.id, actor="admin-1", amount_paid=Decimal("342.20"))
    assert order.payment_status == "partial"
    assert order.amount_due == Decimal("342.20")
    assert order.processed_by == "admin-1"

    order = update_order_payment(db, order.id, actor="admin-1", amount_paid=Decimal("684.40"))
    assert order.payment_status == "paid"
    assert order.amount_due == Decimal("0.00")


def test_overpayment_leaves_a_credit(db, stocked):
    order = _order(db, [RequestedItem("s2", 10)])
    order = update_order_payment(db, order.id, actor="admin-1", amount_paid=Decimal("700"))

    assert order.payment_status == "paid"
    assert order.amount_due == Decimal("-15.60")


def test_negative_payment_rejected(db, stocked):
    order = _order(db, [RequestedItem("s2", 1)])
    with pytest.raises(ValidationError):
        update_order_payment(db, order.id, actor="admin-1", amount_paid=Decimal("-5"))


def test_notes_update(db, stocked):
    order = _order(db, [RequestedItem("s2", 1)])
    order = update_order_payment(db, order.id, actor="admin-1", notes="Deliver after 5pm")
    assert order.notes == "Deliver after 5pm"
    assert order.status == "confirmed"


def test_status_transitions(db, stocked):
    order = _order(db, [RequestedItem("s2", 1)])
    order = update_order_payment(db, order.id, actor="admin-1", status="processing")
    assert order.status == "processing"

    with pytest.raises(InvalidTransition):
        update_order_payment(db, order.id, actor="admin-1", status="confirmed")
    with pytest.raises(InvalidTransition):
        update_order_payment(db, order.id, actor="admin-1", status="completed")
    with pytest.raises(ValidationError):
        update_order_payment(db, order.id, actor="admin-1", status="shipped")

    order = update_order_payment(db, order.id, actor="admin-1", status="cancelled")
    with pytest.raises(InvalidTransition):
        update_order_payment(db, order.id, actor="admin-1", status="processing")


def test_issue_invoice_completes_order(db, stocked):
    order = _order(db)
    order = issue_invoice(db, order.id, actor="admin-1")

    assert order.invoice_number == f"INV{sequence.current_period()}0001"
    assert order.status == "completed"
    assert order.invoiced_at is not None
    assert order.processed_by == "admin-1"


def test_second_invoice_is_rejected_and_changes_nothing(db, stocked):
    order = _order(db)
    issued = issue_invoice(db, order.id, actor="admin-1")
    number, status = issued.invoice_number, issued.status

    with pytest.raises(InvoiceAlreadyIssued):
        issue_invoice(db, order.id, actor="admin-2")

    db.expire_all()
    again = get_order(db, order.id)
    assert again.invoice_number == number
    assert again.status == status
    assert again.processed_by == "admin-1"


def test_invoice_requires_confirmed_order(db, stocked):
    draft = _order(db, [RequestedItem("s2", 1)], status="draft")
    with pytest.raises(InvalidTransition):
        issue_invoice(db, draft.id, actor="admin-1")

    cancelled = _order(db, [RequestedItem("s2", 1)])
    update_order_payment(db, cancelled.id, actor="admin-1", status="cancelled")
    with pytest.raises(InvalidTransition):
        issue_invoice(db, cancelled.id, actor="admin-1")

    assert db.query(SequenceCounter).filter(SequenceCounter.scope == "invoice").count() == 0


def test_completed_order_is_terminal(db, stocked):
    order = _order(db, [RequestedItem("s2", 1)])
    issue_invoice(db, order.id, actor="admin-1")
    with pytest.raises(InvalidTransition):
        update_order_payment(db, order.id, actor="admin-1", status="cancelled")


def test_catalog_edits_do_not_change_historical_orders(db, stocked):
    order = _order(db)
    product = stocked["s1"]
    product.price = Decimal("70000")
    product.name = "TMT Bar - Grade 600"
    db.commit()

    db.expire_all()
    again = get_order(db, order.id)
    assert again.grand_total == Decimal("154084.40")
    assert again.items[0].unit_price == Decimal("65000.00")
    assert again.items[0].product_name == "TMT Bar - Grade 550D"


def test_unknown_order(db):
    with pytest.raises(OrderNotFound):
        get_order(db, 999)
    with pytest.raises(OrderNotFound):
        issue_invoice(db, 999, actor="admin-1")


def test_list_orders_filters(db, stocked):
    first = _order(db, [RequestedItem("s2", 1)])
    create_order(db, CustomerInfo(name="Rajesh Kumar"), [RequestedItem("c1", 1)], actor="staff-1")
    update_order_payment(db, first.id, actor="admin-1", status="processing")

    rows, total = list_orders(db, search="rajesh")
    assert total == 1
    assert rows[0].customer_name == "Rajesh Kumar"

    rows, total = list_orders(db, status="processing")
    assert [o.id for o in rows] == [first.id]

    rows, total = list_orders(db, page=1, page_size=1)
    assert total == 2
    assert len(rows) == 1


def test_concurrent_order_creation_yields_unique_numbers(stocked, session_factory):
    workers = 6

    def place(_):
        session = session_factory()
        try:
            return create_order(session, CUSTOMER, [RequestedItem("s2", 1)], actor="staff-1").order_number
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        numbers = list(pool.map(place, range(workers)))

    assert len(set(numbers)) == workers


def test_oversized_amounts_are_rejected(db, stocked):
    with pytest.raises(ValidationError):
        _order(db, amount_paid=Decimal("1e30"))
    with pytest.raises(ValidationError):
        _order(db, [RequestedItem("s1", 10 ** 8)])
    assert db.query(Order).count() == 0

    order = _order(db, [RequestedItem("s2", 1)])
    with pytest.raises(ValidationError):
        update_order_payment(db, order.id, actor="admin-1", amount_paid=Decimal("1e30"))
    db.expire_all()
    assert get_order(db, order.id).amount_paid == Decimal("0.00")


def test_concurrent_invoice_issuance_issues_one_number(db, stocked, session_factory):
    order_id = _order(db).id
    workers = 6

    def invoice(_):
        session = session_factory()
        try:
            return issue_invoice(session, order_id, actor="admin-1").invoice_number
        except InvoiceAlreadyIssued:
            return None
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(invoice, range(workers)))

    issued = [number for number in results if number]
    assert issued == [f"INV{sequence.current_period()}0001"]
    assert results.count(None) == workers - 1

    db.expire_all()
    assert get_order(db, order_id).invoice_number == issued[0]
    counter = db.query(SequenceCounter).filter(SequenceCounter.scope == "invoice").one()
    # Losing issuers rolled back their allocation
    assert counter.last_value == 1
