"""Sale core: commit, rejection, compensation and replay behaviour."""
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.errors import (
    InsufficientStock,
    MedicineNotFound,
    ReconciliationRequired,
    SaleAborted,
    SaleCancelled,
    ValidationFailed,
)
from app.core.result import Err, Ok
from app.models import Medicine, Receipt, ReceiptItem, SaleRequest
from app.schemas.sale import SaleCreate
from app.services import receipt_builder, sale_coordinator
from app.services.inventory_ledger import ReservationOutcome
from app.services.sale_coordinator import record_sale
from conftest import add_medicine, stock_of


def sale(*lines, method="cash", token=None, customer="Walk-in"):
    return SaleCreate(
        customer_name=customer,
        payment_method=method,
        items=[{"medicine_id": m, "quantity": q} for m, q in lines],
        request_token=token,
    )


def receipt_count(session_factory) -> int:
    s = session_factory()
    try:
        return s.query(Receipt).count()
    finally:
        s.close()


def test_sale_commits_and_decrements_stock(db, session_factory, tenants):
    med = add_medicine(db, stock=5, buying="6.00", selling="10.00")

    result = record_sale(db, tenants.ctx, sale((med.id, 3)))

    assert isinstance(result, Ok)
    receipt = result.value
    assert receipt.total_amount == Decimal("30.00")
    assert len(receipt.items) == 1
    item = receipt.items[0]
    assert item.quantity == 3
    assert item.total == Decimal("30.00")
    assert item.profit == Decimal("12.00")
    assert stock_of(session_factory, med.id) == 2
    assert db.query(SaleRequest).one().state == "COMMITTED"


def test_total_equals_sum_of_items_for_multi_item_sale(db, session_factory, tenants):
    a = add_medicine(db, name="Amoxicillin", stock=10, buying="3.10", selling="4.25")
    b = add_medicine(db, name="Cetirizine", stock=8, buying="0.40", selling="1.15")

    result = record_sale(db, tenants.ctx, sale((a.id, 3), (b.id, 7)))

    assert isinstance(result, Ok)
    receipt = result.value
    assert receipt.total_amount == sum(i.selling_price * i.quantity for i in receipt.items)
    assert receipt.total_amount == Decimal("20.80")
    assert stock_of(session_factory, a.id) == 7
    assert stock_of(session_factory, b.id) == 1


def test_insufficient_stock_commits_nothing(db, session_factory, tenants):
    med = add_medicine(db, stock=2)

    result = record_sale(db, tenants.ctx, sale((med.id, 3)))

    assert isinstance(result, Err)
    assert isinstance(result.error, InsufficientStock)
    assert result.error.available == 2
    assert "2 left, reduce quantity" in result.error.message
    assert stock_of(session_factory, med.id) == 2
    assert receipt_count(session_factory) == 0


def test_lost_reservation_releases_earlier_items(db, session_factory, tenants, monkeypatch):
    first = add_medicine(db, name="Ibuprofen", stock=5)
    second = add_medicine(db, name="Omeprazole", stock=5)
    real_reserve = sale_coordinator.reserve_stock

    def reserve_after_competing_sale(session, pharmacy_id, medicine_id, quantity):
        if medicine_id == second.id:
            # Another till sells 4 between our pre-check and our reservation
            other = session_factory()
            other.execute(update(Medicine).where(Medicine.id == second.id).values(stock_quantity=1))
            other.commit()
            other.close()
        return real_reserve(session, pharmacy_id, medicine_id, quantity)

    monkeypatch.setattr(sale_coordinator, "reserve_stock", reserve_after_competing_sale)

    result = record_sale(db, tenants.ctx, sale((second.id, 3), (first.id, 2)))

    assert isinstance(result, Err)
    assert result.error == InsufficientStock(second.id, 3, 1, "Omeprazole")
    assert stock_of(session_factory, first.id) == 5
    assert stock_of(session_factory, second.id) == 1
    assert receipt_count(session_factory) == 0


def test_reservations_taken_in_ascending_medicine_order(db, tenants, monkeypatch):
    meds = [add_medicine(db, name=f"Med {n}", stock=5) for n in range(3)]
    order = []
    real_reserve = sale_coordinator.reserve_stock

    def recording_reserve(session, pharmacy_id, medicine_id, quantity):
        order.append(medicine_id)
        return real_reserve(session, pharmacy_id, medicine_id, quantity)

    monkeypatch.setattr(sale_coordinator, "reserve_stock", recording_reserve)

    result = record_sale(db, tenants.ctx, sale((meds[2].id, 1), (meds[0].id, 1), (meds[1].id, 1)))

    assert isinstance(result, Ok)
    assert order == sorted(m.id for m in meds)


def test_same_token_twice_creates_one_receipt(db, session_factory, tenants):
    med = add_medicine(db, stock=5)
    request = sale((med.id, 2), token="till-1-0001")

    first = record_sale(db, tenants.ctx, request)
    second = record_sale(db, tenants.ctx, request)

    assert isinstance(first, Ok) and isinstance(second, Ok)
    assert first.value.id == second.value.id
    assert receipt_count(session_factory) == 1
    assert stock_of(session_factory, med.id) == 3


def test_token_in_flight_is_not_run_again(db, session_factory, tenants):
    med = add_medicine(db, stock=5)
    db.add(SaleRequest(token="busy-token", pharmacy_id=1, staff_id=1, state="RESERVING"))
    db.commit()

    result = record_sale(db, tenants.ctx, sale((med.id, 1), token="busy-token"))

    assert isinstance(result, Err)
    assert result.error.code == "sale_in_progress"
    assert stock_of(session_factory, med.id) == 5


def test_aborted_token_can_be_retried(db, session_factory, tenants):
    med = add_medicine(db, stock=5)
    request = sale((med.id, 3), token="retry-me")

    cancelled = record_sale(db, tenants.ctx, request, should_cancel=lambda: True)
    assert isinstance(cancelled.error, SaleCancelled)
    assert db.query(SaleRequest).filter_by(token="retry-me").one().state == "ABORTED"

    retried = record_sale(db, tenants.ctx, request)

    assert isinstance(retried, Ok)
    assert stock_of(session_factory, med.id) == 2
    assert db.query(SaleRequest).filter_by(token="retry-me").one().state == "COMMITTED"


def test_token_from_another_pharmacy_is_refused(db, tenants):
    med = add_medicine(db, stock=5)
    other_med = add_medicine(db, pharmacy_id=2, stock=5)
    assert isinstance(record_sale(db, tenants.ctx, sale((med.id, 1), token="shared")), Ok)

    result = record_sale(db, tenants.other_ctx, sale((other_med.id, 1), token="shared"))

    assert isinstance(result, Err)
    assert isinstance(result.error, ValidationFailed)


def test_item_prices_do_not_follow_later_price_edits(db, tenants):
    med = add_medicine(db, stock=5, buying="6.00", selling="10.00")
    result = record_sale(db, tenants.ctx, sale((med.id, 1)))
    item_id = result.value.items[0].id

    med = db.get(Medicine, med.id)
    med.buying_price = Decimal("8.00")
    med.selling_price = Decimal("15.00")
    db.commit()

    item = db.get(ReceiptItem, item_id)
    db.refresh(item)
    assert item.buying_price == Decimal("6.00")
    assert item.selling_price == Decimal("10.00")
    assert item.profit == Decimal("4.00")


def test_persistence_failure_restores_stock(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)
    calls = []

    def failing_persist(session, draft, sale_request):
        calls.append(1)
        raise OperationalError("INSERT INTO receipts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(receipt_builder, "persist_receipt", failing_persist)

    result = record_sale(db, tenants.ctx, sale((med.id, 3), token="doomed"))

    assert isinstance(result, Err)
    assert isinstance(result.error, SaleAborted)
    assert len(calls) == 2  # first try + one retry
    assert stock_of(session_factory, med.id) == 5
    assert receipt_count(session_factory) == 0
    record = db.query(SaleRequest).filter_by(token="doomed").one()
    assert record.state == "ABORTED"
    assert record.error_code == "sale_aborted"


def test_transient_persistence_failure_is_retried(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)
    real_persist = receipt_builder.persist_receipt
    failures = [OperationalError("INSERT INTO receipts", {}, Exception("database is locked"))]

    def flaky_persist(session, draft, sale_request):
        if failures:
            raise failures.pop()
        return real_persist(session, draft, sale_request)

    monkeypatch.setattr(receipt_builder, "persist_receipt", flaky_persist)

    result = record_sale(db, tenants.ctx, sale((med.id, 3)))

    assert isinstance(result, Ok)
    assert stock_of(session_factory, med.id) == 2
    assert receipt_count(session_factory) == 1


def test_non_transient_persistence_failure_is_not_retried(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)
    calls = []

    def broken_persist(session, draft, sale_request):
        calls.append(1)
        raise IntegrityError("INSERT INTO receipt_items", {}, Exception("constraint failed"))

    monkeypatch.setattr(receipt_builder, "persist_receipt", broken_persist)

    result = record_sale(db, tenants.ctx, sale((med.id, 1)))

    assert isinstance(result.error, SaleAborted)
    assert len(calls) == 1
    assert stock_of(session_factory, med.id) == 5


def test_error_after_receipt_commit_does_not_sell_twice(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)
    real_persist = receipt_builder.persist_receipt
    calls = []

    def persist_then_drop_connection(session, draft, sale_request):
        calls.append(1)
        receipt = real_persist(session, draft, sale_request)
        if len(calls) == 1:
            raise OperationalError("SELECT receipts", {}, Exception("connection dropped"))
        return receipt

    monkeypatch.setattr(receipt_builder, "persist_receipt", persist_then_drop_connection)

    result = record_sale(db, tenants.ctx, sale((med.id, 3), token="t1"))

    assert isinstance(result, Ok)
    assert len(calls) == 1
    assert receipt_count(session_factory) == 1
    assert stock_of(session_factory, med.id) == 2
    record = db.query(SaleRequest).filter_by(token="t1").one()
    assert record.state == "COMMITTED"
    assert record.receipt_id == result.value.id


def test_permanent_error_after_receipt_commit_keeps_the_sale(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)
    real_persist = receipt_builder.persist_receipt

    def persist_then_fail(session, draft, sale_request):
        real_persist(session, draft, sale_request)
        raise IntegrityError("UPDATE sale_requests", {}, Exception("constraint failed"))

    monkeypatch.setattr(receipt_builder, "persist_receipt", persist_then_fail)

    result = record_sale(db, tenants.ctx, sale((med.id, 3), token="t2"))

    assert isinstance(result, Ok)
    assert receipt_count(session_factory) == 1
    assert stock_of(session_factory, med.id) == 2  # not released for a committed receipt
    assert db.query(SaleRequest).filter_by(token="t2").one().state == "COMMITTED"


def test_unknown_persist_outcome_is_left_for_reconciliation(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)

    def failing_persist(session, draft, sale_request):
        raise OperationalError("COMMIT", {}, Exception("connection dropped"))

    def unreadable(session, request_id):
        raise OperationalError("SELECT sale_requests", {}, Exception("connection dropped"))

    monkeypatch.setattr(receipt_builder, "persist_receipt", failing_persist)
    monkeypatch.setattr(sale_coordinator, "_committed_receipt", unreadable)

    result = record_sale(db, tenants.ctx, sale((med.id, 3), token="t3"))

    assert isinstance(result.error, ReconciliationRequired)
    assert result.error.unreleased == ((med.id, 3),)
    assert stock_of(session_factory, med.id) == 2
    assert db.query(SaleRequest).filter_by(token="t3").one().state == "PERSISTING"


def test_failed_release_is_reported_for_reconciliation(db, session_factory, tenants, monkeypatch):
    med = add_medicine(db, stock=5)

    def failing_persist(session, draft, sale_request):
        raise OperationalError("INSERT INTO receipts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(receipt_builder, "persist_receipt", failing_persist)
    monkeypatch.setattr(sale_coordinator, "release_stock", lambda *args: ReservationOutcome.NOT_FOUND)

    result = record_sale(db, tenants.ctx, sale((med.id, 3), token="drifted"))

    assert isinstance(result, Err)
    assert isinstance(result.error, ReconciliationRequired)
    assert result.error.unreleased == ((med.id, 3),)
    assert stock_of(session_factory, med.id) == 2

    # The token is not re-armed: retrying could deduct the stock a second time
    replay = record_sale(db, tenants.ctx, sale((med.id, 3), token="drifted"))
    assert isinstance(replay.error, ReconciliationRequired)
    assert stock_of(session_factory, med.id) == 2


def test_cancel_before_persisting_releases_stock(db, session_factory, tenants):
    med = add_medicine(db, stock=5)
    polls = []

    def cancel_on_second_poll():
        polls.append(1)
        return len(polls) >= 2  # let reserving run, cancel before persisting

    result = record_sale(db, tenants.ctx, sale((med.id, 3)), should_cancel=cancel_on_second_poll)

    assert isinstance(result, Err)
    assert isinstance(result.error, SaleCancelled)
    assert stock_of(session_factory, med.id) == 5
    assert receipt_count(session_factory) == 0


def test_validation_rejects_before_any_mutation(db, session_factory, tenants):
    med = add_medicine(db, stock=5)
    bad_requests = [
        sale(method="cash"),
        sale((med.id, 0)),
        sale((med.id, -2)),
        sale((med.id, 1), method="cheque"),
        sale((med.id, 1), method=None),
    ]

    for request in bad_requests:
        result = record_sale(db, tenants.ctx, request)
        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationFailed)

    assert stock_of(session_factory, med.id) == 5
    assert receipt_count(session_factory) == 0
    assert db.query(SaleRequest).count() == 0


def test_medicine_from_another_pharmacy_is_not_found(db, session_factory, tenants):
    foreign = add_medicine(db, pharmacy_id=2, stock=5)

    result = record_sale(db, tenants.ctx, sale((foreign.id, 1)))

    assert isinstance(result, Err)
    assert result.error == MedicineNotFound(foreign.id)
    assert stock_of(session_factory, foreign.id) == 5
    assert db.query(SaleRequest).count() == 0


def test_repeated_medicine_lines_are_merged(db, session_factory, tenants):
    med = add_medicine(db, stock=5)

    result = record_sale(db, tenants.ctx, sale((med.id, 2), (med.id, 2)))

    assert isinstance(result, Ok)
    assert [i.quantity for i in result.value.items] == [4]
    assert stock_of(session_factory, med.id) == 1

    over = record_sale(db, tenants.ctx, sale((med.id, 1), (med.id, 1)))
    assert isinstance(over.error, InsufficientStock)


def test_debt_sale_keeps_customer_name(db, tenants):
    med = add_medicine(db, stock=5)

    result = record_sale(db, tenants.ctx, sale((med.id, 1), method="debt", customer="  Amina   Yusuf "))

    assert result.value.payment_method == "debt"
    assert result.value.customer_name == "Amina Yusuf"
    assert result.value.debt_paid_at is None
