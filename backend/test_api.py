"""HTTP surface: tenancy, error mapping and the main dashboard flows."""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db
from app.main import app
from conftest import add_medicine

CLERK = {"X-Staff-Id": "1"}
OTHER_CLERK = {"X-Staff-Id": "2"}
ADMIN = {"X-Staff-Id": "3"}


@pytest.fixture
def client(session_factory, tenants):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_requests_without_known_staff_are_rejected(client):
    assert client.get("/medicines").status_code == 401
    assert client.get("/medicines", headers={"X-Staff-Id": "99"}).status_code == 401


def test_record_sale_and_open_receipt(client, db):
    med = add_medicine(db, stock=5, buying="6.00", selling="10.00")

    resp = client.post(
        "/sales",
        json={
            "customer_name": "Walk-in",
            "payment_method": "cash",
            "items": [{"medicine_id": med.id, "quantity": 3}],
            "request_token": "web-0001",
        },
        headers=CLERK,
    )

    assert resp.status_code == 201
    body = resp.json()
    assert float(body["total_amount"]) == 30.0
    assert body["items"][0]["medicine_name"] == "Paracetamol 500mg"
    assert float(body["items"][0]["profit"]) == 12.0

    again = client.post(
        "/sales",
        json={"payment_method": "cash", "items": [{"medicine_id": med.id, "quantity": 3}], "request_token": "web-0001"},
        headers=CLERK,
    )
    assert again.status_code == 201
    assert again.json()["id"] == body["id"]

    detail = client.get(f"/receipts/{body['id']}", headers=CLERK)
    assert detail.status_code == 200
    assert client.get("/medicines", headers=CLERK).json()[0]["stock_quantity"] == 2


def test_sale_errors_map_to_status_codes(client, db):
    med = add_medicine(db, stock=2)

    short = client.post(
        "/sales",
        json={"payment_method": "cash", "items": [{"medicine_id": med.id, "quantity": 3}]},
        headers=CLERK,
    )
    assert short.status_code == 409
    assert "2 left, reduce quantity" in short.json()["detail"]

    empty = client.post("/sales", json={"payment_method": "cash", "items": []}, headers=CLERK)
    assert empty.status_code == 400

    unknown = client.post(
        "/sales",
        json={"payment_method": "cash", "items": [{"medicine_id": 999, "quantity": 1}]},
        headers=CLERK,
    )
    assert unknown.status_code == 404


def test_admin_must_name_pharmacy_to_sell(client, db):
    med = add_medicine(db, stock=5)
    payload = {"payment_method": "card", "items": [{"medicine_id": med.id, "quantity": 1}]}

    assert client.post("/sales", json=payload, headers=ADMIN).status_code == 400
    resp = client.post("/sales?pharmacy_id=1", json=payload, headers=ADMIN)
    assert resp.status_code == 201
    assert resp.json()["staff_id"] == 3


def test_staff_cannot_reach_other_pharmacy(client, db):
    med = add_medicine(db, stock=5)
    receipt = client.post(
        "/sales", json={"payment_method": "cash", "items": [{"medicine_id": med.id, "quantity": 1}]}, headers=CLERK
    ).json()

    assert client.get(f"/receipts/{receipt['id']}", headers=OTHER_CLERK).status_code == 404
    assert client.get("/receipts?pharmacy_id=1", headers=OTHER_CLERK).status_code == 404
    assert client.get("/receipts", headers=OTHER_CLERK).json() == []
    assert client.patch(f"/medicines/{med.id}", json={"selling_price": "1.00"}, headers=OTHER_CLERK).status_code == 404
    assert len(client.get("/receipts", headers=ADMIN).json()) == 1


def test_receipt_filters(client, db):
    med = add_medicine(db, stock=10)
    for method, customer in (("cash", "Amina"), ("debt", "Brian"), ("card", "Amina")):
        client.post(
            "/sales",
            json={"payment_method": method, "customer_name": customer, "items": [{"medicine_id": med.id, "quantity": 1}]},
            headers=CLERK,
        )

    assert len(client.get("/receipts", headers=CLERK).json()) == 3
    assert [r["payment_method"] for r in client.get("/receipts?payment_method=debt", headers=CLERK).json()] == ["debt"]
    assert len(client.get("/receipts?customer=ami", headers=CLERK).json()) == 2
    assert len(client.get("/receipts?debt_unpaid=true", headers=CLERK).json()) == 1


def test_medicine_crud_and_referenced_delete(client, db):
    created = client.post(
        "/medicines",
        json={"name": "Zinc Syrup", "buying_price": "2.00", "selling_price": "3.50", "stock_quantity": 12},
        headers=CLERK,
    )
    assert created.status_code == 201
    medicine = created.json()
    assert medicine["pharmacy_id"] == 1
    assert medicine["low_stock_threshold"] == 10
    assert float(medicine["unit_profit"]) == 1.5

    assert client.post("/medicines", json={"name": "Bad", "stock_quantity": -1}, headers=CLERK).status_code == 400

    client.post(
        "/sales", json={"payment_method": "cash", "items": [{"medicine_id": medicine["id"], "quantity": 1}]}, headers=CLERK
    )
    updated = client.patch(f"/medicines/{medicine['id']}", json={"selling_price": "9.99"}, headers=CLERK)
    assert float(updated.json()["selling_price"]) == 9.99
    assert float(client.get("/receipts/1", headers=CLERK).json()["items"][0]["selling_price"]) == 3.5

    assert client.delete(f"/medicines/{medicine['id']}", headers=CLERK).status_code == 409

    unsold = add_medicine(db, name="Never Sold", stock=1)
    assert client.delete(f"/medicines/{unsold.id}", headers=CLERK).status_code == 200
    assert client.get(f"/medicines/{unsold.id}", headers=CLERK).status_code == 404


def test_customer_debt_flow(client, db):
    med = add_medicine(db, stock=10, selling="10.00")
    receipt = client.post(
        "/sales",
        json={"payment_method": "debt", "customer_name": "Brian", "items": [{"medicine_id": med.id, "quantity": 2}]},
        headers=CLERK,
    ).json()

    listing = client.get("/debts/customers", headers=CLERK).json()
    assert float(listing["unpaid_total"]) == 20.0
    assert [d["id"] for d in listing["debts"]] == [receipt["id"]]

    paid = client.post(f"/debts/customers/{receipt['id']}/pay", headers=CLERK)
    assert paid.status_code == 200
    assert paid.json()["debt_paid_by"] == 1
    assert client.post(f"/debts/customers/{receipt['id']}/pay", headers=CLERK).status_code == 409
    assert client.get("/debts/customers", headers=CLERK).json()["debts"] == []


def test_admin_only_routes(client):
    assert client.get("/pharmacies", headers=CLERK).status_code == 403
    assert client.get("/debts/admin", headers=CLERK).status_code == 403

    created = client.post("/pharmacies", json={"name": "Hilltop Pharmacy"}, headers=ADMIN)
    assert created.status_code == 201
    pharmacy_id = created.json()["id"]

    staff = client.post(
        "/pharmacies/staff",
        json={"email": "new@hilltop-pharmacy.com", "role": "staff", "pharmacy_id": pharmacy_id},
        headers=ADMIN,
    )
    assert staff.status_code == 201
    assert client.post(
        "/pharmacies/staff", json={"email": "new@hilltop-pharmacy.com", "role": "staff", "pharmacy_id": pharmacy_id}, headers=ADMIN
    ).status_code == 409
    assert client.post("/pharmacies/staff", json={"email": "x@hilltop-pharmacy.com", "role": "staff"}, headers=ADMIN).status_code == 400

    debt = client.post("/debts/admin", json={"person_name": "Supplier", "amount": "120.00"}, headers=ADMIN).json()
    toggled = client.patch(f"/debts/admin/{debt['id']}", json={"is_paid": True}, headers=ADMIN).json()
    assert toggled["is_paid"] and toggled["paid_at"] is not None
    assert float(client.get("/debts/admin", headers=ADMIN).json()["unpaid_total"]) == 0.0


def test_notification_scan_and_confirm(client, db):
    add_medicine(db, name="Insulin", stock=1, threshold=5, expiry=date.today() + timedelta(days=3))

    first = client.post("/notifications/scan", headers=CLERK).json()
    second = client.post("/notifications/scan", headers=CLERK).json()
    assert {n["type"] for n in first} == {"low_stock", "expiring"}
    assert sorted(n["id"] for n in first) == sorted(n["id"] for n in second)

    pending = client.get("/notifications?confirmed=false", headers=CLERK).json()
    assert len(pending) == 2
    assert pending[0]["medicine_name"] == "Insulin"

    confirmed = client.post(f"/notifications/{pending[0]['id']}/confirm", headers=CLERK).json()
    assert confirmed["is_confirmed"] and confirmed["confirmed_by"] == 1
    assert client.post(f"/notifications/{pending[0]['id']}/confirm", headers=OTHER_CLERK).status_code == 404
    assert len(client.get("/notifications?confirmed=false", headers=CLERK).json()) == 1


def test_profit_summary(client, db):
    med = add_medicine(db, stock=10, buying="6.00", selling="10.00")
    client.post("/sales", json={"payment_method": "cash", "items": [{"medicine_id": med.id, "quantity": 3}]}, headers=CLERK)
    client.post("/sales", json={"payment_method": "debt", "items": [{"medicine_id": med.id, "quantity": 1}]}, headers=CLERK)

    summary = client.get("/analytics/summary", headers=CLERK).json()
    assert summary["year"] == {"revenue": 40.0, "cost": 24.0, "profit": 16.0}
    assert summary["receipts"] == 2
    assert summary["unpaid_debt"] == 10.0

    other = client.get("/analytics/summary", headers=OTHER_CLERK).json()
    assert other["year"]["revenue"] == 0.0

    months = client.get("/analytics/monthly", headers=ADMIN).json()
    assert len(months) == 12
    assert sum(m["profit"] for m in months) == 16.0
