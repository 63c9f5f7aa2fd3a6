import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def student(api):
    return api.create_student()


def _url(student, path):
    return f"/api/v1/students/{student['id']}/{path}"


def _pay(client, api, student, amount, **extra):
    return client.post(
        _url(student, "payments"), json={"payment_amount": amount, **extra}, headers=api.headers
    )


def _balance(client, api, student):
    r = client.get(_url(student, "balance"), headers=api.headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_balance_payment(client: TestClient, api, student):
    r = _pay(client, api, student, 500, notes="GCash")
    assert r.status_code == 201, r.text
    payment = r.json()
    assert payment["payment_for"] == "balance"
    assert payment["package_history_id"] is None
    assert payment["payment_date"] is not None

    summary = _balance(client, api, student)
    assert summary["total_payments"] == 500
    assert summary["remaining_balance"] == 2500

    r = client.get(f"/api/v1/students/{student['id']}", headers=api.headers)
    assert r.json()["remaining_balance"] == 2500

    r = client.get(_url(student, "payments"), headers=api.headers)
    assert r.json()["total"] == 1
    assert r.json()["payments"][0]["notes"] == "GCash"


def test_balance_never_negative(client: TestClient, api, student):
    assert _pay(client, api, student, 5000).status_code == 201
    assert _balance(client, api, student)["remaining_balance"] == 0


def test_payment_validation(client: TestClient, api, student):
    assert _pay(client, api, student, 0).status_code == 422
    assert _pay(client, api, student, 100, payment_for="extra_charge").status_code == 422
    assert _pay(client, api, student, 100, charge_id=1).status_code == 422

    r = _pay(client, api, student, 100, payment_for="extra_charge", charge_id=9999)
    assert r.status_code == 404


def test_charges_and_charge_payments(client: TestClient, api, student, today):
    r = client.post(
        _url(student, "charges"),
        json={"amount": 300, "description": "Jersey"},
        headers=api.headers,
    )
    assert r.status_code == 201, r.text
    charge = r.json()
    assert charge["charge_date"] == today.isoformat()
    assert charge["charge_type"] == "extra_charge"
    assert charge["is_paid"] is False
    assert charge["outstanding"] == 300

    summary = _balance(client, api, student)
    assert summary["total_charges"] == 300
    assert summary["unpaid_charges"] == 300
    assert summary["remaining_balance"] == 3300

    first = _pay(client, api, student, 100, payment_for="extra_charge", charge_id=charge["id"])
    assert first.status_code == 201
    assert first.json()["charge_id"] == charge["id"]

    r = _pay(client, api, student, 250, payment_for="extra_charge", charge_id=charge["id"])
    assert r.status_code == 400
    assert r.json()["message"] == "Payment exceeds the outstanding charge amount"

    second = _pay(client, api, student, 200, payment_for="extra_charge", charge_id=charge["id"])
    assert second.status_code == 201

    r = client.get(_url(student, "charges"), headers=api.headers)
    paid = r.json()["charges"][0]
    assert paid["is_paid"] is True
    assert paid["paid_at"] is not None
    assert paid["outstanding"] == 0

    r = _pay(client, api, student, 10, payment_for="extra_charge", charge_id=charge["id"])
    assert r.status_code == 400
    assert r.json()["error"] == "BUSINESS_LOGIC_ERROR"

    summary = _balance(client, api, student)
    assert summary["unpaid_charges"] == 0
    # Charge payments are not balance payments, but a settled charge is no longer owed
    assert summary["total_payments"] == 0
    assert summary["remaining_balance"] == 3000
    stored = client.get(f"/api/v1/students/{student['id']}", headers=api.headers).json()
    assert stored["remaining_balance"] == 3000

    r = client.delete(_url(student, f"payments/{second.json()['id']}"), headers=api.headers)
    assert r.status_code == 204

    r = client.get(_url(student, "charges"), headers=api.headers)
    reopened = r.json()["charges"][0]
    assert reopened["is_paid"] is False
    assert reopened["paid_at"] is None
    assert reopened["paid_amount"] == 100
    assert _balance(client, api, student)["remaining_balance"] == 3200


def test_update_charge(client: TestClient, api, student):
    charge = client.post(
        _url(student, "charges"), json={"amount": 300}, headers=api.headers
    ).json()
    _pay(client, api, student, 200, payment_for="extra_charge", charge_id=charge["id"])

    r = client.put(_url(student, f"charges/{charge['id']}"), json={"amount": 150}, headers=api.headers)
    assert r.status_code == 400

    r = client.put(_url(student, f"charges/{charge['id']}"), json={"amount": 200}, headers=api.headers)
    assert r.status_code == 200
    assert r.json()["is_paid"] is True
    assert _balance(client, api, student)["remaining_balance"] == 3000


def test_delete_charge_keeps_payments(client: TestClient, api, student):
    charge = client.post(
        _url(student, "charges"), json={"amount": 300}, headers=api.headers
    ).json()
    payment = _pay(
        client, api, student, 100, payment_for="extra_charge", charge_id=charge["id"]
    ).json()

    r = client.delete(_url(student, f"charges/{charge['id']}"), headers=api.headers)
    assert r.status_code == 204

    r = client.get(_url(student, "payments"), headers=api.headers)
    kept = r.json()["payments"]
    assert [p["id"] for p in kept] == [payment["id"]]
    assert kept[0]["charge_id"] is None
    assert _balance(client, api, student)["remaining_balance"] == 3000


def test_only_admins_delete_payments(client: TestClient, api, coach, student):
    r = client.post(
        _url(student, "payments"), json={"payment_amount": 100}, headers=coach["headers"]
    )
    assert r.status_code == 201

    r = client.delete(_url(student, f"payments/{r.json()['id']}"), headers=coach["headers"])
    assert r.status_code == 403
    assert _balance(client, api, student)["remaining_balance"] == 2900


def test_settled_charge_is_no_longer_owed(client: TestClient, api, student):
    charge = client.post(
        _url(student, "charges"), json={"amount": 300, "description": "Tournament fee"}, headers=api.headers
    ).json()
    assert _balance(client, api, student)["remaining_balance"] == 3300

    _pay(client, api, student, 300, payment_for="extra_charge", charge_id=charge["id"])

    summary = _balance(client, api, student)
    assert summary["total_charges"] == 300
    assert summary["unpaid_charges"] == 0
    assert summary["remaining_balance"] == 3000
    r = client.get(f"/api/v1/students/{student['id']}", headers=api.headers)
    assert r.json()["remaining_balance"] == 3000
