from datetime import timedelta

import pytest
from fastapi.testclient import TestClient


def _renewal(today, **overrides):
    payload = {
        "package_type": "Group 12",
        "sessions": 12,
        "enrollment_date": today.isoformat(),
        "expiration_date": (today + timedelta(days=60)).isoformat(),
        "total_training_fee": 6000,
        "downpayment": 2000,
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def attended(api, coach):
    """A student with one present session, a balance payment and an extra charge"""
    branch = api.create_branch()
    student = api.create_student()
    training = api.create_session([coach["id"]], [student["id"]], branch["id"])
    api.mark(api.attendance_record(training["id"], student["id"])["id"], "present")

    base = f"/api/v1/students/{student['id']}"
    r = api.client.post(f"{base}/payments", json={"payment_amount": 500}, headers=api.headers)
    assert r.status_code == 201
    r = api.client.post(f"{base}/charges", json={"amount": 300}, headers=api.headers)
    assert r.status_code == 201
    return {"student": student, "base": base, "charge": r.json()}


def test_progress(client: TestClient, api, attended):
    r = client.get(f"{attended['base']}/progress", headers=api.headers)
    assert r.status_code == 200
    assert r.json() == {
        "package_type": "Group 8",
        "total_sessions": 8,
        "used_sessions": 1.0,
        "remaining_sessions": 7.0,
        "progress_percentage": 12.5,
        "package_status": "ongoing",
        "current_cycle": 1,
        "enrollment_date": attended["student"]["enrollment_date"],
        "expiration_date": attended["student"]["expiration_date"],
    }


def test_renewal_archives_package_and_ledger(client: TestClient, api, attended, today):
    base = attended["base"]

    r = client.post(f"{base}/package", json=_renewal(today), headers=api.headers)
    assert r.status_code == 200, r.text
    renewed = r.json()
    assert renewed["package_type"] == "Group 12"
    assert renewed["remaining_sessions"] == 12
    # The new package starts with a clean ledger
    assert renewed["remaining_balance"] == 4000

    r = client.get(f"{base}/package-history", headers=api.headers)
    body = r.json()
    assert body["total"] == 1
    entry = body["history"][0]
    assert entry["cycle"] == 1
    assert entry["package_type"] == "Group 8"
    assert entry["reason"] == "renewal - early"
    assert entry["used_sessions"] == 1.0
    assert entry["remaining_balance"] == 2800
    assert entry["current_balance"] == 2800

    r = client.get(f"{base}/payments?current_only=true", headers=api.headers)
    assert r.json()["total"] == 0
    r = client.get(f"{base}/payments?package_history_id={entry['id']}", headers=api.headers)
    assert r.json()["total"] == 1
    r = client.get(f"{base}/charges?package_history_id={entry['id']}", headers=api.headers)
    assert r.json()["total"] == 1

    # Attendance of the archived package no longer counts
    r = client.get(f"{base}/progress", headers=api.headers)
    progress = r.json()
    assert progress["current_cycle"] == 2
    assert progress["used_sessions"] == 0
    assert progress["remaining_sessions"] == 12


def test_paying_an_archived_charge_books_to_that_package(client: TestClient, api, attended, today):
    base = attended["base"]
    client.post(f"{base}/package", json=_renewal(today), headers=api.headers)
    entry = client.get(f"{base}/package-history", headers=api.headers).json()["history"][0]

    r = client.post(
        f"{base}/payments",
        json={"payment_amount": 100, "payment_for": "extra_charge", "charge_id": attended["charge"]["id"]},
        headers=api.headers,
    )
    assert r.status_code == 201
    assert r.json()["package_history_id"] == entry["id"]

    settled = client.get(f"{base}/package-history", headers=api.headers).json()["history"][0]
    assert settled["remaining_balance"] == 2800
    assert settled["current_balance"] == 2700

    r = client.get(f"{base}/balance", headers=api.headers)
    assert r.json()["remaining_balance"] == 4000


def test_renewal_reasons(client: TestClient, api, coach, today):
    branch = api.create_branch()

    finished = api.create_student(name="Finished", sessions=1)
    training = api.create_session([coach["id"]], [finished["id"]], branch["id"])
    api.mark(api.attendance_record(training["id"], finished["id"])["id"], "present")

    lapsed = api.create_student(
        name="Lapsed",
        enrollment_date=(today - timedelta(days=90)).isoformat(),
        expiration_date=(today - timedelta(days=5)).isoformat(),
    )

    for student, reason in [(finished, "renewal - completed"), (lapsed, "renewal - expired")]:
        base = f"/api/v1/students/{student['id']}"
        assert client.post(f"{base}/package", json=_renewal(today), headers=api.headers).status_code == 200
        history = client.get(f"{base}/package-history", headers=api.headers).json()["history"]
        assert history[0]["reason"] == reason


def test_first_package_is_not_archived(client: TestClient, api, today):
    student = api.create_student(
        package_type=None, sessions=None, enrollment_date=None, expiration_date=None,
        total_training_fee=0, downpayment=0,
    )
    base = f"/api/v1/students/{student['id']}"

    r = client.post(f"{base}/package", json=_renewal(today), headers=api.headers)
    assert r.status_code == 200
    assert client.get(f"{base}/package-history", headers=api.headers).json()["total"] == 0


def test_history_newest_first(client: TestClient, api, today):
    student = api.create_student()
    base = f"/api/v1/students/{student['id']}"
    client.post(f"{base}/package", json=_renewal(today), headers=api.headers)
    client.post(f"{base}/package", json=_renewal(today, package_type="Group 16", sessions=16), headers=api.headers)

    history = client.get(f"{base}/package-history", headers=api.headers).json()["history"]
    assert [(h["cycle"], h["package_type"]) for h in history] == [(2, "Group 12"), (1, "Group 8")]


def test_renewal_validation(client: TestClient, api, today):
    student = api.create_student()
    payload = _renewal(today, expiration_date=(today - timedelta(days=1)).isoformat())

    r = client.post(f"/api/v1/students/{student['id']}/package", json=payload, headers=api.headers)
    assert r.status_code == 422


def test_edit_package(client: TestClient, api, attended, today):
    base = attended["base"]

    r = client.put(
        f"{base}/package", json={"sessions": 10, "downpayment": 1500}, headers=api.headers
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["remaining_sessions"] == 9
    assert body["remaining_balance"] == 2300

    r = client.put(
        f"{base}/package",
        json={"expiration_date": (today - timedelta(days=30)).isoformat()},
        headers=api.headers,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "BUSINESS_LOGIC_ERROR"


def test_expire_and_retrieve(client: TestClient, api, today):
    student = api.create_student()
    base = f"/api/v1/students/{student['id']}"

    r = client.post(f"{base}/package/expire", headers=api.headers)
    assert r.status_code == 200
    assert r.json()["expiration_date"] == today.isoformat()
    assert r.json()["remaining_sessions"] == 0

    r = client.post(f"{base}/package/retrieve", json={"extend_days": 10}, headers=api.headers)
    assert r.status_code == 200
    body = r.json()
    assert body["expiration_date"] == (today + timedelta(days=10)).isoformat()
    assert body["sessions"] == 8
    assert body["remaining_sessions"] == 0

    r = client.post(
        f"{base}/package/retrieve", json={"extend_days": 5, "allowed_sessions": 4}, headers=api.headers
    )
    body = r.json()
    assert body["expiration_date"] == (today + timedelta(days=15)).isoformat()
    assert body["sessions"] == 4
    assert body["remaining_sessions"] == 4

    r = client.post(f"{base}/package/retrieve", json={"extend_days": 0}, headers=api.headers)
    assert r.status_code == 422


def test_expire_without_package(client: TestClient, api):
    student = api.create_student(
        package_type=None, sessions=None, enrollment_date=None, expiration_date=None
    )

    r = client.post(f"/api/v1/students/{student['id']}/package/expire", headers=api.headers)
    assert r.status_code == 400


def test_delete_history_returns_ledger(client: TestClient, api, attended, today, coach):
    base = attended["base"]
    client.post(f"{base}/package", json=_renewal(today), headers=api.headers)
    entry = client.get(f"{base}/package-history", headers=api.headers).json()["history"][0]

    r = client.delete(f"{base}/package-history/{entry['id']}", headers=coach["headers"])
    assert r.status_code == 403

    r = client.delete(f"{base}/package-history/{entry['id']}", headers=api.headers)
    assert r.status_code == 204

    assert client.get(f"{base}/package-history", headers=api.headers).json()["total"] == 0
    r = client.get(f"{base}/payments?current_only=true", headers=api.headers)
    assert r.json()["total"] == 1
    # 6000 - 2000 - 500 + 300
    assert client.get(base, headers=api.headers).json()["remaining_balance"] == 3800

    r = client.delete(f"{base}/package-history/{entry['id']}", headers=api.headers)
    assert r.status_code == 404
