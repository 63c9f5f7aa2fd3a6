from fastapi.testclient import TestClient


def test_create_student_defaults(client: TestClient, api):
    branch = api.create_branch()
    student = api.create_student(
        branch_id=branch["id"], email="  Sam@Example.COM ", phone="+63 917 555 0101"
    )

    assert student["remaining_sessions"] == 8
    assert student["remaining_balance"] == 3000
    assert student["email"] == "sam@example.com"
    assert student["phone"] == "+639175550101"
    assert student["branch_name"] == "Main Gym"


def test_create_student_without_package(client: TestClient, api):
    student = api.create_student(
        package_type=None, sessions=None, enrollment_date=None, expiration_date=None,
        total_training_fee=0, downpayment=0, email="",
    )
    assert student["remaining_sessions"] is None
    assert student["remaining_balance"] == 0
    assert student["email"] is None


def test_create_student_validation(client: TestClient, api, today):
    r = client.post(
        "/api/v1/students/",
        json={
            "name": "Backwards",
            "enrollment_date": today.isoformat(),
            "expiration_date": "2000-01-01",
        },
        headers=api.headers,
    )
    assert r.status_code == 422

    r = client.post(
        "/api/v1/students/", json={"name": "Broke", "downpayment": -1}, headers=api.headers
    )
    assert r.status_code == 422

    r = client.post(
        "/api/v1/students/", json={"name": "Lost", "branch_id": 9999}, headers=api.headers
    )
    assert r.status_code == 404


def test_update_recomputes_remaining_and_balance(client: TestClient, api, coach):
    branch = api.create_branch()
    student = api.create_student()
    training = api.create_session([coach["id"]], [student["id"]], branch["id"])
    api.mark(api.attendance_record(training["id"], student["id"])["id"], "present")

    r = client.put(
        f"/api/v1/students/{student['id']}",
        json={"sessions": 10, "total_training_fee": 5000},
        headers=api.headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["sessions"] == 10
    assert body["remaining_sessions"] == 9
    assert body["remaining_balance"] == 4000


def test_list_students(client: TestClient, api):
    north = api.create_branch(name="North")
    api.create_student(name="Zed", branch_id=north["id"])
    api.create_student(name="Amy", package_type="Personal 10")
    api.create_student(name="Mia")

    r = client.get("/api/v1/students/", headers=api.headers)
    assert [s["name"] for s in r.json()["students"]] == ["Amy", "Mia", "Zed"]

    r = client.get(f"/api/v1/students/?branch_id={north['id']}", headers=api.headers)
    assert [s["name"] for s in r.json()["students"]] == ["Zed"]

    r = client.get("/api/v1/students/?package_type=Personal 10", headers=api.headers)
    assert [s["name"] for s in r.json()["students"]] == ["Amy"]

    r = client.get("/api/v1/students/?search=i", headers=api.headers)
    assert [s["name"] for s in r.json()["students"]] == ["Mia"]


def test_delete_student(client: TestClient, api):
    student = api.create_student()
    client.post(
        f"/api/v1/students/{student['id']}/payments",
        json={"payment_amount": 500, "payment_for": "balance"},
        headers=api.headers,
    )

    r = client.delete(f"/api/v1/students/{student['id']}", headers=api.headers)
    assert r.status_code == 204
    assert client.get(f"/api/v1/students/{student['id']}", headers=api.headers).status_code == 404


def test_coach_cannot_change_students(client: TestClient, api, coach):
    student = api.create_student()

    assert client.get(f"/api/v1/students/{student['id']}", headers=coach["headers"]).status_code == 200
    r = client.put(
        f"/api/v1/students/{student['id']}", json={"name": "Renamed"}, headers=coach["headers"]
    )
    assert r.status_code == 403
