from datetime import timedelta

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def booked(api, coach):
    branch = api.create_branch()
    student = api.create_student()
    training = api.create_session([coach["id"]], [student["id"]], branch["id"])
    record = api.attendance_record(training["id"], student["id"])
    return {"branch": branch, "student": student, "session": training, "record": record}


def _student(client, api, student_id):
    return client.get(f"/api/v1/students/{student_id}", headers=api.headers).json()


def test_present_uses_a_session(client: TestClient, api, booked):
    marked = api.mark(booked["record"]["id"], "present")
    assert marked["status"] == "present"
    assert marked["session_duration"] == 1.0
    assert marked["package_cycle"] == 1
    assert marked["marked_at"] is not None

    assert _student(client, api, booked["student"]["id"])["remaining_sessions"] == 7

    api.mark(booked["record"]["id"], "absent")
    assert _student(client, api, booked["student"]["id"])["remaining_sessions"] == 8


def test_half_hour_duration(client: TestClient, api, booked):
    api.mark(booked["record"]["id"], "present", session_duration=1.5)
    assert _student(client, api, booked["student"]["id"])["remaining_sessions"] == 6.5


def test_invalid_duration_rejected(client: TestClient, api, booked):
    r = client.put(
        f"/api/v1/attendance/{booked['record']['id']}",
        json={"status": "present", "session_duration": 0.75},
        headers=api.headers,
    )
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"


def test_personal_package_requires_duration(client: TestClient, api, coach):
    branch = api.create_branch()
    student = api.create_student(package_type="Personal 10", sessions=10)
    training = api.create_session(
        [coach["id"]], [student["id"]], branch["id"], package_type="Personal 10"
    )
    record = api.attendance_record(training["id"], student["id"])

    r = client.put(
        f"/api/v1/attendance/{record['id']}", json={"status": "present"}, headers=api.headers
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Session duration is required for personal training packages"

    api.mark(record["id"], "present", session_duration=2.0)
    assert _student(client, api, student["id"])["remaining_sessions"] == 8


def test_pending_clears_marked_at(client: TestClient, api, booked):
    api.mark(booked["record"]["id"], "present")
    reset = api.mark(booked["record"]["id"], "pending")

    assert reset["status"] == "pending"
    assert reset["marked_at"] is None
    assert _student(client, api, booked["student"]["id"])["remaining_sessions"] == 8


def test_unknown_status_rejected(client: TestClient, api, booked):
    r = client.put(
        f"/api/v1/attendance/{booked['record']['id']}",
        json={"status": "late"},
        headers=api.headers,
    )
    assert r.status_code == 422


def test_attendance_sessions_window_and_counts(client: TestClient, api, booked, coach, today):
    api.mark(booked["record"]["id"], "present")
    api.create_session(
        [coach["id"]], [booked["student"]["id"]], booked["branch"]["id"],
        date=(today + timedelta(days=40)).isoformat(),
    )

    r = client.get("/api/v1/attendance/sessions", headers=api.headers)
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    summary = body["sessions"][0]
    assert summary["id"] == booked["session"]["id"]
    assert summary["present_count"] == 1
    assert summary["pending_count"] == 0
    assert summary["participant_count"] == 1
    assert summary["coach_names"] == ["Carl Coach"]

    r = client.get(
        f"/api/v1/attendance/sessions?date_from={today.isoformat()}"
        f"&date_to={(today + timedelta(days=60)).isoformat()}",
        headers=api.headers,
    )
    assert r.json()["total"] == 2

    r = client.get(
        f"/api/v1/attendance/sessions?date_from={today.isoformat()}"
        f"&date_to={(today - timedelta(days=1)).isoformat()}",
        headers=api.headers,
    )
    assert r.status_code == 400


def test_student_attendance_history(client: TestClient, api, booked, coach, today):
    earlier = api.create_session(
        [coach["id"]], [booked["student"]["id"]], booked["branch"]["id"],
        date=(today - timedelta(days=3)).isoformat(),
    )

    r = client.get(f"/api/v1/students/{booked['student']['id']}/attendance", headers=api.headers)
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert [rec["session_id"] for rec in body["records"]] == [booked["session"]["id"], earlier["id"]]
    assert body["records"][0]["branch_name"] == "Main Gym"


def test_duration_options(client: TestClient, coach):
    r = client.get("/api/v1/attendance/duration-options", headers=coach["headers"])
    assert r.status_code == 200
    body = r.json()
    assert body["default"] == 1.0
    assert body["options"][0] == 0.5
    assert body["options"][-1] == 6.0
    assert len(body["options"]) == 12
