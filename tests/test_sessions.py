from datetime import timedelta

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def setup(api, coach):
    branch = api.create_branch()
    sam = api.create_student()
    tess = api.create_student(name="Tess Student")
    return {"branch": branch, "sam": sam, "tess": tess, "coach": coach}


def test_create_session_with_pending_attendance(client: TestClient, api, setup, today):
    training = api.create_session(
        [setup["coach"]["id"]], [setup["sam"]["id"], setup["tess"]["id"]], setup["branch"]["id"]
    )
    assert training["status"] == "scheduled"
    assert training["branch_name"] == "Main Gym"
    assert training["date"] == today.isoformat()
    assert training["participant_count"] == 2
    assert [c["name"] for c in training["coaches"]] == ["Carl Coach"]

    r = client.get(f"/api/v1/attendance/sessions/{training['id']}", headers=api.headers)
    assert r.status_code == 200
    records = r.json()["records"]
    assert [rec["student_name"] for rec in records] == ["Sam Student", "Tess Student"]
    assert {rec["status"] for rec in records} == {"pending"}


def test_session_requires_people_and_valid_times(client: TestClient, api, setup, today):
    base = {
        "date": today.isoformat(),
        "start_time": "09:00",
        "end_time": "10:00",
        "branch_id": setup["branch"]["id"],
        "coach_ids": [setup["coach"]["id"]],
        "student_ids": [setup["sam"]["id"]],
    }

    r = client.post("/api/v1/sessions/", json={**base, "coach_ids": []}, headers=api.headers)
    assert r.status_code == 422

    r = client.post("/api/v1/sessions/", json={**base, "end_time": "08:00"}, headers=api.headers)
    assert r.status_code == 422

    r = client.post("/api/v1/sessions/", json={**base, "student_ids": [9999]}, headers=api.headers)
    assert r.status_code == 404

    r = client.post("/api/v1/sessions/", json={**base, "branch_id": 9999}, headers=api.headers)
    assert r.status_code == 404


def test_overlapping_session_conflicts(client: TestClient, api, setup, today):
    coach_id, sam_id = setup["coach"]["id"], setup["sam"]["id"]
    api.create_session([coach_id], [sam_id], setup["branch"]["id"])

    r = client.post(
        "/api/v1/sessions/",
        json={
            "date": today.isoformat(),
            "start_time": "09:30",
            "end_time": "11:00",
            "branch_id": setup["branch"]["id"],
            "coach_ids": [coach_id],
            "student_ids": [sam_id],
        },
        headers=api.headers,
    )
    assert r.status_code == 409
    body = r.json()
    assert body["error"] == "SCHEDULE_CONFLICT"
    assert body["details"]["conflicts"] == [
        "Coach Carl Coach is already scheduled at this time",
        "Student Sam Student is already scheduled at this time",
    ]

    # Back-to-back slots do not clash
    api.create_session([coach_id], [sam_id], setup["branch"]["id"], start_time="10:00", end_time="11:00")


def test_check_conflicts_endpoint(client: TestClient, api, setup, today):
    training = api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])
    payload = {
        "date": today.isoformat(),
        "start_time": "09:15",
        "end_time": "09:45",
        "coach_ids": [setup["coach"]["id"]],
        "student_ids": [setup["tess"]["id"]],
    }

    r = client.post("/api/v1/sessions/check-conflicts", json=payload, headers=api.headers)
    assert r.status_code == 200
    assert r.json() == {
        "has_conflicts": True,
        "conflicts": ["Coach Carl Coach is already scheduled at this time"],
    }

    payload["exclude_session_id"] = training["id"]
    r = client.post("/api/v1/sessions/check-conflicts", json=payload, headers=api.headers)
    assert r.json() == {"has_conflicts": False, "conflicts": []}


def test_cancelled_sessions_do_not_conflict(client: TestClient, api, setup):
    training = api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])

    r = client.post(f"/api/v1/sessions/{training['id']}/cancel", headers=api.headers)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    # The freed slot can be booked again
    api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])


def test_cancelled_session_cannot_be_reopened(client: TestClient, api, setup):
    training = api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])
    url = f"/api/v1/sessions/{training['id']}"
    client.post(f"{url}/cancel", headers=api.headers)

    r = client.put(url, json={"status": "scheduled"}, headers=api.headers)
    assert r.status_code == 400
    assert r.json()["error"] == "BUSINESS_LOGIC_ERROR"
    assert r.json()["message"] == "A cancelled session cannot be reopened"

    r = client.put(url, json={"notes": "Rained out"}, headers=api.headers)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["notes"] == "Rained out"


def test_update_replaces_participants_and_attendance(client: TestClient, api, setup):
    training = api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])
    sam_record = api.attendance_record(training["id"], setup["sam"]["id"])
    api.mark(sam_record["id"], "present")

    r = client.put(
        f"/api/v1/sessions/{training['id']}",
        json={"student_ids": [setup["tess"]["id"]], "notes": "Moved to court 2"},
        headers=api.headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert [p["name"] for p in body["participants"]] == ["Tess Student"]
    assert body["notes"] == "Moved to court 2"

    r = client.get(f"/api/v1/attendance/sessions/{training['id']}", headers=api.headers)
    records = r.json()["records"]
    assert [(rec["student_id"], rec["status"]) for rec in records] == [
        (setup["tess"]["id"], "pending")
    ]


def test_update_time_range_checked(client: TestClient, api, setup):
    training = api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])

    r = client.put(
        f"/api/v1/sessions/{training['id']}", json={"end_time": "08:30"}, headers=api.headers
    )
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"


def test_list_and_calendar(client: TestClient, api, setup, today):
    coach_id, branch_id = setup["coach"]["id"], setup["branch"]["id"]
    today_session = api.create_session([coach_id], [setup["sam"]["id"]], branch_id)
    far_session = api.create_session(
        [coach_id], [setup["tess"]["id"]], branch_id,
        date=(today + timedelta(days=45)).isoformat(), package_type="Personal 10",
    )

    r = client.get("/api/v1/sessions/", headers=api.headers)
    assert [s["id"] for s in r.json()["sessions"]] == [far_session["id"], today_session["id"]]

    r = client.get(f"/api/v1/sessions/?student_id={setup['tess']['id']}", headers=api.headers)
    assert [s["id"] for s in r.json()["sessions"]] == [far_session["id"]]

    r = client.get("/api/v1/sessions/?search=personal", headers=api.headers)
    assert [s["id"] for s in r.json()["sessions"]] == [far_session["id"]]

    r = client.get(
        f"/api/v1/sessions/calendar?year={today.year}&month={today.month}", headers=api.headers
    )
    assert r.status_code == 200
    assert [s["id"] for s in r.json()] == [today_session["id"]]

    r = client.get("/api/v1/sessions/calendar?year=2024&month=13", headers=api.headers)
    assert r.status_code == 422


def test_delete_session(client: TestClient, api, setup):
    training = api.create_session([setup["coach"]["id"]], [setup["sam"]["id"]], setup["branch"]["id"])

    r = client.delete(f"/api/v1/sessions/{training['id']}", headers=api.headers)
    assert r.status_code == 204
    assert client.get(f"/api/v1/sessions/{training['id']}", headers=api.headers).status_code == 404

    r = client.get(f"/api/v1/students/{setup['sam']['id']}/attendance", headers=api.headers)
    assert r.json()["total"] == 0


def test_removing_a_present_student_restores_the_session(client: TestClient, api, setup):
    sam_id = setup["sam"]["id"]
    training = api.create_session([setup["coach"]["id"]], [sam_id], setup["branch"]["id"])
    api.mark(api.attendance_record(training["id"], sam_id)["id"], "present")
    assert client.get(f"/api/v1/students/{sam_id}", headers=api.headers).json()["remaining_sessions"] == 7

    r = client.delete(f"/api/v1/sessions/{training['id']}", headers=api.headers)
    assert r.status_code == 204

    r = client.get(f"/api/v1/students/{sam_id}", headers=api.headers)
    assert r.json()["remaining_sessions"] == 8
