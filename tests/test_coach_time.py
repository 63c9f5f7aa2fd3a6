import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def assigned(api, coach):
    branch = api.create_branch()
    student = api.create_student()
    training = api.create_session([coach["id"]], [student["id"]], branch["id"])
    return {"session": training, "base": f"/api/v1/sessions/{training['id']}/coaches/{coach['id']}"}


def test_time_in_and_out_completes_session(client: TestClient, api, coach, assigned):
    r = client.post(f"{assigned['base']}/time-in", headers=coach["headers"])
    assert r.status_code == 200, r.text
    record = r.json()
    assert record["coach_name"] == "Carl Coach"
    assert record["time_in"] is not None
    assert record["time_out"] is None
    assert record["is_present"] is False

    r = client.post(f"{assigned['base']}/time-out", headers=coach["headers"])
    assert r.status_code == 200, r.text
    record = r.json()
    assert record["time_out"] is not None
    assert record["is_present"] is True
    assert record["duration_minutes"] == 0

    r = client.get(f"/api/v1/sessions/{assigned['session']['id']}", headers=coach["headers"])
    assert r.json()["status"] == "completed"

    r = client.get(
        f"/api/v1/sessions/{assigned['session']['id']}/coach-times", headers=coach["headers"]
    )
    assert [t["coach_id"] for t in r.json()] == [coach["id"]]

    r = client.get("/api/v1/activities/recent", headers=coach["headers"])
    activities = r.json()["activities"]
    assert [a["activity_type"] for a in activities] == ["session_completed", "time_out", "time_in"]
    assert activities[0]["activity_description"] == "Session marked as completed"
    assert activities[0]["user_type"] == "coach"
    assert activities[0]["branch_name"] == "Main Gym"


def test_time_in_twice_restamps(client: TestClient, coach, assigned):
    first = client.post(f"{assigned['base']}/time-in", headers=coach["headers"]).json()
    second = client.post(f"{assigned['base']}/time-in", headers=coach["headers"]).json()
    assert second["id"] == first["id"]


def test_time_out_requires_time_in(client: TestClient, coach, assigned):
    r = client.post(f"{assigned['base']}/time-out", headers=coach["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot record time_out: No existing attendance record found"


def test_cancelled_session_cannot_be_timed_in(client: TestClient, api, coach, assigned):
    client.post(f"/api/v1/sessions/{assigned['session']['id']}/cancel", headers=api.headers)

    r = client.post(f"{assigned['base']}/time-in", headers=coach["headers"])
    assert r.status_code == 400


def test_time_out_after_cancellation_keeps_session_cancelled(
    client: TestClient, api, coach, assigned
):
    session_url = f"/api/v1/sessions/{assigned['session']['id']}"
    assert client.post(f"{assigned['base']}/time-in", headers=coach["headers"]).status_code == 200
    client.post(f"{session_url}/cancel", headers=api.headers)

    r = client.post(f"{assigned['base']}/time-out", headers=coach["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot record time_out for a cancelled session"

    assert client.get(session_url, headers=coach["headers"]).json()["status"] == "cancelled"
    times = client.get(f"{session_url}/coach-times", headers=coach["headers"]).json()
    assert times[0]["time_out"] is None


def test_coach_cannot_time_in_someone_else(client: TestClient, api, coach, admin):
    dana = api.create_coach()
    branch = api.create_branch()
    student = api.create_student()
    training = api.create_session([dana["id"]], [student["id"]], branch["id"])
    base = f"/api/v1/sessions/{training['id']}/coaches/{dana['id']}"

    r = client.post(f"{base}/time-in", headers=coach["headers"])
    assert r.status_code == 403

    # Admins can act for any coach; the entry stays the coach's and names the admin
    r = client.post(f"{base}/time-in", headers=admin["headers"])
    assert r.status_code == 200
    r = client.get("/api/v1/activities/recent", headers=admin["headers"])
    entry = r.json()["activities"][0]
    assert entry["user_id"] == dana["id"]
    assert entry["user_type"] == "coach"
    assert entry["activity_description"] == "Coach timed in for session (recorded by Alice Admin)"


def test_unassigned_coach_rejected(client: TestClient, api, admin, assigned):
    r = client.post(
        f"/api/v1/sessions/{assigned['session']['id']}/coaches/{admin['id']}/time-in",
        headers=admin["headers"],
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Coach is not assigned to this session"


def test_mark_coach_attendance(client: TestClient, api, coach, assigned):
    url = f"{assigned['base']}/attendance"

    r = client.put(url, json={"status": "absent"}, headers=api.headers)
    assert r.status_code == 200
    first = r.json()
    assert first["status"] == "absent"
    assert first["marked_at"] is not None

    r = client.put(url, json={"status": "pending"}, headers=api.headers)
    assert r.json()["id"] == first["id"]
    assert r.json()["marked_at"] is None

    assert client.put(url, json={"status": "late"}, headers=api.headers).status_code == 422
    assert client.put(url, json={"status": "present"}, headers=coach["headers"]).status_code == 403


def test_activity_feed_scoping(client: TestClient, api, coach, admin):
    dana = api.create_coach()
    branch = api.create_branch()
    student = api.create_student()
    mine = api.create_session([coach["id"]], [student["id"]], branch["id"])
    theirs = api.create_session(
        [dana["id"]], [student["id"]], branch["id"], start_time="11:00", end_time="12:00"
    )

    client.post(f"/api/v1/sessions/{mine['id']}/coaches/{coach['id']}/time-in", headers=coach["headers"])
    client.post(f"/api/v1/sessions/{theirs['id']}/coaches/{dana['id']}/time-in", headers=admin["headers"])

    r = client.get("/api/v1/activities/recent", headers=coach["headers"])
    assert {a["user_id"] for a in r.json()["activities"]} == {coach["id"]}

    r = client.get("/api/v1/activities/recent?limit=1", headers=admin["headers"])
    assert len(r.json()["activities"]) == 1

    r = client.get("/api/v1/activities/recent", headers=admin["headers"])
    assert {a["user_id"] for a in r.json()["activities"]} == {coach["id"], dana["id"]}

    r = client.get("/api/v1/activities/recent?limit=0", headers=admin["headers"])
    assert r.status_code == 422
