import os
import asyncio
import tempfile
from datetime import date, timedelta
from pathlib import Path
import pytest

TEST_DB_PATH = Path(tempfile.gettempdir()) / f"academy_test_{os.getpid()}.db"

# Settings are read at import time, so they must be in place before the app is imported
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["ACADEMY_TIMEZONE"] = "Asia/Manila"
os.environ.pop("COACH_PROVISIONING_URL", None)
os.environ.pop("BOOTSTRAP_ADMIN_AUTH_ID", None)
os.environ.pop("BOOTSTRAP_ADMIN_EMAIL", None)

from fastapi.testclient import TestClient  # noqa: E402
from academy.core.timeutils import today_local  # noqa: E402


async def _clear_tables():
    from academy.core.database import Base, engine

    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


async def _insert_coach(name: str, email: str, role: str, auth_id: str) -> int:
    from academy.core.database import async_session
    from academy.staff.models.coaches import Coach

    async with async_session() as session:
        coach = Coach(name=name, email=email, role=role, auth_id=auth_id)
        session.add(coach)
        await session.commit()
        return coach.id


def _auth_headers(auth_id: str) -> dict:
    from academy.core.security import jwt_manager

    token = jwt_manager.create_access_token(auth_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def client():
    from academy.main import app

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    asyncio.run(_clear_tables())


@pytest.fixture()
def admin(client: TestClient) -> dict:
    coach_id = asyncio.run(
        _insert_coach("Alice Admin", "alice@hoopsacademy.ph", "admin", "auth-admin")
    )
    return {"id": coach_id, "headers": _auth_headers("auth-admin")}


@pytest.fixture()
def coach(client: TestClient) -> dict:
    coach_id = asyncio.run(
        _insert_coach("Carl Coach", "carl@hoopsacademy.ph", "coach", "auth-coach")
    )
    return {"id": coach_id, "headers": _auth_headers("auth-coach")}


@pytest.fixture()
def today() -> date:
    return today_local()


class AcademyApi:
    """Shortcuts for building test data through the API as an administrator"""

    def __init__(self, client: TestClient, headers: dict):
        self.client = client
        self.headers = headers

    def _post(self, url: str, payload: dict) -> dict:
        response = self.client.post(url, json=payload, headers=self.headers)
        assert response.status_code == 201, response.text
        return response.json()

    def create_branch(self, **overrides) -> dict:
        payload = {"name": "Main Gym", "address": "1 Court St", "city": "Manila"}
        payload.update(overrides)
        return self._post("/api/v1/branches/", payload)

    def create_coach(self, **overrides) -> dict:
        payload = {"name": "Dana Coach", "email": "dana@hoopsacademy.ph", "availability": ["monday"]}
        payload.update(overrides)
        return self._post("/api/v1/coaches/", payload)

    def create_package(self, **overrides) -> dict:
        payload = {"name": "Group 8", "session_count": 8, "price": 4000}
        payload.update(overrides)
        return self._post("/api/v1/packages/", payload)

    def create_student(self, **overrides) -> dict:
        today = today_local()
        payload = {
            "name": "Sam Student",
            "package_type": "Group 8",
            "sessions": 8,
            "enrollment_date": (today - timedelta(days=10)).isoformat(),
            "expiration_date": (today + timedelta(days=50)).isoformat(),
            "total_training_fee": 4000,
            "downpayment": 1000,
        }
        payload.update(overrides)
        return self._post("/api/v1/students/", payload)

    def create_session(self, coach_ids, student_ids, branch_id, **overrides) -> dict:
        payload = {
            "date": today_local().isoformat(),
            "start_time": "09:00",
            "end_time": "10:00",
            "branch_id": branch_id,
            "package_type": "Group 8",
            "coach_ids": list(coach_ids),
            "student_ids": list(student_ids),
        }
        payload.update(overrides)
        return self._post("/api/v1/sessions/", payload)

    def attendance_record(self, session_id: int, student_id: int) -> dict:
        response = self.client.get(
            f"/api/v1/attendance/sessions/{session_id}", headers=self.headers
        )
        assert response.status_code == 200, response.text
        return next(r for r in response.json()["records"] if r["student_id"] == student_id)

    def mark(self, record_id: int, status: str, session_duration=None) -> dict:
        payload = {"status": status}
        if session_duration is not None:
            payload["session_duration"] = session_duration
        response = self.client.put(
            f"/api/v1/attendance/{record_id}", json=payload, headers=self.headers
        )
        assert response.status_code == 200, response.text
        return response.json()


@pytest.fixture()
def api(client: TestClient, admin: dict) -> AcademyApi:
    return AcademyApi(client, admin["headers"])
