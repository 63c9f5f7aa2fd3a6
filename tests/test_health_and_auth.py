from fastapi.testclient import TestClient

from academy.core.security import JWTManager


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_request_id_and_security_headers(client: TestClient, admin):
    r = client.get("/api/v1/branches/", headers=admin["headers"])
    assert r.status_code == 200
    assert r.headers.get("X-Request-ID")
    assert r.headers.get("X-Content-Type-Options") == "nosniff"


def test_missing_token_is_401(client: TestClient):
    r = client.get("/api/v1/branches/")
    assert r.status_code == 401
    body = r.json()
    assert body["error"] == "AUTHENTICATION_ERROR"
    assert body["path"] == "/api/v1/branches/"


def test_invalid_token_is_401(client: TestClient):
    r = client.get("/api/v1/branches/", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid token"


def test_token_signed_with_other_secret_is_401(client: TestClient, admin):
    forged = JWTManager(secret_key="another-secret-key-of-sufficient-length").create_access_token(
        "auth-admin"
    )
    r = client.get("/api/v1/branches/", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


def test_expired_token_is_401(client: TestClient, admin):
    from academy.core.config import JWT_SECRET_KEY

    expired = JWTManager(
        secret_key=JWT_SECRET_KEY, access_token_expire_minutes=-5
    ).create_access_token("auth-admin")
    r = client.get("/api/v1/branches/", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert r.json()["message"] == "Token has expired"


def test_unknown_subject_is_403(client: TestClient):
    from academy.core.security import jwt_manager

    token = jwt_manager.create_access_token("nobody")
    r = client.get("/api/v1/branches/", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403
    assert r.json()["error"] == "AUTHORIZATION_ERROR"


def test_coach_cannot_use_admin_routes(client: TestClient, coach):
    r = client.post(
        "/api/v1/branches/",
        json={"name": "North", "address": "2 Hoop Ave", "city": "Quezon City"},
        headers=coach["headers"],
    )
    assert r.status_code == 403

    r = client.get("/api/v1/dashboard/admin", headers=coach["headers"])
    assert r.status_code == 403


def test_request_validation_uses_error_envelope(client: TestClient, admin):
    r = client.post(
        "/api/v1/branches/",
        json={"name": "", "address": "x", "city": "y"},
        headers=admin["headers"],
    )
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert any("name" in field["field"] for field in body["details"]["fields"])
