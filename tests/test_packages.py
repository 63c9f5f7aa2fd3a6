from fastapi.testclient import TestClient


def test_package_crud_and_disable(client: TestClient, api):
    headers = api.headers
    package = api.create_package(description="Eight group sessions")
    pid = package["id"]
    assert package["is_active"] is True
    assert package["price"] == 4000

    r_upd = client.put(f"/api/v1/packages/{pid}", json={"price": 4500}, headers=headers)
    assert r_upd.status_code == 200
    assert r_upd.json()["price"] == 4500

    r_del = client.delete(f"/api/v1/packages/{pid}", headers=headers)
    assert r_del.status_code == 200
    assert r_del.json()["is_active"] is False

    r_list = client.get("/api/v1/packages/", headers=headers)
    assert r_list.json()["total"] == 0

    r_all = client.get("/api/v1/packages/?include_inactive=true", headers=headers)
    assert [p["id"] for p in r_all.json()["packages"]] == [pid]

    # Disabled packages can still be read
    assert client.get(f"/api/v1/packages/{pid}", headers=headers).status_code == 200


def test_package_list_newest_first_and_search(client: TestClient, api):
    api.create_package(name="Group 8")
    api.create_package(name="Personal 10", session_count=10, price=9000)

    r = client.get("/api/v1/packages/", headers=api.headers)
    assert [p["name"] for p in r.json()["packages"]] == ["Personal 10", "Group 8"]

    r = client.get("/api/v1/packages/?search=personal", headers=api.headers)
    assert [p["name"] for p in r.json()["packages"]] == ["Personal 10"]


def test_package_validation(client: TestClient, api):
    r = client.post(
        "/api/v1/packages/",
        json={"name": "Broken", "session_count": -1},
        headers=api.headers,
    )
    assert r.status_code == 422

    r = client.post("/api/v1/packages/", json={"name": "  "}, headers=api.headers)
    assert r.status_code == 422


def test_coach_can_read_but_not_change_packages(client: TestClient, api, coach):
    package = api.create_package()

    assert client.get("/api/v1/packages/", headers=coach["headers"]).status_code == 200
    r = client.delete(f"/api/v1/packages/{package['id']}", headers=coach["headers"])
    assert r.status_code == 403
