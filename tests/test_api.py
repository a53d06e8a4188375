"""End-to-end HTTP tests through FastAPI's TestClient on the in-memory store."""
from dataclasses import replace
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from tasktrack.clock import utcnow
from tasktrack.main import create_app
from tasktrack.stores.memory import MemoryRecordStore

PASSWORD = "s3cret-pass"


@pytest.fixture
def client(settings):
    app = create_app(settings, store=MemoryRecordStore())
    with TestClient(app) as test_client:
        yield test_client


def register(client, username="alice", email=None, password=PASSWORD):
    response = client.post("/api/auth/register", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.text
    return response.json()


def auth(body):
    return {"Authorization": f"Bearer {body['accessToken']}"}


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert health.json()["store"] == "memory"


def test_alice_scenario(client):
    alice = register(client)
    headers = auth(alice)

    created = client.post("/api/todos", json={"title": "Buy milk"}, headers=headers)
    assert created.status_code == 201
    task = created.json()
    assert task["priority"] == "Medium"
    assert task["category"] == "General"
    assert task["isCompleted"] is False

    listing = client.get("/api/todos", headers=headers).json()
    assert listing["totalItems"] == 1
    assert [item["id"] for item in listing["items"]] == [task["id"]]

    updated = client.put(f"/api/todos/{task['id']}", json={"isCompleted": True}, headers=headers)
    assert updated.status_code == 200
    assert client.get(f"/api/todos/{task['id']}", headers=headers).json()["isCompleted"] is True

    assert client.delete(f"/api/todos/{task['id']}", headers=headers).status_code == 204
    missing = client.get(f"/api/todos/{task['id']}", headers=headers)
    assert missing.status_code == 404
    assert "error" in missing.json()


def test_login_response_shape(client):
    register(client)
    response = client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"accessToken", "refreshToken", "expiresAt", "user"}
    assert body["user"]["username"] == "alice"
    assert body["user"]["fullName"] == "alice"
    assert "passwordHash" not in body["user"]


def test_protected_routes_need_a_valid_token(client):
    no_header = client.get("/api/todos")
    assert no_header.status_code == 401
    assert no_header.headers["www-authenticate"] == "Bearer"

    forged = client.get("/api/todos", headers={"Authorization": "Bearer not-a-token"})
    assert forged.status_code == 401


def test_accounts_cannot_see_each_other(client):
    alice = register(client)
    bob = register(client, "bob")
    task = client.post("/api/todos", json={"title": "private"}, headers=auth(alice)).json()

    assert client.get(f"/api/todos/{task['id']}", headers=auth(bob)).status_code == 404
    assert client.put(f"/api/todos/{task['id']}", json={"title": "mine"}, headers=auth(bob)).status_code == 404
    assert client.delete(f"/api/todos/{task['id']}", headers=auth(bob)).status_code == 404
    assert client.get("/api/todos", headers=auth(bob)).json()["totalItems"] == 0


def test_register_conflicts_and_validation(client):
    register(client)
    duplicate = client.post("/api/auth/register", json={
        "username": "alice", "email": "new@example.com", "password": PASSWORD,
    })
    assert duplicate.status_code == 409

    bad_email = client.post("/api/auth/register", json={
        "username": "carol", "email": "not-an-email", "password": PASSWORD,
    })
    assert bad_email.status_code == 400
    assert bad_email.json()["errors"][0]["field"] == "email"

    short = client.post("/api/auth/register", json={
        "username": "cj", "email": "cj@example.com", "password": "short",
    })
    assert short.status_code == 400
    assert {e["field"] for e in short.json()["errors"]} == {"username", "password"}


def test_wrong_password_is_unauthorized(client):
    register(client)
    response = client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid username or password"


def test_refresh_rotation(client):
    alice = register(client)
    rotated = client.post("/api/auth/refresh", json={"refreshToken": alice["refreshToken"]})
    assert rotated.status_code == 200
    assert rotated.json()["refreshToken"] != alice["refreshToken"]

    replay = client.post("/api/auth/refresh", json={"refreshToken": alice["refreshToken"]})
    assert replay.status_code == 401


def test_logout_revokes_refresh_token(client):
    alice = register(client)
    assert client.post("/api/auth/logout", json={"refreshToken": alice["refreshToken"]}).status_code == 204
    assert client.post("/api/auth/refresh", json={"refreshToken": alice["refreshToken"]}).status_code == 401


def test_session_cap_and_listing(client):
    register(client)
    logins = [
        client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD}).json()
        for _ in range(6)
    ]
    latest = logins[-1]
    sessions = client.get(
        "/api/auth/sessions",
        headers={**auth(latest), "X-Refresh-Token": latest["refreshToken"]},
    ).json()

    assert len(sessions) == 5
    assert sessions[0]["isCurrent"] is True
    assert sum(1 for s in sessions if s["isCurrent"]) == 1
    assert all(len(s["tokenPreview"]) == 12 for s in sessions)


def test_revoke_sessions(client):
    alice = register(client)
    second = client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD}).json()
    bob = register(client, "bob")

    bob_session = client.get("/api/auth/sessions", headers=auth(bob)).json()[0]
    denied = client.post("/api/auth/sessions/revoke", json={"tokenId": bob_session["id"]}, headers=auth(alice))
    assert denied.status_code == 403

    others = client.post("/api/auth/sessions/revoke-all-others",
                         json={"refreshToken": second["refreshToken"]}, headers=auth(second))
    assert others.status_code == 204
    remaining = client.get("/api/auth/sessions", headers=auth(second)).json()
    assert len(remaining) == 1

    revoked = client.post("/api/auth/sessions/revoke", json={"tokenId": remaining[0]["id"]}, headers=auth(second))
    assert revoked.status_code == 204
    assert client.get("/api/auth/sessions", headers=auth(second)).json() == []


def test_profile_round_trip(client):
    alice = register(client)
    headers = auth(alice)

    updated = client.put("/api/auth/profile", json={"firstName": "Alice", "lastName": "Liddell"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["fullName"] == "Alice Liddell"
    assert client.get("/api/auth/profile", headers=headers).json()["firstName"] == "Alice"

    changed = client.post("/api/auth/change-password",
                          json={"currentPassword": PASSWORD, "newPassword": "brand-new-pass"}, headers=headers)
    assert changed.status_code == 204
    relogin = client.post("/api/auth/login", json={"username": "alice", "password": "brand-new-pass"})
    assert relogin.status_code == 200


def test_deactivated_account_is_forbidden(client):
    alice = register(client)
    assert client.post("/api/auth/deactivate", headers=auth(alice)).status_code == 204

    login = client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})
    assert login.status_code == 403
    refresh = client.post("/api/auth/refresh", json={"refreshToken": alice["refreshToken"]})
    assert refresh.status_code == 401


def test_delete_account(client):
    alice = register(client)
    client.post("/api/todos", json={"title": "gone soon"}, headers=auth(alice))
    assert client.delete("/api/auth/profile", headers=auth(alice)).status_code == 204
    assert client.get("/api/auth/profile", headers=auth(alice)).status_code == 404
    assert client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD}).status_code == 401


def test_create_with_labels_numbers_and_tags(client):
    headers = auth(register(client))
    due = (utcnow() + timedelta(days=3)).isoformat()
    response = client.post("/api/todos", json={
        "title": "Quarterly report",
        "priority": "high",
        "category": 2,
        "dueDate": due,
        "tags": "work,reports",
    }, headers=headers)
    assert response.status_code == 201
    body = response.json()
    assert body["priority"] == "High"
    assert body["category"] == "Work"
    assert body["tags"] == "work,reports"
    assert body["isOverdue"] is False


def test_create_validation_errors(client):
    headers = auth(register(client))
    past = (utcnow() - timedelta(days=1)).isoformat()

    blank = client.post("/api/todos", json={"title": "  "}, headers=headers)
    assert blank.status_code == 400
    assert blank.json()["errors"][0]["field"] == "title"

    late = client.post("/api/todos", json={"title": "x", "dueDate": past}, headers=headers)
    assert late.status_code == 400
    assert late.json()["errors"][0]["field"] == "dueDate"

    missing = client.post("/api/todos", json={}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["errors"][0]["field"] == "title"


def test_list_filters_sort_and_paging(client):
    headers = auth(register(client))
    for title, priority in (("alpha", "Low"), ("Bravo", "High"), ("charlie", "High")):
        client.post("/api/todos", json={"title": title, "priority": priority}, headers=headers)

    high = client.get("/api/todos", params={"priority": "High", "sortBy": "title",
                                            "sortDescending": "false"}, headers=headers).json()
    assert [item["title"] for item in high["items"]] == ["Bravo", "charlie"]

    paged = client.get("/api/todos", params={"pageSize": 2, "page": 1}, headers=headers).json()
    assert paged["totalItems"] == 3
    assert paged["totalPages"] == 2
    assert paged["hasNextPage"] is True
    assert paged["hasPreviousPage"] is False

    clamped = client.get("/api/todos", params={"pageSize": 1000, "page": 0}, headers=headers).json()
    assert clamped["pageSize"] == 100
    assert clamped["page"] == 1


def test_invalid_query_is_reported_by_field(client):
    headers = auth(register(client))
    response = client.get("/api/todos", params={"sortBy": "password", "priority": "urgent"}, headers=headers)
    assert response.status_code == 400
    assert {e["field"] for e in response.json()["errors"]} == {"sortBy", "priority"}


def test_completion_routes(client):
    headers = auth(register(client))
    task = client.post("/api/todos", json={"title": "x"}, headers=headers).json()

    assert client.post(f"/api/todos/{task['id']}/complete", headers=headers).json()["isCompleted"] is True
    assert client.post(f"/api/todos/{task['id']}/complete", headers=headers).status_code == 400
    assert client.put(f"/api/todos/{task['id']}", json={"isCompleted": True}, headers=headers).status_code == 400
    assert client.post(f"/api/todos/{task['id']}/incomplete", headers=headers).json()["isCompleted"] is False


def test_update_is_field_presence_aware(client):
    headers = auth(register(client))
    task = client.post("/api/todos", json={"title": "x", "description": "keep me", "tags": "a"},
                       headers=headers).json()

    renamed = client.put(f"/api/todos/{task['id']}", json={"title": "y"}, headers=headers).json()
    assert renamed["description"] == "keep me"

    cleared = client.put(f"/api/todos/{task['id']}", json={"tags": None}, headers=headers).json()
    assert cleared["tags"] is None
    assert cleared["description"] == "keep me"

    rejected = client.put(f"/api/todos/{task['id']}", json={"title": None}, headers=headers)
    assert rejected.status_code == 400


def test_search_and_overdue(client):
    headers = auth(register(client))
    client.post("/api/todos", json={"title": "Call plumber"}, headers=headers)
    client.post("/api/todos", json={"title": "Walk dog"}, headers=headers)

    found = client.get("/api/todos/search", params={"q": "PLUMB"}, headers=headers).json()
    assert [item["title"] for item in found["items"]] == ["Call plumber"]
    assert client.get("/api/todos/search", headers=headers).status_code == 400

    assert client.get("/api/todos/overdue", headers=headers).json() == []


def test_deleted_account_cannot_create_tasks(client):
    headers = auth(register(client))
    assert client.delete("/api/auth/profile", headers=headers).status_code == 204

    orphan = client.post("/api/todos", json={"title": "ghost"}, headers=headers)
    assert orphan.status_code == 404
    assert client.app.state.store.documents.tasks == {}


@pytest.fixture
def sql_client(settings, tmp_path):
    sql_settings = replace(settings, store_backend="sql",
                           database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    with TestClient(create_app(sql_settings)) as test_client:
        yield test_client


def test_sql_backend_sessions_and_rotation(sql_client):
    assert sql_client.get("/health").json()["store"] == "sql"
    register(sql_client)
    logins = [
        sql_client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD}).json()
        for _ in range(6)
    ]
    latest = logins[-1]
    headers = auth(latest)

    sessions = sql_client.get("/api/auth/sessions", headers=headers).json()
    assert len(sessions) == 5

    rotated = sql_client.post("/api/auth/refresh", json={"refreshToken": latest["refreshToken"]})
    assert rotated.status_code == 200
    replay = sql_client.post("/api/auth/refresh", json={"refreshToken": latest["refreshToken"]})
    assert replay.status_code == 401
    assert len(sql_client.get("/api/auth/sessions", headers=headers).json()) == 5

    evicted = sql_client.post("/api/auth/refresh", json={"refreshToken": logins[0]["refreshToken"]})
    assert evicted.status_code == 401


def test_sql_backend_task_lifecycle(sql_client):
    headers = auth(register(sql_client))
    due = (utcnow() + timedelta(days=2)).isoformat()

    created = sql_client.post("/api/todos", json={"title": "Buy milk", "dueDate": due}, headers=headers)
    assert created.status_code == 201
    task = created.json()

    listing = sql_client.get("/api/todos", params={"sortBy": "dueDate"}, headers=headers).json()
    assert [item["id"] for item in listing["items"]] == [task["id"]]
    assert sql_client.put(f"/api/todos/{task['id']}", json={"isCompleted": True},
                          headers=headers).json()["isCompleted"] is True

    assert sql_client.delete("/api/auth/profile", headers=headers).status_code == 204
    assert sql_client.post("/api/todos", json={"title": "ghost"}, headers=headers).status_code == 404


def test_error_bodies_share_one_shape(client):
    register(client)
    wrong = client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})
    assert wrong.json() == {"error": "Invalid username or password", "code": "INVALID_CREDENTIALS"}

    unauthenticated = client.get("/api/todos")
    assert unauthenticated.json() == {"error": "Missing or invalid Authorization header"}

    malformed = client.post("/api/auth/login", json={"username": "alice"})
    body = malformed.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"] == [{"field": "password", "message": body["errors"][0]["message"]}]
