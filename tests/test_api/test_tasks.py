"""
Tests for the task endpoints, auth and health.

Each test signs in as a fresh user, so rows from other tests never show up.
"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from planner.main import app

    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def _create(client, headers, **overrides):
    body = {"content": "buy milk", "date": "2026-01-14", "time_block": "morning"}
    body.update(overrides)
    return client.post("/api/tasks", json=body, headers=headers)


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    def test_tasks_require_token(self, client):
        response = client.get(
            "/api/tasks", params={"start_date": "2026-01-12", "end_date": "2026-01-18"}
        )
        assert response.status_code == 401

    def test_bad_token_is_rejected(self, client):
        response = client.get(
            "/api/tasks",
            params={"start_date": "2026-01-12", "end_date": "2026-01-18"},
            headers={"Authorization": "Bearer forged.token"},
        )
        assert response.status_code == 401

    def test_me_anonymous(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json() is None

    def test_me_signed_in(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["external_id"].startswith("user_")
        assert body["name"] == "Test User"
        assert body["role"] == "user"


# =============================================================================
# CRUD
# =============================================================================


class TestTaskEndpoints:
    def test_create_defaults(self, client, auth_headers):
        response = _create(client, auth_headers)

        assert response.status_code == 201
        task = response.json()
        assert task["content"] == "buy milk"
        assert task["completed"] is False
        assert task["sort_order"] == 0
        assert task["time_block"] == "morning"

    def test_create_trims_content(self, client, auth_headers):
        response = _create(client, auth_headers, content="  call mom  ")
        assert response.json()["content"] == "call mom"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"content": "   "},
            {"content": ""},
            {"date": "2026-13-01"},
            {"date": "14/01/2026"},
            {"time_block": "night"},
        ],
    )
    def test_create_validation(self, client, auth_headers, overrides):
        assert _create(client, auth_headers, **overrides).status_code == 422

    def test_list_for_week(self, client, auth_headers):
        _create(client, auth_headers, content="in week", date="2026-01-18")
        _create(client, auth_headers, content="next week", date="2026-01-19")

        response = client.get(
            "/api/tasks",
            params={"start_date": "2026-01-12", "end_date": "2026-01-18"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert [t["content"] for t in response.json()] == ["in week"]

    def test_list_rejects_bad_dates(self, client, auth_headers):
        response = client.get(
            "/api/tasks",
            params={"start_date": "yesterday", "end_date": "2026-01-18"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["field"] == "start_date"

    def test_patch_partial(self, client, auth_headers):
        task = _create(client, auth_headers).json()

        response = client.patch(
            f"/api/tasks/{task['id']}",
            json={"completed": True, "time_block": "evening"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["completed"] is True
        assert body["time_block"] == "evening"
        assert body["content"] == "buy milk"

    @pytest.mark.parametrize("field", ["content", "completed", "date", "time_block", "sort_order"])
    def test_patch_rejects_explicit_null(self, client, auth_headers, field):
        task = _create(client, auth_headers).json()

        response = client.patch(
            f"/api/tasks/{task['id']}", json={field: None}, headers=auth_headers
        )
        assert response.status_code == 422
        unchanged = client.get(
            "/api/tasks",
            params={"start_date": "2026-01-12", "end_date": "2026-01-18"},
            headers=auth_headers,
        ).json()
        assert [t["id"] for t in unchanged] == [task["id"]]
        assert unchanged[0][field] == task[field]

    def test_patch_missing_task(self, client, auth_headers):
        response = client.patch("/api/tasks/999999", json={"completed": True}, headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["type"] == "TaskNotFound"

    def test_patch_other_users_task_is_not_found(self, client, auth_headers):
        from planner.core.security import issue_session_token

        task = _create(client, auth_headers).json()
        intruder = {"Authorization": f"Bearer {issue_session_token('user_intruder')}"}

        response = client.patch(f"/api/tasks/{task['id']}", json={"content": "x"}, headers=intruder)
        assert response.status_code == 404

    def test_delete_is_benign_when_missing(self, client, auth_headers):
        task = _create(client, auth_headers).json()

        first = client.delete(f"/api/tasks/{task['id']}", headers=auth_headers)
        second = client.delete(f"/api/tasks/{task['id']}", headers=auth_headers)

        assert first.json() == {"deleted": True}
        assert second.status_code == 200
        assert second.json() == {"deleted": False}


# =============================================================================
# Health and root
# =============================================================================


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] is True
        assert body["storage"] is True

    def test_root(self, client):
        response = client.get("/")
        assert response.json()["message"] == "Weekly Planner API"

    def test_request_id_header(self, client):
        response = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
