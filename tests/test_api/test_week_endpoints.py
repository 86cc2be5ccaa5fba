"""
Tests for the week-keyed endpoints: notes, weekly summary, week settings.
"""

import base64
import json
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image


class RecordingStorage:
    """In-memory BlobStorage double."""

    def __init__(self):
        self.objects = {}

    async def upload(self, key, data, content_type):
        self.objects[key] = (data, content_type)
        return f"http://cdn.test/{key}"


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def client(storage):
    from planner.main import app
    from planner.services.storage_service import get_blob_storage

    app.dependency_overrides[get_blob_storage] = lambda: storage
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_blob_storage, None)


def _png_base64() -> str:
    buffer = BytesIO()
    Image.new("RGB", (2, 2)).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode()


# =============================================================================
# Notes
# =============================================================================


class TestNotes:
    def test_missing_note_is_null(self, client, auth_headers):
        response = client.get("/api/notes/2026-W03", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() is None

    def test_upsert_then_get(self, client, auth_headers):
        first = client.put("/api/notes/2026-W03", json={"content": "hello"}, headers=auth_headers)
        second = client.put("/api/notes/2026-W03", json={"content": "bye"}, headers=auth_headers)

        assert first.json()["id"] == second.json()["id"]
        note = client.get("/api/notes/2026-W03", headers=auth_headers).json()
        assert note["content"] == "bye"
        assert note["week_id"] == "2026-W03"

    @pytest.mark.parametrize("week_id", ["2026-3", "2025-W53", "2026-W54"])
    def test_invalid_week_id(self, client, auth_headers, week_id):
        response = client.get(f"/api/notes/{week_id}", headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["error"]["type"] == "InvalidWeekId"


# =============================================================================
# Weekly summary
# =============================================================================


class TestWeeklySummary:
    def test_partial_upserts_merge(self, client, auth_headers):
        url = "/api/weekly-summary/2026-W03"
        client.put(url, json={"keyword": "focus"}, headers=auth_headers)
        client.put(url, json={"daily_entries": json.dumps({"0": "gym"})}, headers=auth_headers)

        summary = client.get(url, headers=auth_headers).json()
        assert summary["keyword"] == "focus"
        assert json.loads(summary["daily_entries"]) == {"0": "gym"}
        assert summary["reflection"] is None

    def test_explicit_null_clears(self, client, auth_headers):
        url = "/api/weekly-summary/2026-W03"
        client.put(url, json={"keyword": "focus", "reflection": "ok"}, headers=auth_headers)
        summary = client.put(url, json={"keyword": None}, headers=auth_headers).json()

        assert summary["keyword"] is None
        assert summary["reflection"] == "ok"


# =============================================================================
# Week settings
# =============================================================================


class TestWeekSettings:
    def test_column_widths(self, client, auth_headers):
        response = client.put(
            "/api/week-settings/2026-W03/column-widths",
            json={"column_widths": {"2": 180, "0": 150}},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert json.loads(response.json()["column_widths"]) == {"0": 150, "2": 180}

    @pytest.mark.parametrize("widths", [{"7": 100}, {"x": 100}, {"0": 0}])
    def test_column_widths_validation(self, client, auth_headers, widths):
        response = client.put(
            "/api/week-settings/2026-W03/column-widths",
            json={"column_widths": widths},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_custom_content_partial(self, client, auth_headers):
        base = "/api/week-settings/2026-W03"
        client.put(f"{base}/custom-content", json={"custom_text": "Sprint"}, headers=auth_headers)
        client.put(
            f"{base}/custom-content",
            json={"custom_image_url": "http://cdn.test/x.png"},
            headers=auth_headers,
        )

        settings = client.get(base, headers=auth_headers).json()
        assert settings["custom_text"] == "Sprint"
        assert settings["custom_image_url"] == "http://cdn.test/x.png"

    def test_image_upload_stores_and_links(self, client, auth_headers, storage):
        response = client.post(
            "/api/week-settings/2026-W03/custom-image",
            json={"image_base64": _png_base64(), "mime_type": "image/png"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        url = response.json()["url"]

        (key, (data, content_type)), = storage.objects.items()
        assert url == f"http://cdn.test/{key}"
        assert key.startswith("custom-content/") and key.endswith(".png")
        assert content_type == "image/png"
        assert data.startswith(b"\x89PNG")

        settings = client.get("/api/week-settings/2026-W03", headers=auth_headers).json()
        assert settings["custom_image_url"] == url

    def test_image_upload_rejects_non_image(self, client, auth_headers, storage):
        payload = base64.b64encode(b"just some text").decode()
        response = client.post(
            "/api/week-settings/2026-W03/custom-image",
            json={"image_base64": payload, "mime_type": "image/png"},
            headers=auth_headers,
        )
        assert response.status_code == 415
        assert storage.objects == {}
