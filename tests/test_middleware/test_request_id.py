"""Tests for request id propagation."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from planner.middleware.request_id import RequestIdMiddleware, accept_request_id
from planner.utils.logging import RequestContext


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/context")
    async def context():
        return RequestContext.get()

    return TestClient(app)


class TestAcceptRequestId:
    def test_keeps_safe_value(self):
        assert accept_request_id("req-1.a_B") == "req-1.a_B"

    @pytest.mark.parametrize("value", [None, "", "has space", "x" * 129, "semi;colon"])
    def test_replaces_unsafe_value(self, value):
        generated = accept_request_id(value)
        assert generated != value
        assert len(generated) == 32


class TestRequestIdMiddleware:
    def test_echoes_client_id(self, client):
        response = client.get("/context", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
        assert response.json() == {"request_id": "abc-123", "path": "/context"}

    def test_generates_id(self, client):
        response = client.get("/context")
        assert len(response.headers["X-Request-ID"]) == 32

    def test_context_cleared_after_request(self, client):
        client.get("/context", headers={"X-Request-ID": "abc-123"})
        assert "request_id" not in RequestContext.get()
