"""Tests for the control API, with the assistant wired to fakes."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from fakes import Harness
from hey_india.config import Config
from webapp.main import app
from webapp.services.assistant import assistant_service


@pytest.fixture
def harness():
    h = Harness()
    config = Config()
    config.session = h.controller.config
    assistant_service.configure(config, controller=h.controller)
    yield h
    assistant_service.configure(Config(), controller=None)


@pytest.fixture
def client(harness):
    with TestClient(app) as client:
        yield client


@pytest.mark.unit
class TestRoutes:

    def test_status_before_start(self, client):
        response = client.get("/api/status")
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "idle"
        assert body["running"] is False
        assert body["continuous"] is True
        assert body["last_response"] == ""

    def test_start_and_stop(self, client, harness):
        response = client.post("/api/start")
        assert response.status_code == 200
        assert response.json()["state"] == "listening"
        assert response.json()["status"] == "listening for wake phrase..."

        response = client.post("/api/stop")
        assert response.json()["state"] == "idle"
        assert response.json()["running"] is False
        assert not harness.camera.is_opened

    def test_camera_denied_is_forbidden(self, client, harness):
        harness.camera.opens = False
        response = client.post("/api/start")
        assert response.status_code == 403
        assert "camera" in response.json()["detail"]
        assert client.get("/api/status").json()["last_response"] == (
            "Camera permission denied or not available."
        )

    def test_unsupported_recognition(self, client, harness):
        harness.channel.supported = False
        assert client.post("/api/start").status_code == 501

    def test_model_failure(self, harness):
        harness.detector.loads = False
        with TestClient(app) as client:
            assert client.post("/api/start").status_code == 503

    def test_continuous_toggle(self, client, harness):
        client.post("/api/start")
        response = client.post("/api/continuous", json={"enabled": False})
        assert response.status_code == 200
        assert response.json()["continuous"] is False
        assert ("stop", False) in harness.stream.log

    def test_continuous_toggle_requires_flag(self, client):
        assert client.post("/api/continuous", json={}).status_code == 422


@pytest.mark.unit
class TestPreload:

    def test_startup_preloads_models(self, client, harness):
        assert harness.detector.is_loaded
        assert client.get("/api/status").json()["state"] == "idle"

    def test_failed_preload_still_serves(self, harness):
        harness.detector.loads = False
        harness.channel.loads = False
        with TestClient(app) as client:
            assert client.get("/api/status").status_code == 200
        assert not harness.detector.is_loaded

    def test_preload_errors_are_logged_not_raised(self, harness):
        def broken():
            raise RuntimeError("no weights")

        harness.detector.load = broken
        assert asyncio.run(assistant_service.initialize()) is False
