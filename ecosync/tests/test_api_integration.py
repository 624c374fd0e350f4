"""Integration tests for the FastAPI endpoints.

Uses TestClient with a store bound to its own in-memory database.
"""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from ecosync.analyzer import BackendError, BackendErrorKind, LLMClient
from ecosync.demo import analyze_offline
from ecosync.schemas import ProjectInput
from ecosync.store import ProjectStore

PAYLOAD = {
    "name": "VoteStream",
    "description": "Streaming governance votes for DAOs with delegated, gasless participation.",
    "stage": "MVP",
    "fundingStage": "Seed",
    "categories": ["DAO/Governance"],
}


@pytest.fixture()
def store() -> ProjectStore:
    return ProjectStore.from_url("sqlite:///:memory:")


@pytest.fixture()
def client(store):
    """FastAPI TestClient using an isolated in-memory store."""
    from ecosync.app import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


def _backend_json() -> str:
    return json.dumps({
        "summary": "VoteStream should integrate with governance tooling first.",
        "partners": [
            {"name": f"Gov Partner {i}", "type": "DAO Tooling", "description": "d",
             "reasoning": "r", "matchScore": 250 if i == 0 else 70,
             "missionScore": 80, "technicalScore": 75, "strategicScore": 85,
             "community": "5K+ Discord", "tvl": ""}
            for i in range(5)
        ],
    })


def _patched_client(*, text: str | None = None, error: Exception | None = None):
    mock = MagicMock(spec=LLMClient)
    mock.model = "gpt-4o"
    mock.complete = AsyncMock(return_value=text, side_effect=error)
    return patch("ecosync.services.LLMClient", return_value=mock)


class TestAnalyzeEndpoint:
    def test_success(self, client):
        with _patched_client(text=_backend_json()):
            resp = client.post("/api/analyze", json=PAYLOAD)
        assert resp.status_code == 200
        data = resp.json()
        assert data["projectId"] == 1
        assert data["isDemo"] is False
        assert len(data["partners"]) == 5
        first = data["partners"][0]
        assert first["matchScore"] == 100
        assert first["scores"] == {"mission": 80, "technical": 75, "strategic": 85}
        assert first["community"] == "5K+ Discord"
        assert first["tvl"] is None

    def test_quota_returns_demo_result(self, client):
        error = BackendError("429 quota exceeded", BackendErrorKind.QUOTA_EXCEEDED)
        with _patched_client(error=error):
            resp = client.post("/api/analyze", json=PAYLOAD)
        assert resp.status_code == 200
        data = resp.json()
        assert data["isDemo"] is True
        expected = analyze_offline(ProjectInput.model_validate(PAYLOAD))
        assert data["summary"] == expected.summary
        assert [p["name"] for p in data["partners"]] == [p.name for p in expected.partners]

    def test_auth_invalid_returns_401(self, client):
        error = BackendError("401 invalid key", BackendErrorKind.AUTH_INVALID)
        with _patched_client(error=error):
            resp = client.post("/api/analyze", json=PAYLOAD)
        assert resp.status_code == 401
        data = resp.json()
        assert "detail" not in data
        assert data["needsApiKey"] is True
        assert data["message"] == "Invalid API key"
        assert "OPENAI_API_KEY" in data["error"]

    def test_missing_key_returns_401(self, client, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        resp = client.post("/api/analyze", json=PAYLOAD)
        assert resp.status_code == 401
        assert resp.json()["needsApiKey"] is True

    def test_unknown_returns_502(self, client, monkeypatch):
        monkeypatch.delenv("ECOSYNC_FALLBACK_ON_UNKNOWN", raising=False)
        with _patched_client(error=BackendError("Failed to analyze project: upstream exploded")):
            resp = client.post("/api/analyze", json=PAYLOAD)
        assert resp.status_code == 502
        data = resp.json()
        assert data["message"] == "Failed to analyze project"
        assert "upstream exploded" in data["error"]
        assert "needsApiKey" not in data

    @pytest.mark.parametrize("field,value", [
        ("name", ""),
        ("description", "too short"),
        ("stage", ""),
        ("fundingStage", ""),
        ("categories", []),
    ])
    def test_invalid_body(self, client, field, value):
        resp = client.post("/api/analyze", json={**PAYLOAD, field: value})
        assert resp.status_code == 422

    def test_snake_case_body_accepted(self, client):
        body = {k: v for k, v in PAYLOAD.items() if k != "fundingStage"}
        body["funding_stage"] = "Seed"
        resp = client.post("/api/analyze-demo", json=body)
        assert resp.status_code == 200


class TestAnalyzeDemoEndpoint:
    def test_demo(self, client):
        with patch("ecosync.services.LLMClient") as MockClient:
            resp = client.post("/api/analyze-demo", json=PAYLOAD)
        MockClient.assert_not_called()
        assert resp.status_code == 200
        data = resp.json()
        assert data["isDemo"] is True
        assert "Snapshot" in [p["name"] for p in data["partners"]]


class TestProjectEndpoints:
    def test_get_project(self, client):
        created = client.post("/api/analyze-demo", json=PAYLOAD).json()
        resp = client.get(f"/api/projects/{created['projectId']}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["project"]["name"] == "VoteStream"
        assert data["project"]["fundingStage"] == "Seed"
        assert data["project"]["analysisResults"]["isDemo"] is True
        assert data["project"]["analysisResults"]["partnersCount"] == 5
        assert len(data["recommendations"]) == 5
        assert data["recommendations"][0]["matchScore"] == 91

    def test_get_project_404(self, client):
        resp = client.get("/api/projects/9999")
        assert resp.status_code == 404

    def test_get_project_invalid_id(self, client):
        resp = client.get("/api/projects/abc")
        assert resp.status_code == 422
