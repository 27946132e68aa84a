import json

import pytest
from fastapi.testclient import TestClient

from expertscope.main import app
from expertscope.routers.analyze import (
    DEGRADED_MESSAGE,
    SUCCESS_MESSAGE,
    get_analysis_service,
    get_auditor,
    get_cost_accountant,
)
from expertscope.services.analysis_service import AnalysisService
from expertscope.services.cost_accountant import CostAccountant, InMemoryUsageStore, JsonFileUsageStore
from expertscope.services.response_parser import AnalysisResponseParser
from expertscope.services.synthetic import SyntheticFallbackGenerator
from expertscope.utils.audit import JsonlAuditor

from conftest import VALID_REPLY, FakeProvider, failing


def _service(*providers):
    fallback = SyntheticFallbackGenerator()
    return AnalysisService(providers, AnalysisResponseParser(fallback), fallback)


@pytest.fixture
def audit_path(tmp_path):
    return tmp_path / "analysis.jsonl"


@pytest.fixture
def make_client(audit_path):
    def _make(service):
        app.dependency_overrides[get_analysis_service] = lambda: service
        app.dependency_overrides[get_auditor] = lambda: JsonlAuditor(str(audit_path))
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_successful_analysis(make_client, audit_path):
    client = make_client(_service(FakeProvider("openai:gpt-4o", text=VALID_REPLY)))

    resp = client.post("/api/ai-analyze", json={"interviewData": {"basic_name": "Kim"}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == SUCCESS_MESSAGE
    assert body["data"]["expertiseScore"] == 92
    assert body["data"]["keyStrengths"] == ["a", "b"]

    record = json.loads(audit_path.read_text(encoding="utf-8").splitlines()[0])
    assert record["provider"] == "openai:gpt-4o"
    assert record["degraded"] is False
    assert record["answer_keys"] == ["basic_name"]


def test_answers_key_and_alias_route(make_client):
    client = make_client(_service(FakeProvider("p1", text=VALID_REPLY)))

    resp = client.post("/api/ai/analyze", json={"answers": {"basic_name": "Kim"}})

    assert resp.status_code == 200
    assert resp.json()["data"]["personalizedInsight"] == "insight"


def test_all_providers_failing_still_returns_200(make_client):
    client = make_client(_service(failing("p1"), failing("p2")))

    resp = client.post("/api/ai-analyze", json={"interviewData": {"basic_name": "Kim", "expertise_main_field": "Real Estate"}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == DEGRADED_MESSAGE
    assert "Kim" in body["data"]["personalizedInsight"]
    assert "Real Estate" in body["data"]["personalizedInsight"]


def test_empty_answers_are_analyzed(make_client):
    client = make_client(_service(failing("p1")))

    resp = client.post("/api/ai-analyze", json={"interviewData": {}})

    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 9


@pytest.mark.parametrize("kwargs", [{}, {"json": {}}, {"json": {"other": 1}}, {"json": {"interviewData": None}}])
def test_missing_data_is_400(make_client, kwargs):
    client = make_client(_service(FakeProvider("p1", text=VALID_REPLY)))

    resp = client.post("/api/ai-analyze", **kwargs)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "No interview data provided"}


def test_non_post_is_405(make_client):
    client = make_client(_service())
    assert client.get("/api/ai-analyze").status_code == 405


def test_options_preflight(make_client):
    client = make_client(_service())

    plain = client.options("/api/ai-analyze")
    assert plain.status_code == 204
    assert plain.headers["Access-Control-Allow-Origin"] == "*"

    preflight = client.options(
        "/api/ai-analyze",
        headers={"Origin": "https://funnel.example", "Access-Control-Request-Method": "POST"},
    )
    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-origin"] == "*"


def test_pipeline_crash_serves_synthetic(make_client):
    class CrashingService(AnalysisService):
        async def run(self, answers):
            raise RuntimeError("boom")

    fallback = SyntheticFallbackGenerator()
    client = make_client(CrashingService([], AnalysisResponseParser(fallback), fallback))

    resp = client.post("/api/ai-analyze", json={"answers": {"basic_name": "Kim"}})

    assert resp.status_code == 200
    assert resp.json()["message"] == DEGRADED_MESSAGE


def test_usage_endpoint(make_client):
    accountant = CostAccountant(InMemoryUsageStore(), daily_budget=5.0, monthly_budget=100.0)
    accountant.record("gpt-4o", 1000, 500)
    app.dependency_overrides[get_cost_accountant] = lambda: accountant
    client = make_client(_service())

    body = client.get("/api/usage").json()

    assert body["today"]["total_requests"] == 1
    assert body["today"]["total_tokens"] == 1500
    assert body["month"]["requests"] == 1
    assert body["daily_budget"] == 5.0
    assert body["recommendations"] == []


def test_health_reports_providers_and_parser_stats():
    with TestClient(app) as client:
        body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["providers"][0]["name"] == "openai:gpt-4o"
    assert body["parser"]["total"] == 0


@pytest.mark.parametrize("body, error", [
    ({"interviewData": "abc"}, "Interview data must be an object of answers"),
    ({"answers": ["a", "b"]}, "Interview data must be an object of answers"),
    (["not", "an", "object"], "Interview data must be an object of answers"),
])
def test_malformed_answers_use_400_envelope(make_client, body, error):
    client = make_client(_service(FakeProvider("p1", text=VALID_REPLY)))

    resp = client.post("/api/ai-analyze", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": error}


def test_unparseable_body_uses_400_envelope(make_client):
    client = make_client(_service(FakeProvider("p1", text=VALID_REPLY)))

    resp = client.post(
        "/api/ai/analyze",
        content=b'{"interviewData": {',
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Invalid JSON body"}


def test_usage_endpoint_survives_corrupt_store(make_client, tmp_path):
    path = tmp_path / "llm_usage.json"
    path.write_text("", encoding="utf-8")
    accountant = CostAccountant(JsonFileUsageStore(path))
    app.dependency_overrides[get_cost_accountant] = lambda: accountant
    client = make_client(_service())

    resp = client.get("/api/usage")

    assert resp.status_code == 200
    assert resp.json()["today"] is None
    assert resp.json()["month"]["requests"] == 0
