"""HTTP contract tests for the planner API."""

from __future__ import annotations

from datetime import datetime

import pytest
from backend.planner.errors import ConfigError, InputError, ReasoningUnavailable
from backend.planner.main import create_app
from backend.planner.settings import Settings
from backend.planner.synthesizer import PlanSynthesizer
from backend.planner.types import Plan, PlanItem, UrgencyLabel
from fastapi.testclient import TestClient


class FakeSynthesizer:
    def __init__(self, result=None, error=None):
        self.result = result if result is not None else Plan()
        self.error = error
        self.objectives = []

    async def synthesize(self, objective):
        self.objectives.append(objective)
        if self.error is not None:
            raise self.error
        return self.result

    async def aclose(self):
        pass


def configured(**overrides):
    values = {
        "OPENAI_API_KEY": "test-key",
        "RETRIEVAL_API_URL": "http://retrieval.test/query",
        "SENTRY_DSN": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_client():
    def _make(synthesizer=None, app_settings=None):
        app = create_app(app_settings or configured())
        app.state.synthesizer = synthesizer
        return TestClient(app)

    return _make


def sample_plan():
    return Plan(
        items=[
            PlanItem(
                rank=1,
                title="Climate Tech Keynote",
                rationale="Opens the climate track.",
                source_id="s1",
                urgency=UrgencyLabel.SOON,
                start_time=datetime(2025, 6, 12, 14, 0),
                location="Stage 1",
            ),
            PlanItem(
                rank=2,
                title="GreenFund booth",
                rationale="Meet climate investors.",
                source_id="p-7",
                urgency=UrgencyLabel.UNKNOWN,
                time_text="All day",
            ),
        ],
        summary="Two stops for climate investors.",
    )


def test_generate_plan_returns_ranked_items(make_client):
    fake = FakeSynthesizer(sample_plan())
    client = make_client(fake)

    res = client.post("/generate-plan", json={"objective": "  climate tech investors  "})

    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    assert body["summary"] == "Two stops for climate investors."
    assert body["degraded"] is False
    assert body["items"][0] == {
        "rank": 1,
        "title": "Climate Tech Keynote",
        "time": "2025-06-12T14:00:00",
        "location": "Stage 1",
        "rationale": "Opens the climate track.",
        "urgency": "soon",
        "source_id": "s1",
    }
    assert body["items"][1]["time"] == "All day"
    assert body["items"][1]["location"] is None
    assert fake.objectives == ["climate tech investors"]
    assert res.headers.get("X-Request-ID")


def test_empty_plan_is_a_success(make_client):
    client = make_client(FakeSynthesizer(Plan(failed_retrievals=1)))

    res = client.post("/generate-plan", json={"objective": "robotics"})

    assert res.status_code == 200
    assert res.json() == {"items": [], "count": 0, "summary": "", "degraded": True}


@pytest.mark.parametrize(
    "payload",
    [{}, {"objective": ""}, {"objective": "   "}, {"objective": 42}],
)
def test_invalid_objective_is_rejected(make_client, payload):
    fake = FakeSynthesizer(sample_plan())
    client = make_client(fake)

    res = client.post("/generate-plan", json=payload)

    assert res.status_code == 422
    assert fake.objectives == []


def test_long_objective_is_accepted(make_client):
    fake = FakeSynthesizer(sample_plan())
    client = make_client(fake)

    res = client.post("/generate-plan", json={"objective": "AI " * 1500})

    assert res.status_code == 200
    assert len(fake.objectives[0]) == len("AI " * 1500) - 1


def test_input_error_from_synthesizer_maps_to_422(make_client):
    client = make_client(FakeSynthesizer(error=InputError("Objective must be a non-empty string")))

    res = client.post("/generate-plan", json={"objective": "ok"})

    assert res.status_code == 422


def test_reasoning_unavailable_maps_to_503_without_internals(make_client):
    client = make_client(FakeSynthesizer(error=ReasoningUnavailable("openai: secret detail")))

    res = client.post("/generate-plan", json={"objective": "ai"})

    assert res.status_code == 503
    assert res.json() == {"detail": "Planning service is temporarily unavailable"}
    assert "secret" not in res.text


def test_not_ready_without_synthesizer(make_client):
    res = make_client(None).post("/generate-plan", json={"objective": "ai"})

    assert res.status_code == 503


def test_startup_fails_without_required_config():
    app = create_app(configured(OPENAI_API_KEY=None))

    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        with TestClient(app):
            pass


def test_startup_builds_and_releases_synthesizer():
    app = create_app(configured())

    with TestClient(app):
        assert isinstance(app.state.synthesizer, PlanSynthesizer)

    assert app.state.synthesizer is None


def test_startup_keeps_injected_synthesizer():
    app = create_app(configured())
    fake = FakeSynthesizer()
    app.state.synthesizer = fake

    with TestClient(app) as client:
        assert client.post("/generate-plan", json={"objective": "ai"}).status_code == 200

    assert app.state.synthesizer is fake


class TestHealth:
    def test_healthy_when_configured(self, make_client):
        res = make_client().get("/health")
        assert res.status_code == 200
        body = res.json()
        assert body["status"] == "healthy"
        assert body["service"] == "conference-planner"
        assert body["checks"]["reasoning"]["status"] == "ok"
        assert body["checks"]["retrieval"]["status"] == "ok"

    def test_degraded_when_retrieval_missing(self, make_client):
        res = make_client(app_settings=configured(RETRIEVAL_API_URL="  ")).get("/health")
        assert res.status_code == 503
        body = res.json()
        assert body["status"] == "degraded"
        assert body["checks"]["retrieval"] == {
            "status": "missing",
            "detail": "RETRIEVAL_API_URL not configured",
        }


class TestMetrics:
    def test_metrics_exposed(self, make_client):
        client = make_client(FakeSynthesizer(sample_plan()))
        client.post("/generate-plan", json={"objective": "ai"})

        res = client.get("/metrics")

        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/plain")
        assert "http_requests_total" in res.text
        assert 'endpoint="/generate-plan"' in res.text
