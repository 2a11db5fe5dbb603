"""API tests using FastAPI's TestClient.

Each test builds an app around an in-memory store and a scripted oracle.
Background executions scheduled by a request finish before the client's
context exits, so final brief state is checked after the ``with`` block.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from forge.main import create_app
from forge.models import BriefStatus, PipelineStage


@pytest.fixture
def app(store, oracle):
    return create_app(store=store, oracle=oracle)


class TestHealth:

    def test_health(self, app) -> None:
        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["active_pipelines"] == 0
        assert body["uptime_seconds"] is not None

    def test_ready(self, app) -> None:
        with TestClient(app) as client:
            response = client.get("/health/ready")

        assert response.json() == {"ready": True, "checks": {"runner": True, "store": True}}

    def test_live(self, app) -> None:
        with TestClient(app) as client:
            assert client.get("/health/live").json()["alive"] is True


class TestGetBrief:

    def test_returns_view(self, app, store, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.REVIEW, pr_url="https://github.com/acme/site/pull/7"))

        with TestClient(app) as client:
            response = client.get("/v1/briefs/brief-1")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "review"
        assert body["pr_url"] == "https://github.com/acme/site/pull/7"
        assert body["in_flight"] is False

    def test_not_found(self, app) -> None:
        with TestClient(app) as client:
            response = client.get("/v1/briefs/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "BRIEF_NOT_FOUND"
        assert body["path"] == "/v1/briefs/missing"


class TestAdvance:

    def test_schedules_and_completes(self, app, store, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.INTAKE))

        with TestClient(app) as client:
            client.get("/health/live")
            store.add_brief(make_brief())
            response = client.post("/v1/briefs/brief-1/advance")

        assert response.status_code == 202
        assert response.json()["scheduled"] is True
        brief = store.brief("brief-1")
        assert brief.status is BriefStatus.REVIEW
        assert brief.pipeline_stage is PipelineStage.BUILD_COMPLETE

    def test_wrong_status_conflicts(self, app, store, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.INTAKE))

        with TestClient(app) as client:
            response = client.post("/v1/briefs/brief-1/advance")

        assert response.status_code == 409
        assert response.json()["code"] == "BRIEF_STATE_CONFLICT"
        assert store.brief("brief-1").status is BriefStatus.INTAKE

    def test_missing_brief(self, app) -> None:
        with TestClient(app) as client:
            response = client.post("/v1/briefs/missing/advance")

        assert response.status_code == 404


class TestPlanApproval:

    def test_approve_and_resume(self, app, store, oracle, make_brief) -> None:
        store.add_brief(make_brief(
            status=BriefStatus.BUILDING,
            pipeline_stage=PipelineStage.PLAN_APPROVAL,
            architect_plan="## Files\n- pricing.html",
        ))

        with TestClient(app) as client:
            response = client.post("/v1/briefs/brief-1/plan-approval")

        assert response.status_code == 202
        assert response.json()["pipeline_stage"] == "plan_approved"
        assert store.brief("brief-1").pipeline_stage is PipelineStage.BUILD_COMPLETE
        assert oracle.count("gatekeeper") == 0

    def test_not_waiting_conflicts(self, app, store, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.REVIEW))

        with TestClient(app) as client:
            response = client.post("/v1/briefs/brief-1/plan-approval")

        assert response.status_code == 409


class TestRevisions:

    def test_enqueue_and_drain(self, app, store, oracle, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.REVIEW, architect_plan="## Files\n- old.html"))

        with TestClient(app) as client:
            response = client.post("/v1/briefs/brief-1/revisions", json={"feedback": "Make it blue"})

        assert response.status_code == 202
        body = response.json()
        assert body["revision_number"] == 1
        assert body["scheduled"] is True
        assert store.revisions[0].status.value == "completed"
        assert "Make it blue" in oracle.calls_for("architect")[0].task

    def test_empty_feedback_rejected(self, app, store, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.REVIEW))

        with TestClient(app) as client:
            response = client.post("/v1/briefs/brief-1/revisions", json={"feedback": ""})

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert store.revisions == []

    def test_unevaluated_brief_rejected(self, app, store, oracle, make_brief) -> None:
        store.add_brief(make_brief(status=BriefStatus.INTAKE, rejection_reason="Tier claim is inflated."))

        with TestClient(app) as client:
            response = client.post("/v1/briefs/brief-1/revisions", json={"feedback": "Build it anyway"})

        assert response.status_code == 409
        assert response.json()["code"] == "BRIEF_STATE_CONFLICT"
        assert store.revisions == []
        assert store.brief("brief-1").status is BriefStatus.INTAKE
        assert oracle.count("builder") == 0

    def test_missing_brief(self, app) -> None:
        with TestClient(app) as client:
            response = client.post("/v1/briefs/missing/revisions", json={"feedback": "x"})

        assert response.status_code == 404
