import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from offerflow.application import (
    OfferWorkflowCoordinator,
    configure_offer_coordinator,
    get_offer_coordinator,
    reset_offer_state,
)
from offerflow.domain import CandidateIdentity, JobSummary
from offerflow.infrastructure import InMemoryWorkflowRepository, NoOpFunctionsClient


@pytest.fixture(autouse=True)
def reset_state():
    reset_offer_state()
    yield
    reset_offer_state()


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_KEY", raising=False)
    monkeypatch.delenv("OFFER_LETTER_API_URL", raising=False)
    from offerflow.app import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def _select_candidate(application_id: str = "app-100") -> None:
    repository = get_offer_coordinator().repository
    repository.register_application(
        application_id,
        job=JobSummary(title="Data Analyst", salary_min=60000, salary_max=80000, currency="USD", location="Remote"),
        candidate=CandidateIdentity(first_name="Grace", last_name="Hopper", email="grace@example.com"),
    )


def test_end_to_end_offer_workflow(client):
    # 1. candidate selected, workflow opened
    _select_candidate()
    response = client.post("/api/offers", json={"job_application_id": "app-100", "created_by": "recruiter-7"})
    assert response.status_code == 200
    workflow = response.json()
    workflow_id = workflow["id"]
    assert workflow["current_step"] == "background_check"
    assert workflow["status"] == "pending"
    assert workflow["candidate_status"]["label"] == "Step 1/5"

    # 2. background check through the configured functions client
    response = client.post(f"/api/offers/{workflow_id}/background-check")
    assert response.status_code == 200
    assert response.json()["success"] is True

    items = client.get("/api/offers").json()["items"]
    current = next(item for item in items if item["id"] == workflow_id)
    assert current["current_step"] == "generate_offer"
    assert current["status"] == "in_progress"
    assert current["background_check_status"] == "completed"

    # 3. generate offer with the default salary
    response = client.post(f"/api/offers/{workflow_id}/generate", json={"amount": ""})
    body = response.json()
    assert body["success"] is True
    assert body["workflow"]["offer_details"]["salary"] == "75000"
    assert body["workflow"]["current_step"] == "hr_approval"

    # 4. HR approval
    response = client.post(f"/api/offers/{workflow_id}/approve", json={"comments": "Within band"})
    body = response.json()
    assert body["workflow"]["hr_comments"] == "Within band"
    assert body["workflow"]["current_step"] == "send_offer"

    # 5. send to candidate
    response = client.post(f"/api/offers/{workflow_id}/send")
    body = response.json()
    assert body["success"] is True
    assert body["workflow"]["current_step"] == "track_response"
    assert body["workflow"]["candidate_notification_sent"] is True
    assert body["workflow"]["offer_letter_url"] == "dummy-offer-letter-url.pdf"

    # 6. candidate accepts
    response = client.post(
        f"/api/offers/{workflow_id}/response",
        json={"response": "accepted", "final_offer_amount": 78000, "final_offer_currency": "USD"},
    )
    body = response.json()
    assert body["workflow"]["status"] == "completed"
    assert body["workflow"]["status_color"] == "bg-green-500"
    assert body["workflow"]["candidate_status"]["label"] == "Offer Accepted"
    assert len(body["workflow"]["logs"]) == 5

    notifications = client.get("/api/notifications").json()["items"]
    assert notifications
    assert not any(item["variant"] == "destructive" for item in notifications)
    assert client.get("/api/notifications").json()["items"] == []


def test_advance_with_tagged_payload(client):
    _select_candidate()
    workflow_id = client.post("/api/offers", json={"job_application_id": "app-100"}).json()["id"]

    response = client.post(
        f"/api/offers/{workflow_id}/advance",
        json={"step": "background_check", "background_check_status": "completed", "background_check_provider": "manual"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["workflow"]["background_check_provider"] == "manual"


def test_advance_rejects_payload_for_wrong_step(client):
    _select_candidate()
    workflow_id = client.post("/api/offers", json={"job_application_id": "app-100"}).json()["id"]
    client.get("/api/offers")

    response = client.post(f"/api/offers/{workflow_id}/advance", json={"step": "hr_approval", "hr_comments": "early"})

    body = response.json()
    assert body["success"] is False
    assert body["workflow"]["current_step"] == "background_check"
    errors = [item for item in client.get("/api/notifications").json()["items"] if item["variant"] == "destructive"]
    assert len(errors) == 1


def test_advance_rejects_unknown_step_tag(client):
    _select_candidate()
    workflow_id = client.post("/api/offers", json={"job_application_id": "app-100"}).json()["id"]

    response = client.post(f"/api/offers/{workflow_id}/advance", json={"step": "celebrate"})

    assert response.status_code == 400


def test_duplicate_workflow_is_refused(client):
    _select_candidate()
    assert client.post("/api/offers", json={"job_application_id": "app-100"}).status_code == 200

    response = client.post("/api/offers", json={"job_application_id": "app-100"})

    assert response.status_code == 409


def test_missing_application_id_is_rejected(client):
    response = client.post("/api/offers", json={})
    assert response.status_code == 400


def test_unknown_workflow_returns_404(client):
    assert client.get("/api/offers/wf-404").status_code == 404
    assert client.post("/api/offers/wf-404/send").status_code == 404


def test_response_requires_value(client):
    _select_candidate()
    workflow_id = client.post("/api/offers", json={"job_application_id": "app-100"}).json()["id"]

    response = client.post(f"/api/offers/{workflow_id}/response", json={})

    assert response.status_code == 400


def test_steps_and_status_colors(client):
    steps = client.get("/api/offers/steps").json()["items"]
    assert [item["id"] for item in steps] == [
        "background_check",
        "generate_offer",
        "hr_approval",
        "send_offer",
        "track_response",
    ]
    colors = client.get("/api/offers/status-colors").json()
    assert colors["colors"]["completed"] == "bg-green-500"
    assert colors["default"] == "bg-blue-500"


def test_pending_records_empty_by_default(client):
    assert client.get("/api/offers/pending").json() == {"items": []}


def test_email_status_without_service_is_unavailable(client):
    response = client.get("/api/offers/email-status/req-1")
    assert response.status_code == 502


class LegacyRowRepository(InMemoryWorkflowRepository):
    async def get_workflow(self, workflow_id):
        workflow = await super().get_workflow(workflow_id)
        if workflow is not None:
            workflow.status = "archived"
        return workflow


def test_workflow_with_unknown_status_is_not_served(client):
    repository = LegacyRowRepository()
    repository.register_application(
        "app-200",
        candidate=CandidateIdentity(first_name="Grace", last_name="Hopper", email="grace@example.com"),
    )
    workflow = asyncio.run(repository.create_workflow("app-200"))
    configure_offer_coordinator(OfferWorkflowCoordinator(repository, NoOpFunctionsClient()))

    assert client.get(f"/api/offers/{workflow.id}").status_code == 404
    assert client.post(f"/api/offers/{workflow.id}/send").status_code == 404
