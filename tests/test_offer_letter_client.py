from __future__ import annotations

import asyncio
import json
import sys
from datetime import date
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from offerflow.application import OfferWorkflowCoordinator
from offerflow.core.templates import format_candidate_data_for_offer, offer_email_content
from offerflow.domain import CandidateIdentity, JobSummary
from offerflow.infrastructure import (
    InMemoryWorkflowRepository,
    NoOpFunctionsClient,
    OfferLetterClient,
    OfferLetterError,
)

CANDIDATE = CandidateIdentity(first_name="Katherine", last_name="Johnson", email="kj@example.com")
JOB = JobSummary(title="Flight Analyst", salary_min=70000, salary_max=90000, currency="USD", location="Hampton")


def test_format_candidate_data_for_offer():
    data = format_candidate_data_for_offer(CANDIDATE, JOB, today=date(2025, 1, 1))

    assert data["candidate_name"] == "Katherine Johnson"
    assert data["position"] == "Flight Analyst"
    assert data["salary"] == "USD 70,000 - 90,000"
    assert data["start_date"] == "2025-01-31"
    assert data["candidate_email"] == "kj@example.com"


def test_offer_email_content_mentions_candidate_and_role():
    html = offer_email_content("Katherine Johnson", "Flight Analyst")

    assert "Congratulations Katherine Johnson!" in html
    assert "<strong>Flight Analyst</strong>" in html
    assert "5 business days" in html


def test_generate_offer_letter_posts_multipart():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["content_type"] = request.headers["content-type"]
        captured["body"] = request.content
        return httpx.Response(
            200,
            json={
                "success": True,
                "request_id": "gen-1",
                "message": "ok",
                "files": {"pdf": "file-pdf", "docx": "file-docx"},
            },
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = OfferLetterClient("http://letters.local:8000", http_client=http_client)

    response = asyncio.run(
        client.generate_offer_letter(b"PK\x03\x04", {"candidate_name": "Katherine Johnson"}, template_name="offer.docx")
    )

    assert captured["path"] == "/api/v1/generate-offer"
    assert str(captured["content_type"]).startswith("multipart/form-data")
    body = captured["body"]
    assert b'name="template_file"; filename="offer.docx"' in body
    assert b'name="data_file"; filename="candidate_data.json"' in body
    assert b"both" in body
    assert response.files == {"pdf": "file-pdf", "docx": "file-docx"}


def test_generate_offer_letter_requires_docx_template():
    client = OfferLetterClient("http://letters.local:8000", http_client=httpx.AsyncClient())

    with pytest.raises(OfferLetterError):
        asyncio.run(client.generate_offer_letter(b"%PDF", {}, template_name="offer.pdf"))


def test_email_status_and_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/email-status/mail-1":
            return httpx.Response(
                200,
                json={
                    "request_id": "mail-1",
                    "status": "completed",
                    "progress_percentage": 100,
                    "total_recipients": 1,
                    "sent_count": 1,
                    "failed_count": 0,
                    "pending_count": 0,
                    "errors": [],
                },
            )
        return httpx.Response(404)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = OfferLetterClient("http://letters.local:8000", http_client=http_client)

    status = asyncio.run(client.get_email_status("mail-1"))
    assert status.status == "completed"
    assert status.sent_count == 1

    with pytest.raises(OfferLetterError, match="download file"):
        asyncio.run(client.download_file("missing"))


def _letters_handler(calls: list[str]):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/api/v1/generate-offer":
            data_part = request.content.split(b'filename="candidate_data.json"')[1]
            assert b"120000" in data_part
            return httpx.Response(
                200,
                json={"success": True, "request_id": "gen-9", "files": {"pdf": "pdf-9", "docx": "docx-9"}},
            )
        if request.url.path == "/api/v1/download/pdf-9":
            return httpx.Response(200, content=b"%PDF-1.7")
        if request.url.path == "/api/v1/send-offer":
            email_data = request.content.split(b'name="email_data"')[1]
            assert b"kj@example.com" in email_data
            return httpx.Response(200, json={"request_id": "mail-9", "status": "queued"})
        return httpx.Response(404)

    return handler


def test_coordinator_generates_and_sends_letter_through_service():
    calls: list[str] = []
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_letters_handler(calls)))
    repository = InMemoryWorkflowRepository()
    repository.register_application("app-1", job=JOB, candidate=CANDIDATE)
    workflow = asyncio.run(repository.create_workflow("app-1"))
    asyncio.run(repository.advance_step(workflow.id, {}, expected_step="background_check"))
    coordinator = OfferWorkflowCoordinator(
        repository,
        NoOpFunctionsClient(),
        offer_letters=OfferLetterClient("http://letters.local:8000", http_client=http_client),
    )
    workflow = asyncio.run(coordinator.list_workflows())[0]

    generated = asyncio.run(coordinator.generate_offer(workflow, "120000", template=b"PK\x03\x04"))

    assert generated.success is True
    workflow = coordinator.workflows[0]
    assert workflow.offer_details["pdf_file_id"] == "pdf-9"
    assert workflow.offer_details["request_id"] == "gen-9"
    assert json.loads(workflow.generated_offer_content)["salary"] == "120000"

    asyncio.run(coordinator.approve_offer(workflow, "approved"))
    sent = asyncio.run(coordinator.send_offer_letter(coordinator.workflows[0]))

    assert sent.success is True
    workflow = coordinator.workflows[0]
    assert workflow.offer_letter_url == "pdf-9"
    assert workflow.email_request_id == "mail-9"
    assert workflow.current_step == "track_response"
    assert calls == ["/api/v1/generate-offer", "/api/v1/download/pdf-9", "/api/v1/send-offer"]


def test_send_offer_letter_requires_generated_pdf():
    repository = InMemoryWorkflowRepository()
    repository.register_application("app-1", job=JOB, candidate=CANDIDATE)
    workflow = asyncio.run(repository.create_workflow("app-1"))
    coordinator = OfferWorkflowCoordinator(repository, NoOpFunctionsClient())

    result = asyncio.run(coordinator.send_offer_letter(workflow))

    assert result.success is False
    errors = coordinator.notifications.errors()
    assert [item.title for item in errors] == ["No Offer Letter"]


def test_health_check_reports_service_state():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "healthy", "version": "1.0.0"})
        return httpx.Response(404)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = OfferLetterClient("http://letters.local:8000", http_client=http_client)

    assert asyncio.run(client.health_check()) == {"status": "healthy", "version": "1.0.0"}


def test_health_check_raises_when_service_is_down():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = OfferLetterClient("http://letters.local:8000", http_client=http_client)

    with pytest.raises(OfferLetterError, match="run health check"):
        asyncio.run(client.health_check())
