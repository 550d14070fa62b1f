"""Domain entities for the offer workflow lifecycle."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

WORKFLOW_STEPS: tuple[str, ...] = (
    "background_check",
    "generate_offer",
    "hr_approval",
    "send_offer",
    "track_response",
)

WORKFLOW_STATUSES: tuple[str, ...] = ("pending", "in_progress", "completed", "rejected", "cancelled")

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "rejected", "cancelled"})

STEP_LABELS: dict[str, str] = {
    "background_check": "Background Check",
    "generate_offer": "Generate Offer",
    "hr_approval": "HR Approval",
    "send_offer": "Send to Candidate",
    "track_response": "Track Response",
}


def step_number(step: str) -> int:
    """Return the 1-based position of ``step`` in the offer sequence."""

    return WORKFLOW_STEPS.index(step) + 1


def next_step(step: str) -> str | None:
    position = WORKFLOW_STEPS.index(step)
    if position + 1 >= len(WORKFLOW_STEPS):
        return None
    return WORKFLOW_STEPS[position + 1]


@dataclass(slots=True)
class CandidateIdentity:
    """Candidate profile fields joined onto a workflow."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@dataclass(slots=True)
class JobSummary:
    """Job posting fields joined onto a workflow."""

    title: str = ""
    salary_min: float | None = None
    salary_max: float | None = None
    currency: str | None = None
    location: str | None = None


@dataclass(slots=True)
class OfferWorkflow:
    """One offer workflow, owned by a selected job application."""

    id: str
    job_application_id: str
    current_step: str = "background_check"
    status: str = "pending"
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    background_check_status: str | None = None
    background_check_provider: str | None = None
    background_check_reference_id: str | None = None
    background_check_result: Any = None
    background_check_completed_at: str | None = None

    offer_generated_at: str | None = None
    offer_template_id: str | None = None
    generated_offer_content: str | None = None
    offer_details: dict[str, Any] | None = None

    hr_approval_status: str | None = None
    hr_approved_by: str | None = None
    hr_approved_at: str | None = None
    hr_comments: str | None = None

    sent_to_candidate_at: str | None = None
    candidate_notification_sent: bool | None = None
    offer_letter_url: str | None = None
    email_request_id: str | None = None

    candidate_response: str | None = None
    candidate_response_at: str | None = None
    candidate_comment: str | None = None

    final_offer_amount: float | None = None
    final_offer_currency: str | None = None

    workflow_completed_at: str | None = None
    notes: str | None = None
    priority_level: int | None = None
    estimated_completion_date: str | None = None
    logs: list[dict[str, Any]] = field(default_factory=list)

    job: JobSummary | None = None
    candidate: CandidateIdentity | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def step_number(self) -> int:
        return step_number(self.current_step)
