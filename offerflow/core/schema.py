from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

WorkflowStep = Literal["background_check", "generate_offer", "hr_approval", "send_offer", "track_response"]
WorkflowStatus = Literal["pending", "in_progress", "completed", "rejected", "cancelled"]
BackgroundCheckStatus = Literal["not_required", "pending", "in_progress", "completed", "failed"]
HRApprovalStatus = Literal["pending", "approved", "rejected", "revision_required"]
CandidateResponse = Literal["pending", "accepted", "rejected", "negotiating", "expired"]


class BackgroundCheckPayload(BaseModel):
    step: Literal["background_check"] = "background_check"
    background_check_status: BackgroundCheckStatus | None = None
    background_check_result: Any = None
    background_check_provider: str | None = None
    background_check_reference_id: str | None = None
    background_check_completed_at: str | None = None


class GenerateOfferPayload(BaseModel):
    step: Literal["generate_offer"] = "generate_offer"
    generated_offer_content: str
    offer_details: dict[str, Any] = Field(default_factory=dict)
    offer_template_id: str | None = None
    offer_generated_at: str | None = None


class HRApprovalPayload(BaseModel):
    step: Literal["hr_approval"] = "hr_approval"
    hr_comments: str = ""
    hr_approval_status: HRApprovalStatus | None = None
    hr_approved_by: str | None = None


class SendOfferPayload(BaseModel):
    step: Literal["send_offer"] = "send_offer"
    offer_letter_url: str
    email_request_id: str | None = None
    sent_to_candidate_at: str | None = None
    candidate_notification_sent: bool | None = None


class TrackResponsePayload(BaseModel):
    step: Literal["track_response"] = "track_response"
    candidate_response: CandidateResponse
    candidate_comment: str | None = None
    final_offer_amount: float | None = None
    final_offer_currency: str | None = None


StepPayload = Annotated[
    Union[
        BackgroundCheckPayload,
        GenerateOfferPayload,
        HRApprovalPayload,
        SendOfferPayload,
        TrackResponsePayload,
    ],
    Field(discriminator="step"),
]

step_payload_adapter: TypeAdapter[StepPayload] = TypeAdapter(StepPayload)


def step_data(payload: BaseModel) -> dict[str, Any]:
    """Flatten a step payload into the open map the advance procedure merges."""

    return payload.model_dump(mode="json", exclude={"step"}, exclude_none=True)


class AdvanceResponse(BaseModel):
    """Envelope returned by ``advance_offer_workflow_step``."""

    success: bool
    message: str | None = None


class BackgroundCheckResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: BackgroundCheckStatus = "completed"
    result: Any = None
    provider: str | None = None
    reference_id: str | None = None


class EmailSendResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = True
    request_id: str | None = None
    offer_letter_url: str | None = None


class OfferApiResponse(BaseModel):
    success: bool
    request_id: str
    message: str = ""
    files: dict[str, str] | None = None
    processing_time: float | None = None
    metadata: dict[str, Any] | None = None


class EmailStatusResponse(BaseModel):
    request_id: str
    status: Literal["pending", "processing", "completed", "failed"]
    progress_percentage: float = 0
    total_recipients: int = 0
    sent_count: int = 0
    failed_count: int = 0
    pending_count: int = 0
    errors: list[str] = Field(default_factory=list)
    started_at: str | None = None
    completed_at: str | None = None
    duration: float | None = None
