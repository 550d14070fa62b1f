"""Application service that drives offer workflows through their steps."""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator

import httpx
from pydantic import BaseModel, ValidationError

from offerflow.core.notifications import NotificationCenter
from offerflow.core.presentation import CandidateWorkflowStatus, candidate_workflow_status, status_color
from offerflow.core.schema import (
    BackgroundCheckPayload,
    EmailStatusResponse,
    GenerateOfferPayload,
    HRApprovalPayload,
    SendOfferPayload,
    TrackResponsePayload,
    step_data,
)
from offerflow.core.templates import (
    DEFAULT_OFFER_SALARY,
    format_candidate_data_for_offer,
    offer_document,
    offer_email_content,
    offer_email_html,
    offer_email_subject,
)
from offerflow.domain import WORKFLOW_STATUSES, WORKFLOW_STEPS, CandidateIdentity, OfferWorkflow
from offerflow.infrastructure import (
    ConflictError,
    FunctionsClient,
    InMemoryWorkflowRepository,
    OfferLetterClient,
    OfferLetterError,
    RemoteError,
    WorkflowRepository,
    get_functions_client,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_OFFER_LETTER_URL = "dummy-offer-letter-url.pdf"

REMOTE_ERRORS = (httpx.HTTPError, RemoteError, OfferLetterError)


class WorkflowBusyError(RuntimeError):
    """Raised when an action is already running for a workflow."""


@dataclass(slots=True)
class AdvanceResult:
    """Outcome of a single advance call."""

    success: bool
    message: str | None = None
    workflow_id: str | None = None


@dataclass(slots=True)
class PendingStepRecord:
    """An upstream side effect whose step advance has not been recorded yet."""

    workflow_id: str
    step: str
    payload: BaseModel
    reason: str
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, object]:
        return {
            "workflow_id": self.workflow_id,
            "step": self.step,
            "step_data": step_data(self.payload),
            "reason": self.reason,
            "created_at": self.created_at,
        }


class OfferWorkflowCoordinator:
    """Lists offer workflows and advances them through the remote procedure.

    Step rules live on the remote side. The coordinator only checks that a
    payload targets the step it last observed for the workflow, sends that step
    as the expected step, and reports every outcome through the notification
    center instead of raising.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        functions: FunctionsClient,
        *,
        notifications: NotificationCenter | None = None,
        offer_letters: OfferLetterClient | None = None,
    ) -> None:
        self._repository = repository
        self._functions = functions
        self._offer_letters = offer_letters
        self.notifications = notifications or NotificationCenter()
        self._workflows: list[OfferWorkflow] = []
        self._busy: set[str] = set()
        self._pending: dict[str, PendingStepRecord] = {}

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def repository(self) -> WorkflowRepository:
        return self._repository

    @property
    def workflows(self) -> list[OfferWorkflow]:
        """Workflows from the last successful fetch."""

        return list(self._workflows)

    def is_busy(self, workflow_id: str) -> bool:
        return workflow_id in self._busy

    def busy_workflows(self) -> set[str]:
        return set(self._busy)

    @contextmanager
    def _busy_flag(self, workflow_id: str) -> Iterator[None]:
        if workflow_id in self._busy:
            raise WorkflowBusyError(workflow_id)
        self._busy.add(workflow_id)
        try:
            yield
        finally:
            self._busy.discard(workflow_id)

    def _observed(self, workflow_id: str) -> OfferWorkflow | None:
        for workflow in self._workflows:
            if workflow.id == workflow_id:
                return workflow
        return None

    def _reject_busy(self, workflow_id: str) -> AdvanceResult:
        message = "Another action is already running for this workflow"
        self.notifications.error(message)
        return AdvanceResult(success=False, message=message, workflow_id=workflow_id)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def list_workflows(self) -> list[OfferWorkflow]:
        try:
            fetched = await self._repository.list_workflows()
        except Exception:
            logger.exception("Error fetching offer workflows")
            self.notifications.error("Failed to fetch offer workflows")
            return []

        workflows = [workflow for workflow in fetched if _displayable(workflow)]
        self._workflows = workflows
        return list(workflows)

    async def get_workflow(self, workflow_id: str) -> OfferWorkflow | None:
        try:
            workflow = await self._repository.get_workflow(workflow_id)
        except Exception:
            logger.exception("Error fetching offer workflow %s", workflow_id)
            self.notifications.error("Failed to fetch offer workflow")
            return None
        if workflow is None or not _displayable(workflow):
            return None
        return workflow

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def initiate_workflow(self, job_application_id: str, *, created_by: str | None = None) -> OfferWorkflow | None:
        """Open the offer workflow for a candidate marked ``selected``."""

        try:
            workflow = await self._repository.create_workflow(job_application_id, created_by=created_by)
        except ConflictError as exc:
            logger.warning("offer workflow not created: %s", exc)
            self.notifications.error(f"Failed to initiate offer workflow: {exc}")
            return None
        except Exception:
            logger.exception("Error initiating offer workflow for application %s", job_application_id)
            self.notifications.error("Failed to initiate offer workflow")
            return None

        self.notifications.success("Background check process has started", title="Offer workflow initiated")
        await self.list_workflows()
        return workflow

    async def advance(
        self,
        workflow: OfferWorkflow | str,
        payload: BaseModel,
        *,
        refresh: bool = True,
    ) -> AdvanceResult:
        """Advance ``workflow`` one step with a step-tagged ``payload``."""

        workflow_id = workflow if isinstance(workflow, str) else workflow.id
        try:
            with self._busy_flag(workflow_id):
                return await self._advance(workflow_id, payload, refresh=refresh)
        except WorkflowBusyError:
            return self._reject_busy(workflow_id)

    async def _advance(self, workflow_id: str, payload: BaseModel, *, refresh: bool) -> AdvanceResult:
        step = getattr(payload, "step", None)
        observed = self._observed(workflow_id)
        if observed is not None and observed.current_step != step:
            message = f"Payload for step {step} does not match current step {observed.current_step}"
            logger.warning("workflow %s: %s", workflow_id, message)
            self.notifications.error(message)
            return AdvanceResult(success=False, message=message, workflow_id=workflow_id)

        try:
            response = await self._repository.advance_step(workflow_id, step_data(payload), expected_step=step)
        except REMOTE_ERRORS as exc:
            logger.exception("Error advancing workflow %s", workflow_id)
            self.notifications.error(f"Failed to advance workflow step: {exc}")
            return AdvanceResult(success=False, message=str(exc), workflow_id=workflow_id)
        except Exception as exc:
            logger.exception("Unexpected error advancing workflow %s", workflow_id)
            self.notifications.error("Failed to advance workflow step")
            return AdvanceResult(success=False, message=str(exc), workflow_id=workflow_id)

        if not response.success:
            message = response.message or "Unknown error"
            logger.warning("workflow %s not advanced: %s", workflow_id, message)
            self.notifications.error(f"Failed to advance workflow step: {message}")
            return AdvanceResult(success=False, message=message, workflow_id=workflow_id)

        logger.info("workflow %s advanced from %s", workflow_id, step)
        if refresh:
            await self.list_workflows()
        else:
            # the cached step is stale now; let the remote expected_step decide
            self._workflows = [item for item in self._workflows if item.id != workflow_id]
        self.notifications.success("Workflow step completed successfully")
        return AdvanceResult(success=True, message=response.message, workflow_id=workflow_id)

    async def _record_side_effect(self, workflow: OfferWorkflow, payload: BaseModel) -> AdvanceResult:
        """Second phase of a composed operation; keeps a pending record on failure."""

        outcome = await self._advance(workflow.id, payload, refresh=True)
        if outcome.success:
            self._pending.pop(workflow.id, None)
        else:
            logger.warning(
                "workflow %s: %s side effect applied but not recorded (%s)",
                workflow.id,
                payload.step,  # type: ignore[attr-defined]
                outcome.message,
            )
            self._pending[workflow.id] = PendingStepRecord(
                workflow_id=workflow.id,
                step=payload.step,  # type: ignore[attr-defined]
                payload=payload,
                reason=outcome.message or "unknown",
            )
        return outcome

    # ------------------------------------------------------------------
    # step operations
    # ------------------------------------------------------------------
    async def run_background_check(self, workflow: OfferWorkflow) -> AdvanceResult:
        try:
            with self._busy_flag(workflow.id):
                candidate = workflow.candidate
                if candidate is None:
                    self.notifications.error("Failed to run background check: candidate not found")
                    return AdvanceResult(success=False, message="Candidate not found", workflow_id=workflow.id)

                try:
                    result = await self._functions.run_background_check(
                        candidate_id=workflow.job_application_id,
                        first_name=candidate.first_name,
                        last_name=candidate.last_name,
                        email=candidate.email,
                    )
                except Exception as exc:
                    logger.exception("Error running background check for workflow %s", workflow.id)
                    self.notifications.error("Failed to run background check")
                    return AdvanceResult(success=False, message=str(exc), workflow_id=workflow.id)

                payload = BackgroundCheckPayload(
                    background_check_status=result.status,
                    background_check_result=result.result,
                    background_check_provider=result.provider,
                    background_check_reference_id=result.reference_id,
                )
                return await self._record_side_effect(workflow, payload)
        except WorkflowBusyError:
            return self._reject_busy(workflow.id)

    async def generate_offer(
        self,
        workflow: OfferWorkflow,
        amount: str = "",
        *,
        template: bytes | None = None,
        template_name: str = "template.docx",
    ) -> AdvanceResult:
        """Generate the offer and move to HR approval.

        Without a template the offer is rendered as an HTML document. With a
        ``.docx`` template it is produced by the offer letter service and the
        generated file ids are kept in ``offer_details``.
        """

        if template is None:
            job_title = workflow.job.title if workflow.job else ""
            content = offer_document(job_title, workflow.candidate or _EMPTY_CANDIDATE, amount)
            payload = GenerateOfferPayload(
                generated_offer_content=content,
                offer_details={"position": job_title, "salary": amount or DEFAULT_OFFER_SALARY},
            )
            return await self.advance(workflow, payload)

        try:
            with self._busy_flag(workflow.id):
                return await self._generate_from_template(workflow, amount, template, template_name)
        except WorkflowBusyError:
            return self._reject_busy(workflow.id)

    async def _generate_from_template(
        self,
        workflow: OfferWorkflow,
        amount: str,
        template: bytes,
        template_name: str,
    ) -> AdvanceResult:
        if self._offer_letters is None:
            self.notifications.error("Offer letter service is not configured", title="Generation Failed")
            return AdvanceResult(success=False, message="offer letter service not configured", workflow_id=workflow.id)
        if workflow.candidate is None or workflow.job is None:
            self.notifications.error("Missing candidate or job data", title="Generation Failed")
            return AdvanceResult(success=False, message="Missing candidate or job data", workflow_id=workflow.id)

        data = format_candidate_data_for_offer(workflow.candidate, workflow.job)
        if amount:
            data["salary"] = amount

        try:
            response = await self._offer_letters.generate_offer_letter(
                template,
                data,
                template_name=template_name,
                output_format="both",
            )
        except Exception as exc:
            logger.exception("Error generating offer letter for workflow %s", workflow.id)
            self.notifications.error(str(exc) or "Failed to generate offer letter.", title="Generation Failed")
            return AdvanceResult(success=False, message=str(exc), workflow_id=workflow.id)

        if not response.success:
            message = response.message or "Failed to generate offer"
            self.notifications.error(message, title="Generation Failed")
            return AdvanceResult(success=False, message=message, workflow_id=workflow.id)

        files = response.files or {}
        payload = GenerateOfferPayload(
            generated_offer_content=json.dumps(data),
            offer_details={
                "position": workflow.job.title,
                "salary": data["salary"],
                "pdf_file_id": files.get("pdf"),
                "docx_file_id": files.get("docx"),
                "request_id": response.request_id,
            },
        )
        return await self._record_side_effect(workflow, payload)

    async def approve_offer(self, workflow: OfferWorkflow, comments: str = "") -> AdvanceResult:
        return await self.advance(workflow, HRApprovalPayload(hr_comments=comments))

    async def send_to_candidate(self, workflow: OfferWorkflow) -> AdvanceResult:
        try:
            with self._busy_flag(workflow.id):
                return await self._send_to_candidate(workflow)
        except WorkflowBusyError:
            return self._reject_busy(workflow.id)

    async def _send_to_candidate(self, workflow: OfferWorkflow) -> AdvanceResult:
        candidate = workflow.candidate
        if candidate is None or not candidate.email:
            self.notifications.error("Failed to send offer to candidate: candidate email missing")
            return AdvanceResult(success=False, message="Candidate email missing", workflow_id=workflow.id)

        job_title = workflow.job.title if workflow.job else ""
        try:
            result = await self._functions.send_offer_email(
                to=candidate.email,
                subject=offer_email_subject(job_title),
                html=offer_email_html(job_title, candidate),
                type="offer_sent",
            )
        except Exception as exc:
            logger.exception("Error sending offer for workflow %s", workflow.id)
            self.notifications.error("Failed to send offer to candidate")
            return AdvanceResult(success=False, message=str(exc), workflow_id=workflow.id)

        if not result.success:
            self.notifications.error("Failed to send offer to candidate")
            return AdvanceResult(success=False, message="email function reported failure", workflow_id=workflow.id)

        details = workflow.offer_details or {}
        letter_url = result.offer_letter_url or details.get("pdf_file_id") or PLACEHOLDER_OFFER_LETTER_URL
        payload = SendOfferPayload(
            offer_letter_url=letter_url,
            email_request_id=result.request_id,
            candidate_notification_sent=True,
        )
        return await self._record_side_effect(workflow, payload)

    async def send_offer_letter(self, workflow: OfferWorkflow) -> AdvanceResult:
        """Mail the generated PDF letter through the offer letter service."""

        try:
            with self._busy_flag(workflow.id):
                return await self._send_offer_letter(workflow)
        except WorkflowBusyError:
            return self._reject_busy(workflow.id)

    async def _send_offer_letter(self, workflow: OfferWorkflow) -> AdvanceResult:
        pdf_file_id = (workflow.offer_details or {}).get("pdf_file_id")
        if not pdf_file_id:
            self.notifications.error("Please generate an offer letter first.", title="No Offer Letter")
            return AdvanceResult(success=False, message="No offer letter", workflow_id=workflow.id)
        if self._offer_letters is None:
            self.notifications.error("Offer letter service is not configured", title="Send Failed")
            return AdvanceResult(success=False, message="offer letter service not configured", workflow_id=workflow.id)
        if workflow.candidate is None or workflow.job is None:
            self.notifications.error("Missing candidate or job data", title="Send Failed")
            return AdvanceResult(success=False, message="Missing candidate or job data", workflow_id=workflow.id)

        candidate = workflow.candidate
        try:
            pdf = await self._offer_letters.download_file(str(pdf_file_id))
            response = await self._offer_letters.send_offer_letter(
                pdf,
                filename=f"offer_letter_{candidate.first_name}_{candidate.last_name}.pdf",
                emails=[candidate.email],
                subject=offer_email_subject(workflow.job.title),
                html_content=offer_email_content(candidate.full_name, workflow.job.title or "the position"),
            )
        except Exception as exc:
            logger.exception("Error sending offer letter for workflow %s", workflow.id)
            self.notifications.error(str(exc) or "Failed to send offer to candidate", title="Send Failed")
            return AdvanceResult(success=False, message=str(exc), workflow_id=workflow.id)

        payload = SendOfferPayload(
            offer_letter_url=str(pdf_file_id),
            email_request_id=response.get("request_id") or None,
            candidate_notification_sent=True,
        )
        return await self._record_side_effect(workflow, payload)

    async def record_response(
        self,
        workflow: OfferWorkflow,
        response: str,
        *,
        comment: str | None = None,
        final_amount: float | None = None,
        currency: str | None = None,
    ) -> AdvanceResult:
        try:
            payload = TrackResponsePayload(
                candidate_response=response,  # type: ignore[arg-type]
                candidate_comment=comment,
                final_offer_amount=final_amount,
                final_offer_currency=currency,
            )
        except ValidationError:
            message = f"Unsupported candidate response: {response}"
            self.notifications.error(message)
            return AdvanceResult(success=False, message=message, workflow_id=workflow.id)
        return await self.advance(workflow, payload)

    async def check_email_status(self, request_id: str) -> EmailStatusResponse | None:
        if self._offer_letters is None:
            self.notifications.error("Offer letter service is not configured", title="Status Check Failed")
            return None
        try:
            return await self._offer_letters.get_email_status(request_id)
        except Exception:
            logger.exception("Error checking email status %s", request_id)
            self.notifications.error("Could not check email delivery status", title="Status Check Failed")
            return None

    # ------------------------------------------------------------------
    # recovery
    # ------------------------------------------------------------------
    def pending_records(self) -> list[PendingStepRecord]:
        return list(self._pending.values())

    async def retry_pending(self, workflow_id: str) -> AdvanceResult:
        """Replay the advance of a side effect that was applied but not recorded."""

        record = self._pending.get(workflow_id)
        if record is None:
            message = "No pending step to retry for this workflow"
            self.notifications.error(message)
            return AdvanceResult(success=False, message=message, workflow_id=workflow_id)

        try:
            with self._busy_flag(workflow_id):
                outcome = await self._advance(workflow_id, record.payload, refresh=True)
        except WorkflowBusyError:
            return self._reject_busy(workflow_id)
        if outcome.success:
            self._pending.pop(workflow_id, None)
        else:
            record.reason = outcome.message or record.reason
        return outcome

    # ------------------------------------------------------------------
    # presentation helpers
    # ------------------------------------------------------------------
    @staticmethod
    def status_color(status: str) -> str:
        return status_color(status)

    @staticmethod
    def candidate_workflow_status(workflow: OfferWorkflow | None) -> CandidateWorkflowStatus:
        return candidate_workflow_status(workflow)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._workflows = []
        self._busy.clear()
        self._pending.clear()
        self.notifications.clear()
        reset = getattr(self._repository, "reset", None)
        if callable(reset):
            reset()


_EMPTY_CANDIDATE = CandidateIdentity()


def _displayable(workflow: OfferWorkflow) -> bool:
    if workflow.current_step in WORKFLOW_STEPS and workflow.status in WORKFLOW_STATUSES:
        return True
    logger.warning(
        "skipping workflow %s with step=%r status=%r",
        workflow.id,
        workflow.current_step,
        workflow.status,
    )
    return False


_coordinator: OfferWorkflowCoordinator | None = None


def configure_offer_coordinator(coordinator: OfferWorkflowCoordinator) -> None:
    """Install the coordinator served by the API."""

    global _coordinator
    _coordinator = coordinator


def get_offer_coordinator() -> OfferWorkflowCoordinator:
    """Return the process coordinator, backed in memory until configured."""

    global _coordinator
    if _coordinator is None:
        _coordinator = OfferWorkflowCoordinator(InMemoryWorkflowRepository(), get_functions_client())
    return _coordinator


def reset_offer_state() -> None:
    """Reset the coordinator and its in-memory store (used in tests)."""

    get_offer_coordinator().reset()
