"""Infrastructure layer for offer workflow persistence."""
from __future__ import annotations

import copy
import logging
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from offerflow.core.schema import AdvanceResponse
from offerflow.domain import (
    WORKFLOW_STEPS,
    CandidateIdentity,
    JobSummary,
    OfferWorkflow,
    next_step,
)

logger = logging.getLogger(__name__)


class RemoteError(RuntimeError):
    """Raised when the hosted backend rejects or garbles a request."""


class ConflictError(RemoteError):
    """Raised when a workflow already exists for a job application."""


class WorkflowRepository(Protocol):
    """Remote contract for offer workflow state."""

    async def list_workflows(self) -> list[OfferWorkflow]: ...

    async def get_workflow(self, workflow_id: str) -> OfferWorkflow | None: ...

    async def create_workflow(self, job_application_id: str, *, created_by: str | None = None) -> OfferWorkflow: ...

    async def advance_step(
        self,
        workflow_id: str,
        step_data: dict[str, Any],
        *,
        expected_step: str | None = None,
    ) -> AdvanceResponse: ...


_WORKFLOW_FIELDS = {item.name for item in fields(OfferWorkflow)} - {"job", "candidate"}


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _job_from(node: Any) -> JobSummary | None:
    if not isinstance(node, dict):
        return None
    return JobSummary(
        title=str(node.get("title") or ""),
        salary_min=node.get("salary_min"),
        salary_max=node.get("salary_max"),
        currency=node.get("currency"),
        location=node.get("location"),
    )


def _candidate_from(node: Any) -> CandidateIdentity | None:
    if not isinstance(node, dict):
        return None
    # candidates may embed the identity directly or under a profiles join
    profile = node.get("profiles") if isinstance(node.get("profiles"), dict) else node
    return CandidateIdentity(
        first_name=str(profile.get("first_name") or ""),
        last_name=str(profile.get("last_name") or ""),
        email=str(profile.get("email") or ""),
    )


def workflow_from_record(record: dict[str, Any]) -> OfferWorkflow:
    """Build an :class:`OfferWorkflow` from a joined ``offer_workflow`` row."""

    application = record.get("job_applications") or {}
    job_node = record.get("jobs") or application.get("jobs")
    candidate_node = record.get("candidates") or application.get("candidates")

    values = {key: value for key, value in record.items() if key in _WORKFLOW_FIELDS}
    if "job_application_id" not in values:
        values["job_application_id"] = str(record.get("application_id") or application.get("id") or "")
    values["id"] = str(values.get("id") or "")
    values["logs"] = list(values.get("logs") or [])
    return OfferWorkflow(**values, job=_job_from(job_node), candidate=_candidate_from(candidate_node))


# Fields the advance procedure accepts while a workflow sits on each step.
STEP_FIELDS: dict[str, frozenset[str]] = {
    "background_check": frozenset(
        {
            "background_check_status",
            "background_check_result",
            "background_check_provider",
            "background_check_reference_id",
            "background_check_completed_at",
        }
    ),
    "generate_offer": frozenset(
        {"generated_offer_content", "offer_details", "offer_template_id", "offer_generated_at"}
    ),
    "hr_approval": frozenset({"hr_comments", "hr_approval_status", "hr_approved_by"}),
    "send_offer": frozenset(
        {"offer_letter_url", "email_request_id", "sent_to_candidate_at", "candidate_notification_sent"}
    ),
    "track_response": frozenset(
        {"candidate_response", "candidate_comment", "final_offer_amount", "final_offer_currency"}
    ),
}

RESPONSE_STATUSES: dict[str, str] = {
    "accepted": "completed",
    "rejected": "rejected",
    "expired": "cancelled",
}


class InMemoryWorkflowRepository:
    """In-process implementation of the hosted offer workflow contract.

    Mirrors what ``advance_offer_workflow_step`` does server side: checks the
    expected step, merges the step fields, stamps timestamps, appends a log
    entry and moves the workflow forward.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, OfferWorkflow] = {}
        self._applications: dict[str, tuple[JobSummary | None, CandidateIdentity | None]] = {}
        self._counter = 0

    # ------------------------------------------------------------------
    # fixtures
    # ------------------------------------------------------------------
    def register_application(
        self,
        job_application_id: str,
        *,
        job: JobSummary | None = None,
        candidate: CandidateIdentity | None = None,
    ) -> None:
        """Record the job and candidate joined onto workflows of an application."""

        self._applications[job_application_id] = (job, candidate)
        for workflow in self._workflows.values():
            if workflow.job_application_id == job_application_id:
                workflow.job, workflow.candidate = job, candidate

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    async def list_workflows(self) -> list[OfferWorkflow]:
        ordered = sorted(
            self._workflows.values(),
            key=lambda item: (item.created_at or "", item.id),
            reverse=True,
        )
        return [copy.deepcopy(item) for item in ordered]

    async def get_workflow(self, workflow_id: str) -> OfferWorkflow | None:
        workflow = self._workflows.get(workflow_id)
        return copy.deepcopy(workflow) if workflow else None

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    async def create_workflow(self, job_application_id: str, *, created_by: str | None = None) -> OfferWorkflow:
        if any(item.job_application_id == job_application_id for item in self._workflows.values()):
            raise ConflictError(f"offer workflow already exists for application {job_application_id}")

        self._counter += 1
        now = _utcnow()
        job, candidate = self._applications.get(job_application_id, (None, None))
        workflow = OfferWorkflow(
            # zero padded so ids sort in creation order
            id=f"wf-{self._counter:05d}",
            job_application_id=job_application_id,
            current_step=WORKFLOW_STEPS[0],
            status="pending",
            created_by=created_by,
            created_at=now,
            updated_at=now,
            job=job,
            candidate=candidate,
        )
        self._workflows[workflow.id] = workflow
        return copy.deepcopy(workflow)

    async def advance_step(
        self,
        workflow_id: str,
        step_data: dict[str, Any],
        *,
        expected_step: str | None = None,
    ) -> AdvanceResponse:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            return AdvanceResponse(success=False, message="Workflow not found")
        if workflow.is_terminal:
            return AdvanceResponse(success=False, message=f"Workflow is already {workflow.status}")

        step = workflow.current_step
        if expected_step is not None and expected_step != step:
            return AdvanceResponse(
                success=False,
                message=f"Workflow is at step {step}, not {expected_step}",
            )

        unknown = sorted(set(step_data) - STEP_FIELDS[step])
        if unknown:
            return AdvanceResponse(
                success=False,
                message=f"Fields not valid for step {step}: {', '.join(unknown)}",
            )

        now = _utcnow()
        for key, value in step_data.items():
            setattr(workflow, key, value)

        message = self._apply_transition(workflow, step, step_data, now)
        workflow.updated_at = now
        workflow.logs.append(
            {
                "step": step,
                "fields": sorted(step_data),
                "current_step": workflow.current_step,
                "status": workflow.status,
                "at": now,
            }
        )
        logger.debug("workflow %s: %s", workflow_id, message)
        return AdvanceResponse(success=True, message=message)

    @staticmethod
    def _apply_transition(workflow: OfferWorkflow, step: str, step_data: dict[str, Any], now: str) -> str:
        if step == "background_check":
            workflow.background_check_status = workflow.background_check_status or "completed"
            workflow.background_check_completed_at = workflow.background_check_completed_at or now
        elif step == "generate_offer":
            workflow.offer_generated_at = workflow.offer_generated_at or now
        elif step == "hr_approval":
            workflow.hr_approval_status = step_data.get("hr_approval_status") or "approved"
            workflow.hr_approved_at = now
            if workflow.hr_approval_status == "rejected":
                workflow.status = "rejected"
                return "Offer rejected during HR approval"
            if workflow.hr_approval_status == "revision_required":
                workflow.status = "in_progress"
                return "Offer returned for revision"
        elif step == "send_offer":
            workflow.sent_to_candidate_at = workflow.sent_to_candidate_at or now
            workflow.candidate_notification_sent = True
        elif step == "track_response":
            workflow.candidate_response_at = now
            final_status = RESPONSE_STATUSES.get(workflow.candidate_response or "")
            if final_status is None:
                workflow.status = "in_progress"
                return f"Candidate response recorded: {workflow.candidate_response}"
            workflow.status = final_status
            if final_status == "completed":
                workflow.workflow_completed_at = now
            return f"Workflow {final_status}"

        following = next_step(step)
        if following is not None:
            workflow.current_step = following
        workflow.status = "in_progress"
        return f"Advanced to {workflow.current_step}"

    def reset(self) -> None:
        self._workflows.clear()
        self._applications.clear()
        self._counter = 0


class SupabaseWorkflowRepository:
    """Workflow repository backed by the hosted PostgREST API."""

    TABLE = "offer_workflow"
    ADVANCE_PROCEDURE = "advance_offer_workflow_step"
    SELECT = (
        "*,"
        "job_applications!inner("
        "id,job_id,candidate_id,"
        "jobs(title,salary_min,salary_max,currency,location),"
        "candidates(profile_id,profiles(first_name,last_name,email))"
        ")"
    )

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("base_url must include scheme and host")

        self._rest_url = f"{parsed.scheme}://{parsed.netloc}/rest/v1"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _json(response: httpx.Response) -> Any:
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError("backend returned a non-JSON body") from exc

    def _records(self, payload: Any) -> list[OfferWorkflow]:
        if not isinstance(payload, list):
            raise RemoteError("expected a list of workflow rows")
        return [workflow_from_record(row) for row in payload if isinstance(row, dict)]

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def list_workflows(self) -> list[OfferWorkflow]:
        response = await self._client.get(
            f"{self._rest_url}/{self.TABLE}",
            params={"select": self.SELECT, "order": "created_at.desc"},
            headers=self._headers,
        )
        return self._records(self._json(response))

    async def get_workflow(self, workflow_id: str) -> OfferWorkflow | None:
        response = await self._client.get(
            f"{self._rest_url}/{self.TABLE}",
            params={"select": self.SELECT, "id": f"eq.{workflow_id}"},
            headers=self._headers,
        )
        rows = self._records(self._json(response))
        return rows[0] if rows else None

    async def create_workflow(self, job_application_id: str, *, created_by: str | None = None) -> OfferWorkflow:
        response = await self._client.post(
            f"{self._rest_url}/{self.TABLE}",
            params={"select": self.SELECT},
            json={
                "job_application_id": job_application_id,
                "created_by": created_by,
                "current_step": WORKFLOW_STEPS[0],
                "status": "pending",
            },
            headers={**self._headers, "Prefer": "return=representation"},
        )
        if response.status_code == httpx.codes.CONFLICT:
            raise ConflictError(f"offer workflow already exists for application {job_application_id}")
        rows = self._records(self._json(response))
        if not rows:
            raise RemoteError("backend did not return the created workflow")
        return rows[0]

    async def advance_step(
        self,
        workflow_id: str,
        step_data: dict[str, Any],
        *,
        expected_step: str | None = None,
    ) -> AdvanceResponse:
        response = await self._client.post(
            f"{self._rest_url}/rpc/{self.ADVANCE_PROCEDURE}",
            json={"workflow_id": workflow_id, "step_data": step_data, "expected_step": expected_step},
            headers=self._headers,
        )
        payload = self._json(response)
        try:
            return AdvanceResponse.model_validate(payload)
        except ValidationError as exc:
            raise RemoteError("malformed advance response") from exc

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


__all__ = [
    "ConflictError",
    "InMemoryWorkflowRepository",
    "RemoteError",
    "STEP_FIELDS",
    "SupabaseWorkflowRepository",
    "WorkflowRepository",
    "workflow_from_record",
]
