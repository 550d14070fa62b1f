from __future__ import annotations

from dataclasses import dataclass

from offerflow.domain import WORKFLOW_STEPS, OfferWorkflow

STATUS_COLORS: dict[str, str] = {
    "completed": "bg-green-500",
    "rejected": "bg-red-500",
    "negotiating": "bg-yellow-500",
}
DEFAULT_STATUS_COLOR = "bg-blue-500"


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


@dataclass(slots=True)
class CandidateWorkflowStatus:
    """Badge shown next to a selected candidate."""

    status: str
    label: str
    color: str


def candidate_workflow_status(workflow: OfferWorkflow | None) -> CandidateWorkflowStatus:
    if workflow is None:
        return CandidateWorkflowStatus("not_started", "Not Started", "bg-gray-100 text-gray-800")
    if workflow.status == "pending":
        label = f"Step {workflow.step_number}/{len(WORKFLOW_STEPS)}"
        return CandidateWorkflowStatus("in_progress", label, "bg-blue-100 text-blue-800")
    if workflow.status == "completed":
        return CandidateWorkflowStatus("completed", "Offer Accepted", "bg-green-100 text-green-800")
    if workflow.status == "rejected":
        return CandidateWorkflowStatus("rejected", "Offer Rejected", "bg-red-100 text-red-800")
    return CandidateWorkflowStatus("pending", "In Progress", "bg-yellow-100 text-yellow-800")
