"""Domain layer definitions."""

from .workflows import (
    STEP_LABELS,
    TERMINAL_STATUSES,
    WORKFLOW_STATUSES,
    WORKFLOW_STEPS,
    CandidateIdentity,
    JobSummary,
    OfferWorkflow,
    next_step,
    step_number,
)

__all__ = [
    "CandidateIdentity",
    "JobSummary",
    "OfferWorkflow",
    "STEP_LABELS",
    "TERMINAL_STATUSES",
    "WORKFLOW_STATUSES",
    "WORKFLOW_STEPS",
    "next_step",
    "step_number",
]
