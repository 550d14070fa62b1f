"""Application services."""

from .offers import (
    PLACEHOLDER_OFFER_LETTER_URL,
    AdvanceResult,
    OfferWorkflowCoordinator,
    PendingStepRecord,
    configure_offer_coordinator,
    get_offer_coordinator,
    reset_offer_state,
)

__all__ = [
    "AdvanceResult",
    "OfferWorkflowCoordinator",
    "PLACEHOLDER_OFFER_LETTER_URL",
    "PendingStepRecord",
    "configure_offer_coordinator",
    "get_offer_coordinator",
    "reset_offer_state",
]
