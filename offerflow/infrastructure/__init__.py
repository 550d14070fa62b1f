"""Infrastructure layer exports."""

from .functions import (
    FunctionsClient,
    NoOpFunctionsClient,
    SupabaseFunctionsClient,
    configure_functions_client,
    get_functions_client,
)
from .offer_letters import OfferLetterClient, OfferLetterError
from .workflows import (
    ConflictError,
    InMemoryWorkflowRepository,
    RemoteError,
    SupabaseWorkflowRepository,
    WorkflowRepository,
    workflow_from_record,
)

__all__ = [
    "ConflictError",
    "FunctionsClient",
    "InMemoryWorkflowRepository",
    "NoOpFunctionsClient",
    "OfferLetterClient",
    "OfferLetterError",
    "RemoteError",
    "SupabaseFunctionsClient",
    "SupabaseWorkflowRepository",
    "WorkflowRepository",
    "configure_functions_client",
    "get_functions_client",
    "workflow_from_record",
]
