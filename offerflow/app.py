import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from offerflow.application import OfferWorkflowCoordinator, configure_offer_coordinator
from offerflow.infrastructure import (
    InMemoryWorkflowRepository,
    OfferLetterClient,
    SupabaseFunctionsClient,
    SupabaseWorkflowRepository,
    configure_functions_client,
    get_functions_client,
)
from offerflow.routes import notifications, offers


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="SimplifyHiring Offer Workflow API", version="0.1.0")

    timeout = float(os.getenv("HTTP_TIMEOUT") or 30.0)
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")
    if supabase_url and supabase_key:
        repository = SupabaseWorkflowRepository(supabase_url, supabase_key, timeout=timeout)
        configure_functions_client(SupabaseFunctionsClient(supabase_url, supabase_key, timeout=timeout))
    else:
        repository = InMemoryWorkflowRepository()

    offer_letters = None
    offer_letter_url = os.getenv("OFFER_LETTER_API_URL")
    if offer_letter_url:
        offer_letters = OfferLetterClient(offer_letter_url, timeout=timeout)

    configure_offer_coordinator(
        OfferWorkflowCoordinator(repository, get_functions_client(), offer_letters=offer_letters)
    )

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(offers.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "SimplifyHiring Offer Workflow API",
                "docs": "/docs",
                "health": "/api/offers",
            }
        )

    return app


app = create_app()
