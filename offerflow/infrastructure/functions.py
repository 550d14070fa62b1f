"""Clients for the hosted serverless functions used by the offer workflow.

Two functions are involved: ``background-check`` screens a candidate and
``send-offer-email`` mails the offer. When no backend is configured the
:class:`NoOpFunctionsClient` answers deterministically so the workflow can
still be exercised locally and in tests.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from offerflow.core.schema import BackgroundCheckResult, EmailSendResult
from offerflow.infrastructure.workflows import RemoteError

logger = logging.getLogger(__name__)


class FunctionsClient(Protocol):
    """Contract for serverless function integrations."""

    async def run_background_check(
        self,
        *,
        candidate_id: str,
        first_name: str,
        last_name: str,
        email: str,
    ) -> BackgroundCheckResult: ...

    async def send_offer_email(self, *, to: str, subject: str, html: str, type: str) -> EmailSendResult: ...


class SupabaseFunctionsClient:
    """Invokes the hosted functions under ``/functions/v1``."""

    BACKGROUND_CHECK = "background-check"
    SEND_OFFER_EMAIL = "send-offer-email"

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

        self._functions_url = f"{parsed.scheme}://{parsed.netloc}/functions/v1"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
        }
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def _invoke(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(f"{self._functions_url}/{name}", json=body, headers=self._headers)
        response.raise_for_status()
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteError(f"function {name} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise RemoteError(f"function {name} returned an unexpected payload")
        if payload.get("error"):
            raise RemoteError(str(payload["error"]))
        return payload

    async def run_background_check(
        self,
        *,
        candidate_id: str,
        first_name: str,
        last_name: str,
        email: str,
    ) -> BackgroundCheckResult:
        payload = await self._invoke(
            self.BACKGROUND_CHECK,
            {
                "candidateId": candidate_id,
                "firstName": first_name,
                "lastName": last_name,
                "email": email,
            },
        )
        try:
            return BackgroundCheckResult.model_validate(payload)
        except ValidationError as exc:
            raise RemoteError("malformed background check response") from exc

    async def send_offer_email(self, *, to: str, subject: str, html: str, type: str) -> EmailSendResult:
        payload = await self._invoke(
            self.SEND_OFFER_EMAIL,
            {"to": to, "subject": subject, "html": html, "type": type},
        )
        try:
            return EmailSendResult.model_validate(payload)
        except ValidationError as exc:
            raise RemoteError("malformed email response") from exc

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


class NoOpFunctionsClient:
    """Fallback used when no hosted functions are configured."""

    async def run_background_check(
        self,
        *,
        candidate_id: str,
        first_name: str,
        last_name: str,
        email: str,
    ) -> BackgroundCheckResult:
        logger.info("background check skipped for candidate %s: functions not configured", candidate_id)
        return BackgroundCheckResult(
            status="completed",
            result={"clear": True, "reason": "background check integration not configured"},
            provider="noop",
            reference_id=f"noop-{uuid.uuid4().hex[:12]}",
        )

    async def send_offer_email(self, *, to: str, subject: str, html: str, type: str) -> EmailSendResult:
        logger.info("offer email to %s not sent: functions not configured", to)
        return EmailSendResult(success=True, request_id=None, offer_letter_url=None)


_client: FunctionsClient = NoOpFunctionsClient()


def configure_functions_client(client: FunctionsClient) -> None:
    """Install the functions client used by the offer coordinator."""

    global _client
    _client = client


def get_functions_client() -> FunctionsClient:
    """Return the currently configured functions client."""

    return _client


__all__ = [
    "FunctionsClient",
    "NoOpFunctionsClient",
    "SupabaseFunctionsClient",
    "configure_functions_client",
    "get_functions_client",
]
