"""Client for the offer letter document service."""
from __future__ import annotations

import json
from typing import Any, Literal
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from offerflow.core.schema import EmailStatusResponse, OfferApiResponse

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class OfferLetterError(RuntimeError):
    """Raised when the offer letter service fails a request."""


class OfferLetterClient:
    """Generates offer letters from ``.docx`` templates and mails them."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("base_url must include scheme and host")

        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _check(response: httpx.Response, action: str) -> httpx.Response:
        if response.is_error:
            raise OfferLetterError(f"Failed to {action}: {response.reason_phrase or response.status_code}")
        return response

    @staticmethod
    def is_docx_template(filename: str, content_type: str | None = None) -> bool:
        return content_type == DOCX_MEDIA_TYPE or filename.lower().endswith(".docx")

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def generate_offer_letter(
        self,
        template: bytes,
        data: dict[str, Any],
        *,
        template_name: str = "template.docx",
        output_format: Literal["docx", "pdf", "both"] = "both",
    ) -> OfferApiResponse:
        if not self.is_docx_template(template_name):
            raise OfferLetterError("offer templates must be .docx files")

        files = {
            "template_file": (template_name, template, DOCX_MEDIA_TYPE),
            "data_file": ("candidate_data.json", json.dumps(data).encode("utf-8"), "application/json"),
        }
        response = await self._client.post(
            f"{self._base_url}/api/v1/generate-offer",
            files=files,
            data={"output_format": output_format},
        )
        self._check(response, "generate offer letter")
        try:
            return OfferApiResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OfferLetterError("malformed generate-offer response") from exc

    async def send_offer_letter(
        self,
        pdf: bytes,
        *,
        filename: str,
        emails: list[str],
        subject: str,
        html_content: str,
    ) -> dict[str, str]:
        email_data = {"emails": emails, "subject": subject, "html_content": html_content}
        response = await self._client.post(
            f"{self._base_url}/api/v1/send-offer",
            files={"pdf_file": (filename, pdf, "application/pdf")},
            data={"email_data": json.dumps(email_data)},
        )
        self._check(response, "send offer letter")
        payload = response.json()
        return {"request_id": str(payload.get("request_id") or ""), "status": str(payload.get("status") or "")}

    async def get_email_status(self, request_id: str) -> EmailStatusResponse:
        response = await self._client.get(f"{self._base_url}/api/v1/email-status/{request_id}")
        self._check(response, "get email status")
        try:
            return EmailStatusResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OfferLetterError("malformed email status response") from exc

    async def download_file(self, file_id: str) -> bytes:
        response = await self._client.get(f"{self._base_url}/api/v1/download/{file_id}")
        self._check(response, "download file")
        return response.content

    async def health_check(self) -> dict[str, Any]:
        response = await self._client.get(f"{self._base_url}/health")
        self._check(response, "run health check")
        return response.json()

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


__all__ = ["DOCX_MEDIA_TYPE", "OfferLetterClient", "OfferLetterError"]
