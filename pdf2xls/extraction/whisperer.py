"""
LLMWhisperer text rendering.

LLMWhisperer turns a scanned PDF into layout-preserving plain text. The
rendering is cached next to the document and serves as the fallback input
when field extraction from the PDF itself keeps failing.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from tenacity import wait_fixed
from tenacity.wait import wait_base

from pdf2xls.extraction.polling import PollingDocumentService
from pdf2xls.models import ExtractionRequest, ProcessingStatus
from pdf2xls.utils.errors import ExtractionFailure
from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://llmwhisperer-api.us-central.unstract.com/"

STATUS_MAP = {
    "processed": ProcessingStatus.DONE,
    "error": ProcessingStatus.FAILED,
    "failed": ProcessingStatus.FAILED,
    "accepted": ProcessingStatus.QUEUED,
    "queued": ProcessingStatus.QUEUED,
}


class WhispererService(PollingDocumentService):
    """Client for the LLMWhisperer v2 API."""

    name = "LLMWhisperer"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        poll_attempts: int = 11,
        poll_wait: Optional[wait_base] = None,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url,
            poll_attempts=poll_attempts,
            poll_wait=poll_wait or wait_fixed(5),
            timeout=timeout,
            http_client=http_client,
        )
        self.api_key = api_key

    @property
    def headers(self) -> Dict[str, str]:
        return {"unstract-key": self.api_key or ""}

    def client_options(self) -> Dict[str, Any]:
        return {"headers": self.headers}

    async def upload(self, client: httpx.AsyncClient, request: ExtractionRequest) -> str:
        response = await client.post(
            self.url("api/v2/whisper"),
            content=request.read_bytes(),
            headers={**self.headers, "Content-Type": "application/octet-stream"},
        )
        response.raise_for_status()
        body = response.json()
        return str(body.get("whisper_hash") or "") if isinstance(body, dict) else ""

    async def fetch_status(self, client: httpx.AsyncClient, document_id: str) -> str:
        response = await client.get(
            self.url("api/v2/whisper-status"),
            params={"whisper_hash": document_id},
            headers=self.headers,
        )
        response.raise_for_status()
        body = response.json()
        return str(body.get("status") or "") if isinstance(body, dict) else ""

    async def fetch_result(self, client: httpx.AsyncClient, document_id: str) -> str:
        response = await client.get(
            self.url("api/v2/whisper-retrieve"),
            params={"whisper_hash": document_id, "text_only": "true"},
            headers=self.headers,
        )
        response.raise_for_status()
        return response.text

    def map_status(self, raw_status: str) -> ProcessingStatus:
        return STATUS_MAP.get(raw_status.strip().lower(), ProcessingStatus.PROCESSING)


class TextRenderer:
    """Produce and cache the plain-text rendering of a document."""

    def __init__(self, service: WhispererService) -> None:
        self.service = service

    @staticmethod
    def cache_path(document: Path) -> Path:
        return document.with_name(f"{document.name}.txt")

    async def render(self, document: Path) -> Path:
        """
        Return the cached rendering of ``document``, creating it if needed.

        Raises:
            ExtractionFailure: If the service fails or returns no text
        """
        target = self.cache_path(document)
        if target.exists() and target.stat().st_size > 0:
            logger.info(f"Using cached text rendering {target.name}")
            return target

        text = await self.service.fetch_payload(ExtractionRequest(document=document))
        if not text.strip():
            raise ExtractionFailure(
                f"{self.service.name} returned no text for {document.name}",
                {"document": str(document)},
            )

        target.write_text(text, encoding="utf-8")
        logger.info(f"Text rendering of {document.name} saved to {target}")
        return target
