"""
NuDelta invoice recognition API.

Documents are uploaded with HTTP basic auth; the document resource reports a
``state`` until it is ``done``, after which the compact response carries the
recognized invoice fields.
"""

from typing import Any, Dict, Optional

import httpx
from tenacity.wait import wait_base

from pdf2xls.extraction.polling import PollingDocumentProvider
from pdf2xls.models import ExtractionRequest, ProcessingStatus
from pdf2xls.normalization.record import unwrap_node

DEFAULT_BASE_URL = "https://www.nudelta.pl/api/v1"

STATUS_MAP = {
    "done": ProcessingStatus.DONE,
    "failed": ProcessingStatus.FAILED,
    "error": ProcessingStatus.FAILED,
    "rejected": ProcessingStatus.FAILED,
    "new": ProcessingStatus.QUEUED,
    "queued": ProcessingStatus.QUEUED,
    "pending": ProcessingStatus.QUEUED,
}


class NuDeltaProvider(PollingDocumentProvider):
    """Field extraction through the NuDelta document API."""

    name = "NuDelta"

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = DEFAULT_BASE_URL,
        poll_attempts: int = 6,
        poll_wait: Optional[wait_base] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            base_url,
            poll_attempts=poll_attempts,
            poll_wait=poll_wait,
            timeout=timeout,
            http_client=http_client,
        )
        self.auth = httpx.BasicAuth(username or "", password or "")

    def client_options(self) -> Dict[str, Any]:
        return {"auth": self.auth}

    async def upload(self, client: httpx.AsyncClient, request: ExtractionRequest) -> str:
        files = {"file": (request.filename, request.read_bytes(), self.content_type(request))}
        response = await client.post(self.url("documents"), files=files, auth=self.auth)
        response.raise_for_status()
        body = response.json()
        return unwrap_node(body.get("document_id")) if isinstance(body, dict) else ""

    async def fetch_status(self, client: httpx.AsyncClient, document_id: str) -> str:
        response = await client.get(self.url(f"documents/{document_id}"), auth=self.auth)
        response.raise_for_status()
        body = response.json()
        return unwrap_node(body.get("state")) if isinstance(body, dict) else ""

    async def fetch_result(self, client: httpx.AsyncClient, document_id: str) -> str:
        response = await client.get(
            self.url(f"documents/{document_id}"),
            params={"compact-response": "true"},
            auth=self.auth,
        )
        response.raise_for_status()
        return response.text

    def map_status(self, raw_status: str) -> ProcessingStatus:
        return STATUS_MAP.get(raw_status.strip().lower(), ProcessingStatus.PROCESSING)
