"""
Polling-document providers.

These services accept an upload, hand back a document identifier and are
polled over HTTP until the document is processed. The result is then
fetched with a separate request.
"""

import mimetypes
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from tenacity import wait_exponential
from tenacity.wait import wait_base

from pdf2xls.extraction.base import ExtractionProvider, poll_until_done
from pdf2xls.models import ExtractionRequest, ProcessingStatus, RawFieldTree
from pdf2xls.normalization.record import parse_field_tree
from pdf2xls.utils.errors import ExtractionFailure, UploadFailure
from pdf2xls.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)


class PollingDocumentService(ABC):
    """
    Upload → poll → retrieve state machine over an HTTP API.

    Subclasses provide the three requests and the status vocabulary.
    """

    name = "polling-service"

    def __init__(
        self,
        base_url: str,
        poll_attempts: int = 6,
        poll_wait: Optional[wait_base] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            base_url: API root
            poll_attempts: Status checks before giving up
            poll_wait: Wait strategy between status checks
            timeout: HTTP timeout in seconds
            http_client: Client to use instead of creating one per document
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.poll_attempts = poll_attempts
        self.poll_wait = poll_wait or wait_exponential(multiplier=1, max=32)
        self.timeout = timeout
        self._http_client = http_client

    def url(self, path: str) -> str:
        return self.base_url + path.lstrip("/")

    def client_options(self) -> Dict[str, Any]:
        """Keyword arguments for a newly created ``httpx.AsyncClient``."""
        return {}

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout, **self.client_options()) as client:
            yield client

    @staticmethod
    def content_type(request: ExtractionRequest) -> str:
        guessed, _ = mimetypes.guess_type(request.filename)
        return guessed or "application/octet-stream"

    @abstractmethod
    async def upload(self, client: httpx.AsyncClient, request: ExtractionRequest) -> str:
        """Upload the document and return the provider's document id."""

    @abstractmethod
    async def fetch_status(self, client: httpx.AsyncClient, document_id: str) -> str:
        """Return the provider's raw status string."""

    @abstractmethod
    async def fetch_result(self, client: httpx.AsyncClient, document_id: str) -> str:
        """Return the processed payload text."""

    @abstractmethod
    def map_status(self, raw_status: str) -> ProcessingStatus:
        """Translate a raw status string."""

    @log_performance
    async def fetch_payload(self, request: ExtractionRequest) -> str:
        """
        Run the full upload/poll/retrieve cycle for one document.

        Raises:
            UploadFailure: If the upload is rejected (never retried)
            PollingExhausted: If processing does not finish in time
            ExtractionFailure: If the result request fails
        """
        with LogContext(provider=self.name, document=request.filename):
            async with self.client() as client:
                try:
                    document_id = await self.upload(client, request)
                except (httpx.HTTPError, OSError, ValueError) as e:
                    logger.error(f"Upload of {request.filename} to {self.name} failed: {e}")
                    raise UploadFailure(self.name, str(e)) from e
                if not document_id:
                    raise UploadFailure(self.name, "no document id in response")

                logger.info(f"Uploaded {request.filename} to {self.name}, document id {document_id}")

                async def _status() -> ProcessingStatus:
                    return self.map_status(await self.fetch_status(client, document_id))

                await poll_until_done(
                    _status,
                    provider=self.name,
                    attempts=self.poll_attempts,
                    wait=self.poll_wait,
                    retry_on=(httpx.HTTPError, ValueError),
                )

                try:
                    payload = await self.fetch_result(client, document_id)
                except httpx.HTTPError as e:
                    raise ExtractionFailure(
                        f"Fetching result from {self.name} failed: {e}",
                        {"provider": self.name, "document_id": document_id},
                    ) from e

                logger.info(f"Received result from {self.name} for document {document_id}")
                return payload


class PollingDocumentProvider(PollingDocumentService, ExtractionProvider):
    """Polling service whose result is the invoice field tree."""

    async def extract(self, request: ExtractionRequest) -> RawFieldTree:
        return parse_field_tree(await self.fetch_payload(request))
