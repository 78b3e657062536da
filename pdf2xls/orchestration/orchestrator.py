"""
Extraction orchestration.

The orchestrator runs the provider against the primary input under a bounded
retry and, once that is exhausted, against the fallback input under its own
bounded retry. A successful path may also obtain a public document link;
failing to do so fails the path.
"""

from pathlib import Path
from typing import Optional

from pdf2xls.document_link import DocumentLinker
from pdf2xls.extraction.base import ExtractionProvider
from pdf2xls.models import ExtractionRequest, NormalizedInvoiceRecord
from pdf2xls.normalization.record import InvoiceNormalizer, is_complete
from pdf2xls.orchestration.policy import with_fallback, with_retry
from pdf2xls.utils.errors import FallbackUnavailable
from pdf2xls.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)


class InvoiceOrchestrator:
    """
    Primary/fallback extraction of one invoice.

    Features:
    - Bounded retry per path, incomplete records count as failures
    - Fallback strictly after the primary path is exhausted
    - Optional document link attached to the record
    """

    def __init__(
        self,
        provider: ExtractionProvider,
        normalizer: Optional[InvoiceNormalizer] = None,
        attempts: int = 6,
        delay: float = 1.0,
        linker: Optional[DocumentLinker] = None,
        fallback_provider: Optional[ExtractionProvider] = None,
        response_schema: Optional[str] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            provider: Provider used on the primary path
            normalizer: Field tree normalizer
            attempts: Attempts per path, including the first
            delay: Seconds between attempts
            linker: Document link tool, disabled when None
            fallback_provider: Provider for the fallback path (defaults to
                ``provider``)
            response_schema: Schema text passed to assistant providers
        """
        self.provider = provider
        self.fallback_provider = fallback_provider or provider
        self.normalizer = normalizer or InvoiceNormalizer()
        self.attempts = attempts
        self.delay = delay
        self.linker = linker
        self.response_schema = response_schema

    async def extract_once(
        self,
        provider: ExtractionProvider,
        document: Path,
        source: Path,
    ) -> NormalizedInvoiceRecord:
        """Run one extraction attempt and normalize its result."""
        tree = await provider.extract(
            ExtractionRequest(document=document, response_schema=self.response_schema)
        )
        return self.normalizer.normalize(tree).with_fields(SourceFile=source.name)

    def _path(
        self,
        provider: ExtractionProvider,
        document: Path,
        source: Path,
        label: str,
    ):
        attempt = with_retry(
            lambda: self.extract_once(provider, document, source),
            attempts=self.attempts,
            delay=self.delay,
            predicate=is_complete,
            name=f"{label} extraction ({provider.name})",
        )

        async def _run() -> NormalizedInvoiceRecord:
            record = await attempt()
            if self.linker is None:
                return record
            link = await self.linker.link(source)
            return record.with_fields(DocumentLink=link)

        return _run

    @log_performance
    async def run(
        self,
        primary_input: Path,
        fallback_input: Optional[Path] = None,
    ) -> NormalizedInvoiceRecord:
        """
        Extract a normalized record from the primary or fallback input.

        Args:
            primary_input: The source document
            fallback_input: Alternate rendering of the same document

        Returns:
            Normalized record with ``SourceFile`` (and ``DocumentLink``) set

        Raises:
            OrchestrationExhausted: If both paths failed
        """
        primary_input = Path(primary_input)
        primary = self._path(self.provider, primary_input, primary_input, "primary")

        async def fallback() -> NormalizedInvoiceRecord:
            if fallback_input is None or not Path(fallback_input).exists():
                raise FallbackUnavailable(str(fallback_input) if fallback_input else None)
            logger.info(f"Trying fallback input {Path(fallback_input).name}")
            path = self._path(self.fallback_provider, Path(fallback_input), primary_input, "fallback")
            return await path()

        with LogContext(document=primary_input.name):
            record = await with_fallback(primary, fallback)()
            logger.info(f"Extracted invoice {record.get('InvoiceNumber') or '<no number>'}")
            return record
