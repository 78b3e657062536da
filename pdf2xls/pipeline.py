"""
Per-document processing workflow.

This module ties the pieces together for one invoice: input validation,
preparation of the fallback text rendering, orchestrated extraction, the
spreadsheet write and finally removal or archiving of the source document.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pdf2xls.config import Settings, get_settings
from pdf2xls.document_link import DocumentLinker
from pdf2xls.extraction import TextRenderer, create_provider, create_text_renderer
from pdf2xls.models import ColumnMapping, WriteResult
from pdf2xls.normalization.record import InvoiceNormalizer
from pdf2xls.orchestration.orchestrator import InvoiceOrchestrator
from pdf2xls.sheets.auth import ServiceAccountAuth
from pdf2xls.sheets.client import GoogleSheetsClient
from pdf2xls.sheets.writer import SheetWriter
from pdf2xls.utils.errors import DocumentDisposalError, InvalidDocumentError, Pdf2XlsException
from pdf2xls.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)


class InvoiceProcessor:
    """
    Process one invoice document end to end.

    Features:
    - Fallback text rendering prepared before extraction
    - Source document deleted or archived only after a successful write
    - Document left untouched when any step fails
    """

    def __init__(
        self,
        orchestrator: InvoiceOrchestrator,
        writer: SheetWriter,
        mapping: ColumnMapping,
        renderer: Optional[TextRenderer] = None,
        delete_after_processing: bool = False,
    ) -> None:
        self.orchestrator = orchestrator
        self.writer = writer
        self.mapping = mapping
        self.renderer = renderer
        self.delete_after_processing = delete_after_processing

    @staticmethod
    def validate_document(path: Path) -> Path:
        """
        Check that ``path`` is an existing PDF file.

        Raises:
            InvalidDocumentError: If it is missing or not a PDF
        """
        path = Path(path)
        if not path.is_file():
            raise InvalidDocumentError(str(path), "file does not exist")
        if path.suffix.lower() != ".pdf":
            raise InvalidDocumentError(str(path), "not a PDF file")
        return path

    async def prepare_fallback(self, document: Path) -> Optional[Path]:
        """Return the text rendering used as fallback input, if one can be had."""
        cached = TextRenderer.cache_path(document)
        if self.renderer is None:
            return cached if cached.exists() else None

        try:
            return await self.renderer.render(document)
        except (Pdf2XlsException, OSError) as e:
            logger.warning(f"Text rendering of {document.name} failed, no fallback available: {e}")
            return None

    @staticmethod
    def archive_path(document: Path, now: Optional[datetime] = None) -> Path:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d %H%M")
        return document.with_name(f"{stamp}_{document.name}.bak")

    def dispose(self, document: Path) -> Optional[Path]:
        """Delete or archive the processed document; returns the archive path."""
        rendering = TextRenderer.cache_path(document)
        if rendering.exists():
            rendering.unlink()

        if self.delete_after_processing:
            document.unlink()
            logger.info(f"Deleted {document.name}")
            return None

        target = self.archive_path(document)
        document.rename(target)
        logger.info(f"Archived {document.name} as {target.name}")
        return target

    @log_performance
    async def process(self, document: Path) -> WriteResult:
        """
        Extract one invoice and append it to the sheet.

        Raises:
            InvalidDocumentError: If the input is not an existing PDF
            OrchestrationExhausted: If extraction failed on both paths
            SinkFailure: If the sheet could not be written
            DocumentDisposalError: If the row was written but the document
                could not be deleted or archived
        """
        document = self.validate_document(document)

        with LogContext(document=document.name):
            logger.info(f"Processing {document}")
            fallback = await self.prepare_fallback(document)

            record = await self.orchestrator.run(document, fallback)
            result = await self.writer.append(record, self.mapping)

            try:
                self.dispose(document)
            except OSError as e:
                logger.error(f"Could not remove {document.name} after writing row {result.row}: {e}")
                raise DocumentDisposalError(str(document), str(e), result.row) from e
            return result


def create_processor(settings: Optional[Settings] = None) -> InvoiceProcessor:
    """Build a processor from settings."""
    settings = settings or get_settings()

    linker = None
    if settings.document_link_enabled:
        linker = DocumentLinker(settings.document_link_command, timeout=settings.document_link_timeout)

    orchestrator = InvoiceOrchestrator(
        provider=create_provider(settings),
        normalizer=InvoiceNormalizer(),
        attempts=settings.extraction_attempts,
        delay=settings.extraction_retry_delay,
        linker=linker,
    )

    client = GoogleSheetsClient(
        spreadsheet_id=settings.spreadsheet_id,
        auth_manager=ServiceAccountAuth(settings.service_account_file),
    )

    return InvoiceProcessor(
        orchestrator=orchestrator,
        writer=SheetWriter(client, settings.sheet_name),
        mapping=ColumnMapping.from_dict(settings.column_mappings),
        renderer=create_text_renderer(settings),
        delete_after_processing=settings.delete_after_processing,
    )
