"""
Tests for the retry/fallback policy and the invoice orchestrator.
"""

from unittest.mock import AsyncMock

import pytest

from pdf2xls.extraction.base import ExtractionProvider
from pdf2xls.normalization.record import InvoiceNormalizer
from pdf2xls.orchestration.orchestrator import InvoiceOrchestrator
from pdf2xls.orchestration.policy import with_fallback, with_retry
from pdf2xls.utils.errors import (
    AttemptsExhausted,
    DocumentLinkError,
    FallbackUnavailable,
    OrchestrationExhausted,
    UploadFailure,
)


class ScriptedProvider(ExtractionProvider):
    """Provider answering per input suffix from a script."""

    name = "scripted"

    def __init__(self, script):
        self.script = {suffix: list(outcomes) for suffix, outcomes in script.items()}
        self.calls = []

    async def extract(self, request):
        suffix = request.document.suffix
        self.calls.append(suffix)
        outcomes = self.script[suffix]
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def count(self, suffix):
        return self.calls.count(suffix)


class TestWithRetry:
    """Test the bounded retry combinator."""

    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self):
        """Test no retry on success."""
        operation = AsyncMock(return_value=5)

        assert await with_retry(operation, attempts=3, delay=0)() == 5
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_errors(self):
        """Test errors are retried until success."""
        operation = AsyncMock(side_effect=[ValueError("a"), RuntimeError("b"), 7])

        assert await with_retry(operation, attempts=3, delay=0)() == 7
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted(self):
        """Test exhaustion after exactly the configured attempts."""
        operation = AsyncMock(side_effect=ValueError("always"))

        with pytest.raises(AttemptsExhausted) as exc_info:
            await with_retry(operation, attempts=4, delay=0, name="extract")()

        assert operation.await_count == 4
        assert isinstance(exc_info.value.last_error, ValueError)
        assert exc_info.value.details["attempts"] == 4

    @pytest.mark.asyncio
    async def test_invalid_result_is_retried(self):
        """Test results rejected by the predicate count as failures."""
        operation = AsyncMock(side_effect=[{"IssueDate": ""}, {"IssueDate": "2024-01-01"}])

        result = await with_retry(operation, attempts=3, delay=0, predicate=lambda r: bool(r["IssueDate"]))()

        assert result == {"IssueDate": "2024-01-01"}
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_never_valid(self):
        """Test exhaustion on results that never become valid."""
        operation = AsyncMock(return_value={"IssueDate": ""})

        with pytest.raises(AttemptsExhausted) as exc_info:
            await with_retry(operation, attempts=2, delay=0, predicate=lambda r: bool(r["IssueDate"]))()

        assert exc_info.value.last_error is None
        assert operation.await_count == 2

    def test_attempts_must_be_positive(self):
        """Test zero attempts is rejected."""
        with pytest.raises(ValueError):
            with_retry(AsyncMock(), attempts=0, delay=0)


class TestWithFallback:
    """Test the fallback combinator."""

    @pytest.mark.asyncio
    async def test_primary_success_skips_secondary(self):
        """Test the secondary is not run after a primary success."""
        primary = AsyncMock(return_value="primary")
        secondary = AsyncMock(return_value="secondary")

        assert await with_fallback(primary, secondary)() == "primary"
        secondary.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_secondary_after_primary_failure(self):
        """Test the secondary result is returned after a primary failure."""
        primary = AsyncMock(side_effect=RuntimeError("down"))
        secondary = AsyncMock(return_value="secondary")

        assert await with_fallback(primary, secondary)() == "secondary"

    @pytest.mark.asyncio
    async def test_both_fail(self):
        """Test both causes are reported."""
        primary_error = RuntimeError("primary")
        fallback_error = RuntimeError("fallback")

        with pytest.raises(OrchestrationExhausted) as exc_info:
            await with_fallback(
                AsyncMock(side_effect=primary_error),
                AsyncMock(side_effect=fallback_error),
            )()

        assert exc_info.value.primary_error is primary_error
        assert exc_info.value.fallback_error is fallback_error


class TestInvoiceOrchestrator:
    """Test primary/fallback extraction."""

    @pytest.fixture
    def normalizer(self, resolver):
        return InvoiceNormalizer(resolver)

    @pytest.fixture
    def fallback_text(self, pdf_document):
        path = pdf_document.with_name(f"{pdf_document.name}.txt")
        path.write_text("FAKTURA FV/1/2024", encoding="utf-8")
        return path

    @pytest.mark.asyncio
    async def test_primary_success(self, pdf_document, fallback_text, invoice_tree, normalizer):
        """Test a first-attempt primary success."""
        provider = ScriptedProvider({".pdf": [invoice_tree], ".txt": [invoice_tree]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=6, delay=0)

        record = await orchestrator.run(pdf_document, fallback_text)

        assert record["InvoiceNumber"] == "FV/1/2024"
        assert record["SourceFile"] == "invoice.pdf"
        assert provider.calls == [".pdf"]

    @pytest.mark.asyncio
    async def test_fallback_after_primary_exhausted(self, pdf_document, fallback_text, invoice_tree, normalizer):
        """Test the full primary budget is spent before one fallback attempt."""
        provider = ScriptedProvider({".pdf": [UploadFailure("scripted", "down")], ".txt": [invoice_tree]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=6, delay=0)

        record = await orchestrator.run(pdf_document, fallback_text)

        assert record["IssueDate"] == "2024-01-15"
        assert record["SourceFile"] == "invoice.pdf"
        assert provider.calls == [".pdf"] * 6 + [".txt"]

    @pytest.mark.asyncio
    async def test_incomplete_result_is_retried(self, pdf_document, invoice_tree, normalizer):
        """Test a record without an issue date triggers a retry."""
        provider = ScriptedProvider({".pdf": [{"data": {"invn": "FV/1"}}, invoice_tree]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=6, delay=0)

        record = await orchestrator.run(pdf_document)

        assert record["IssueDate"] == "2024-01-15"
        assert provider.count(".pdf") == 2

    @pytest.mark.asyncio
    async def test_missing_fallback_fails_immediately(self, pdf_document, normalizer):
        """Test an unavailable fallback consumes no attempts."""
        provider = ScriptedProvider({".pdf": [UploadFailure("scripted", "down")], ".txt": [{}]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=3, delay=0)

        with pytest.raises(OrchestrationExhausted) as exc_info:
            await orchestrator.run(pdf_document, pdf_document.with_name("missing.txt"))

        assert isinstance(exc_info.value.fallback_error, FallbackUnavailable)
        assert isinstance(exc_info.value.primary_error, AttemptsExhausted)
        assert provider.calls == [".pdf"] * 3

    @pytest.mark.asyncio
    async def test_no_fallback_input(self, pdf_document, normalizer):
        """Test a run without fallback input."""
        provider = ScriptedProvider({".pdf": [UploadFailure("scripted", "down")]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=2, delay=0)

        with pytest.raises(OrchestrationExhausted) as exc_info:
            await orchestrator.run(pdf_document, None)

        assert isinstance(exc_info.value.fallback_error, FallbackUnavailable)

    @pytest.mark.asyncio
    async def test_both_paths_exhausted(self, pdf_document, fallback_text, normalizer):
        """Test failure when both inputs keep failing."""
        provider = ScriptedProvider(
            {".pdf": [UploadFailure("scripted", "down")], ".txt": [UploadFailure("scripted", "down")]}
        )
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=2, delay=0)

        with pytest.raises(OrchestrationExhausted):
            await orchestrator.run(pdf_document, fallback_text)

        assert provider.calls == [".pdf", ".pdf", ".txt", ".txt"]

    @pytest.mark.asyncio
    async def test_document_link_added(self, pdf_document, invoice_tree, normalizer):
        """Test the document link is attached to the record."""
        linker = AsyncMock()
        linker.link.return_value = "https://files.example.com/invoice.pdf"
        provider = ScriptedProvider({".pdf": [invoice_tree]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=2, delay=0, linker=linker)

        record = await orchestrator.run(pdf_document)

        assert record["DocumentLink"] == "https://files.example.com/invoice.pdf"
        linker.link.assert_awaited_once_with(pdf_document)

    @pytest.mark.asyncio
    async def test_link_failure_fails_primary_path(self, pdf_document, fallback_text, invoice_tree, normalizer):
        """Test a failing link on the primary path triggers the fallback."""
        linker = AsyncMock()
        linker.link.side_effect = [DocumentLinkError("tool failed"), "https://files.example.com/invoice.pdf"]
        provider = ScriptedProvider({".pdf": [invoice_tree], ".txt": [invoice_tree]})
        orchestrator = InvoiceOrchestrator(provider, normalizer, attempts=3, delay=0, linker=linker)

        record = await orchestrator.run(pdf_document, fallback_text)

        assert record["DocumentLink"] == "https://files.example.com/invoice.pdf"
        assert provider.calls == [".pdf", ".txt"]
        assert linker.link.await_count == 2

    @pytest.mark.asyncio
    async def test_separate_fallback_provider(self, pdf_document, fallback_text, invoice_tree, normalizer):
        """Test a dedicated provider for the fallback path."""
        primary = ScriptedProvider({".pdf": [UploadFailure("scripted", "down")]})
        secondary = ScriptedProvider({".txt": [invoice_tree]})
        orchestrator = InvoiceOrchestrator(
            primary, normalizer, attempts=2, delay=0, fallback_provider=secondary
        )

        record = await orchestrator.run(pdf_document, fallback_text)

        assert record["InvoiceNumber"] == "FV/1/2024"
        assert secondary.calls == [".txt"]
