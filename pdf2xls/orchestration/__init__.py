"""Retry/fallback orchestration of extraction providers."""

from pdf2xls.orchestration.orchestrator import InvoiceOrchestrator
from pdf2xls.orchestration.policy import with_fallback, with_retry

__all__ = ["InvoiceOrchestrator", "with_fallback", "with_retry"]
