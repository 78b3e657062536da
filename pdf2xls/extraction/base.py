"""
Abstract base interface for extraction providers.

This module defines the interface every provider implements, so the
orchestrator can switch between providers without knowing their protocol,
and the bounded polling loop the providers share.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Tuple, Type

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from pdf2xls.models import ExtractionRequest, ProcessingStatus, RawFieldTree, StatusTracker
from pdf2xls.utils.errors import PollingExhausted, ProviderReportedFailure
from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)


class ExtractionProvider(ABC):
    """
    Abstract base class for extraction providers.

    Implementations upload the document, wait for the provider to finish and
    return the raw field tree. Every failure is reported as an
    ``ExtractionFailure`` subclass.
    """

    name = "provider"

    @abstractmethod
    async def extract(self, request: ExtractionRequest) -> RawFieldTree:
        """
        Extract invoice fields from a document.

        Args:
            request: Document and provider options

        Returns:
            Raw field tree as returned by the provider

        Raises:
            UploadFailure: If the document could not be uploaded
            PollingExhausted: If processing did not finish within the budget
            ResultUnparsable: If the result is not a field tree
        """
        pass


async def poll_until_done(
    poll: Callable[[], Awaitable[ProcessingStatus]],
    *,
    provider: str,
    attempts: int,
    wait: wait_base,
    retry_on: Tuple[Type[BaseException], ...] = (),
) -> StatusTracker:
    """
    Poll a status until it is terminal, at most ``attempts`` times.

    Transport errors listed in ``retry_on`` count as a "not yet" answer.

    Returns:
        Tracker holding the DONE status and the observed history

    Raises:
        PollingExhausted: If no terminal status was seen in time
        ProviderReportedFailure: If the provider reported FAILED
    """
    tracker = StatusTracker()

    async def _poll_once() -> ProcessingStatus:
        return tracker.advance(await poll())

    def _before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome.failed:
            detail = f"error '{outcome.exception()}'"
        else:
            detail = f"status is '{outcome.result().value}'"
        logger.info(
            f"{provider} attempt {retry_state.attempt_number}: {detail}. "
            f"Waiting {retry_state.next_action.sleep:.0f}s before next check"
        )

    retry_condition = retry_if_result(lambda status: not status.is_terminal)
    if retry_on:
        retry_condition = retry_condition | retry_if_exception_type(retry_on)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait,
        retry=retry_condition,
        before_sleep=_before_sleep,
    )

    try:
        status = await retrying(_poll_once)
    except RetryError as e:
        last = tracker.current.value if tracker.current else None
        raise PollingExhausted(provider, attempts, last) from e

    if status is ProcessingStatus.FAILED:
        raise ProviderReportedFailure(provider, status.value)

    logger.info(f"{provider} finished processing after {len(tracker.history)} status checks")
    return tracker
