"""
Retry and fallback combinators.

``with_retry`` bounds a single operation by a fixed attempt count and delay;
``with_fallback`` runs a secondary operation once the primary has given up.
Both return plain async callables so they compose.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from pdf2xls.utils.errors import AttemptsExhausted, OrchestrationExhausted
from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


def with_retry(
    operation: Operation,
    attempts: int,
    delay: float,
    predicate: Optional[Callable[[T], bool]] = None,
    name: str = "operation",
) -> Operation:
    """
    Wrap ``operation`` in a bounded retry.

    Any exception, or a result for which ``predicate`` returns False, counts
    as a failed attempt. ``attempts`` includes the first call.

    Args:
        operation: Zero-argument coroutine function
        attempts: Total number of calls
        delay: Seconds to wait between calls
        predicate: Accepts a result as valid
        name: Operation name used in logs and errors

    Returns:
        Coroutine function raising ``AttemptsExhausted`` when every call failed
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    retry_condition = retry_if_exception_type(Exception)
    if predicate is not None:
        retry_condition = retry_condition | retry_if_result(lambda result: not predicate(result))

    def _before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        reason = f"error: {outcome.exception()}" if outcome.failed else "result is incomplete"
        logger.warning(
            f"{name} attempt {retry_state.attempt_number}/{attempts} failed ({reason}), "
            f"retrying in {delay:g}s"
        )

    async def _run() -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(delay),
            retry=retry_condition,
            before_sleep=_before_sleep,
        )
        try:
            return await retrying(operation)
        except RetryError as e:
            last = e.last_attempt
            last_error = last.exception() if last.failed else None
            logger.error(f"{name} failed after {attempts} attempts")
            raise AttemptsExhausted(name, attempts, last_error) from last_error

    return _run


def with_fallback(primary: Operation, secondary: Operation) -> Operation:
    """
    Run ``secondary`` only after ``primary`` has failed.

    Returns:
        Coroutine function raising ``OrchestrationExhausted`` with both causes
        when neither operation succeeds
    """

    async def _run() -> T:
        try:
            return await primary()
        except Exception as primary_error:
            logger.warning(f"Primary path failed, switching to fallback: {primary_error}")
            try:
                return await secondary()
            except Exception as fallback_error:
                raise OrchestrationExhausted(primary_error, fallback_error) from fallback_error

    return _run
