# /stepengine/utils/retry.py
import logging
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_not_exception_type,
)

from ..core.errors import TimeoutExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# retry_fn(api_call, max_retries, base_delay_ms, description) -> response
RetryApiCallFunction = Callable[[Callable[[], T], int, int, str], T]


def retry_api_call(api_call: Callable[[], T], max_retries: int, base_delay_ms: int, description: str) -> T:
    """
    Calls `api_call` up to `max_retries` times with exponential backoff between attempts
    (base_delay_ms, then doubling, capped at 10s). The last exception is re-raised;
    TimeoutExceededError is never retried.
    """
    def _log_retry(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(f"[Retry] {description} attempt {state.attempt_number}/{max_retries} failed: {exc}. Retrying...")

    base_s = max(base_delay_ms, 0) / 1000.0
    retrying = Retrying(
        reraise=True,
        stop=stop_after_attempt(max(max_retries, 1)),
        wait=wait_exponential(multiplier=base_s, min=base_s, max=10),
        retry=retry_if_not_exception_type(TimeoutExceededError),
        before_sleep=_log_retry,
    )
    return retrying(api_call)
