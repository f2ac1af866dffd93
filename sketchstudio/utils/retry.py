"""Transport-level retry with exponential backoff."""

import time

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from sketchstudio.errors import Cancelled

# 408 timeout, 409 conflict, 429 rate limit, 529 Anthropic overloaded; all 5xx also retry.
RETRYABLE_STATUS = {408, 409, 429, 529}
MAX_BACKOFF_SECONDS = 60


def _status_code(exc: BaseException) -> int | None:
    code = getattr(exc, "status_code", None)
    if isinstance(code, int):
        return code
    response = getattr(exc, "response", None)
    code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def _is_transient(exc: BaseException) -> bool:
    """Return True if the failure is worth retrying.

    Cancellation and HTTP errors outside the retryable set (auth, bad
    request, not found) are fatal. Timeouts, connection errors and any other
    failure are retried.
    """
    if isinstance(exc, Cancelled):
        return False
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return True
    code = _status_code(exc)
    if code is not None:
        return code in RETRYABLE_STATUS or code >= 500
    return True


def invoke_with_retry(call, *, max_retries: int = 2, backoff_seconds: float = 1.0, cancel=None, log=None):
    """Call `call()` with exponential backoff on transient errors.

    Waits backoff_seconds, 2x, 4x, ... between attempts. The wait is cut
    short with Cancelled when `cancel` fires. The last error is re-raised
    once retries are exhausted.
    """

    def _before_sleep(state):
        if log is not None:
            log.warn(
                f"Transient error: {state.outcome.exception()!r}. "
                f"Retrying in {state.next_action.sleep:.0f}s "
                f"(attempt {state.attempt_number}/{max_retries})..."
            )

    @retry(
        stop=stop_after_attempt(max_retries + 1),  # +1 because first attempt counts
        wait=wait_exponential(multiplier=backoff_seconds, min=0, max=MAX_BACKOFF_SECONDS),
        retry=retry_if_exception(_is_transient),
        reraise=True,
        sleep=cancel.sleep if cancel is not None else time.sleep,
        before_sleep=_before_sleep,
    )
    def _invoke():
        if cancel is not None:
            cancel.raise_if_cancelled()
        return call()

    return _invoke()
