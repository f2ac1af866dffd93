"""Cooperative cancellation for blocking gateway and compiler calls."""

import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from sketchstudio.errors import Cancelled

POLL_SECONDS = 0.1


class CancelToken:
    """A one-shot cancellation signal shared by every stage of a run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled("operation cancelled")

    def sleep(self, seconds: float) -> None:
        """Sleep for `seconds`, waking early with Cancelled if the token fires."""
        if self._event.wait(max(seconds, 0)):
            raise Cancelled("cancelled during backoff")

    def run(self, fn, *args, **kwargs):
        """Run a blocking callable in a worker thread, abandoning it on cancel.

        The worker cannot be interrupted, so on cancellation its eventual
        result is discarded and Cancelled is raised immediately.
        """
        self.raise_if_cancelled()
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(fn, *args, **kwargs)
        try:
            while True:
                done, _ = wait([future], timeout=POLL_SECONDS, return_when=FIRST_COMPLETED)
                if done:
                    return future.result()
                if self._event.is_set():
                    future.cancel()
                    raise Cancelled("cancelled while waiting for a response")
        finally:
            executor.shutdown(wait=False)


def checkpoint(cancel: CancelToken | None) -> None:
    """Raise Cancelled if `cancel` has fired; no-op for None."""
    if cancel is not None:
        cancel.raise_if_cancelled()
