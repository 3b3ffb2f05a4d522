"""Background work owned by a single view (product page, cart page, ...)."""

import concurrent.futures
import logging
import threading
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


def start_timer(delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(max(0.0, delay_seconds), callback)
    timer.daemon = True
    timer.start()
    return timer


class ViewScope:
    """Reads and timers that must not outlive the view that started them.

    Results of reads that finish after ``close()`` are dropped, so a torn-down
    view never receives stale writes. State-changing calls do not belong here.

    Callbacks run on the worker thread. They are delivered while holding the
    scope lock, so ``close()`` either waits for an in-flight delivery or wins
    and the result is dropped.
    """

    def __init__(self, executor: Optional[concurrent.futures.Executor] = None, timer_factory=start_timer) -> None:
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(max_workers=2)
        self._owns_executor = executor is None
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._closed = False
        self._futures: List[concurrent.futures.Future] = []
        self._timers: List[Any] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(
        self,
        fn: Callable[[], Any],
        on_result: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> concurrent.futures.Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("view scope is closed")
            future = self._executor.submit(fn)
            self._futures.append(future)

        def _deliver(done: concurrent.futures.Future) -> None:
            if done.cancelled():
                return
            error = done.exception()
            with self._lock:
                if self._closed:
                    return
                if error is None:
                    on_result(done.result())
                elif on_error is not None:
                    on_error(error)
                else:
                    logger.warning("Background read failed: %s", error)

        future.add_done_callback(_deliver)
        return future

    def schedule(self, delay_seconds: float, callback: Callable[[], None]):
        """Timer that is cancelled together with the scope."""
        def _fire() -> None:
            with self._lock:
                if not self._closed:
                    callback()

        with self._lock:
            if self._closed:
                raise RuntimeError("view scope is closed")
            timer = self._timer_factory(delay_seconds, _fire)
            self._timers.append(timer)
        return timer

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            futures, self._futures = self._futures, []
            timers, self._timers = self._timers, []
        for future in futures:
            future.cancel()
        for timer in timers:
            timer.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
