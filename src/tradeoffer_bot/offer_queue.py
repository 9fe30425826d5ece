from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from tradeoffer_bot.models import TradeOffer

LOGGER = logging.getLogger("tradeoffer_bot")

Runner = Callable[[Callable[[], None]], None]


def thread_runner(work: Callable[[], None]) -> None:
    threading.Thread(target=work, name="offer-queue", daemon=True).start()


def inline_runner(work: Callable[[], None]) -> None:
    work()


class OfferQueue:
    """FIFO of offer ids processed strictly one at a time.

    An id stays at the head of the queue while it is in flight, so a second
    submit of the same offer is ignored until ``finish`` removes it.
    """

    def __init__(
        self,
        fetch: Callable[[str], TradeOffer | None],
        process: Callable[[TradeOffer], None],
        on_fetch_error: Callable[[str, Exception], None] | None = None,
        runner: Runner = thread_runner,
    ) -> None:
        self._fetch = fetch
        self._process = process
        self._on_fetch_error = on_fetch_error
        self._runner = runner
        self._queue: list[str] = []
        self._processing = False
        self._current: str | None = None
        self._lock = threading.Lock()

    @property
    def processing(self) -> bool:
        with self._lock:
            return self._processing

    def pending(self) -> list[str]:
        with self._lock:
            return list(self._queue)

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def __contains__(self, offer_id: object) -> bool:
        with self._lock:
            return offer_id in self._queue

    def submit(self, offer: TradeOffer) -> bool:
        with self._lock:
            if offer.offer_id in self._queue:
                return False
            self._queue.append(offer.offer_id)
            start_now = len(self._queue) == 1 and not self._processing
            if start_now:
                self._processing = True
                self._current = offer.offer_id
        LOGGER.info("offer_enqueued offer=%s start_now=%s", offer.offer_id, start_now)
        if start_now:
            # The offer in hand is fresh; no need to fetch it again.
            self._runner(lambda: self._handle(offer))
        else:
            self.process_next()
        return True

    def process_next(self) -> bool:
        with self._lock:
            if self._processing or not self._queue:
                return False
            self._processing = True
            offer_id = self._queue[0]
            self._current = offer_id
        self._runner(lambda: self._fetch_and_handle(offer_id))
        return True

    def finish(self, offer_id: str) -> None:
        with self._lock:
            if offer_id in self._queue:
                self._queue.remove(offer_id)
            in_flight = self._processing and offer_id == self._current
            if in_flight:
                self._processing = False
                self._current = None
            remaining = len(self._queue)
        LOGGER.debug("offer_finished offer=%s in_flight=%s remaining=%s", offer_id, in_flight, remaining)
        if in_flight:
            self.process_next()

    def wait_until_idle(self, timeout_seconds: float = 5.0) -> bool:
        deadline = time.time() + timeout_seconds
        while time.time() < deadline:
            with self._lock:
                if not self._processing and not self._queue:
                    return True
            time.sleep(0.01)
        return False

    def _fetch_and_handle(self, offer_id: str) -> None:
        try:
            offer = self._fetch(offer_id)
        except Exception as exc:
            with self._lock:
                requeued = len(self._queue) > 1
                if requeued:
                    self._queue.append(offer_id)
            LOGGER.warning("offer_fetch_error offer=%s requeued=%s error=%s", offer_id, requeued, exc)
            self._report_fetch_error(offer_id, exc)
            offer = None
        if offer is None:
            self.finish(offer_id)
            return
        self._handle(offer)

    def _handle(self, offer: TradeOffer) -> None:
        try:
            self._process(offer)
        except Exception:
            LOGGER.exception("offer_processing_failed offer=%s", offer.offer_id)
        finally:
            self.finish(offer.offer_id)

    def _report_fetch_error(self, offer_id: str, exc: Exception) -> None:
        if self._on_fetch_error is None:
            return
        try:
            self._on_fetch_error(offer_id, exc)
        except Exception:
            LOGGER.exception("fetch_error_hook_failed offer=%s", offer_id)
