from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import time
from typing import Any, Callable

from tradeoffer_bot.config import BotConfig
from tradeoffer_bot.errors import ErrorKind, classify_error
from tradeoffer_bot.interfaces import InventoryService, SessionRecoverer, TradeClient
from tradeoffer_bot.models import OfferState, TradeOffer

LOGGER = logging.getLogger("tradeoffer_bot")

OP_SEND = "send"
OP_ACCEPT = "accept"
OP_DECLINE = "decline"
OP_FETCH = "fetch"


class AttemptState(str, Enum):
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    RECOVERING_SESSION = "recovering_session"
    DONE = "done"


@dataclass
class OperationOutcome:
    operation: str
    offer_id: str
    attempts: int = 0
    state: AttemptState = AttemptState.ATTEMPTING
    result: Any = None
    error: Exception | None = None
    error_kind: ErrorKind | None = None
    delays: list[float] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == AttemptState.DONE and self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.result


class ResilientExecutor:
    """Runs remote offer operations with classification-driven retries.

    Permanent failures surface at once. Item-mismatch failures refresh the
    inventory and then surface. Session expiry blocks on the session
    recoverer and retries immediately when recovery succeeds. Anything else
    backs off ``retry_backoff_seconds * tries`` and retries until
    ``max_attempts`` calls have been made.
    """

    def __init__(
        self,
        client: TradeClient,
        session: SessionRecoverer,
        inventory: InventoryService,
        config: BotConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.session = session
        self.inventory = inventory
        self.config = config
        self._sleep = sleep

    def send(self, offer: TradeOffer) -> str:
        outcome = self.run(OP_SEND, offer.offer_id, lambda: self.client.send(offer), offer=offer)
        return str(outcome.unwrap())

    def accept(self, offer: TradeOffer) -> str:
        # skip_state_update: the platform reports escrow holds without a refetch.
        outcome = self.run(
            OP_ACCEPT,
            offer.offer_id,
            lambda: self.client.accept(offer, skip_state_update=True),
            offer=offer,
        )
        return str(outcome.unwrap())

    def decline(self, offer: TradeOffer) -> None:
        # Declines are attempted once.
        outcome = self.run(
            OP_DECLINE,
            offer.offer_id,
            lambda: self.client.decline(offer),
            offer=offer,
            max_attempts=1,
        )
        outcome.unwrap()

    def fetch(self, offer_id: str) -> TradeOffer | None:
        outcome = self.run(OP_FETCH, offer_id, lambda: self.client.fetch_offer(offer_id))
        offer = outcome.unwrap()
        if offer is None:
            return None
        if offer.state != OfferState.ACTIVE:
            LOGGER.info("offer_fetch_inactive offer=%s state=%s", offer_id, offer.state.name)
            return None
        return offer

    def run(
        self,
        operation: str,
        offer_id: str,
        call: Callable[[], Any],
        *,
        offer: TradeOffer | None = None,
        max_attempts: int | None = None,
    ) -> OperationOutcome:
        outcome = OperationOutcome(operation=operation, offer_id=offer_id)
        if max_attempts is None:
            max_attempts = self.config.max_attempts
        max_attempts = max(1, int(max_attempts))
        while outcome.state != AttemptState.DONE:
            outcome.state = AttemptState.ATTEMPTING
            outcome.attempts += 1
            try:
                result = call()
            except Exception as exc:
                if offer is not None:
                    offer.set_data("handledByUs", True)
                self._on_failure(outcome, exc, max_attempts)
            else:
                if offer is not None:
                    offer.set_data("handledByUs", True)
                outcome.result = result
                outcome.state = AttemptState.DONE
        return outcome

    def _on_failure(self, outcome: OperationOutcome, exc: Exception, max_attempts: int) -> None:
        kind = classify_error(exc)
        outcome.error_kind = kind
        tries = outcome.attempts

        if kind == ErrorKind.NO_MATCH and outcome.operation == OP_FETCH:
            LOGGER.info("offer_fetch_missing offer=%s", outcome.offer_id)
            self._finish(outcome, result=None)
            return
        if kind in {ErrorKind.PERMANENT, ErrorKind.NO_MATCH}:
            LOGGER.warning(
                "offer_%s_failed offer=%s kind=%s error=%s",
                outcome.operation,
                outcome.offer_id,
                kind.value,
                exc,
            )
            self._finish(outcome, error=exc)
            return
        if kind == ErrorKind.ITEM_MISMATCH:
            LOGGER.warning(
                "offer_%s_item_mismatch offer=%s error=%s refreshing_inventory",
                outcome.operation,
                outcome.offer_id,
                exc,
            )
            self._refresh_inventory()
            self._finish(outcome, error=exc)
            return
        if tries >= max_attempts:
            LOGGER.error(
                "offer_%s_exhausted offer=%s attempts=%s kind=%s error=%s",
                outcome.operation,
                outcome.offer_id,
                tries,
                kind.value,
                exc,
            )
            self._finish(outcome, error=exc)
            return

        delay = self.config.backoff_seconds(tries)
        if kind == ErrorKind.SESSION_EXPIRED:
            outcome.state = AttemptState.RECOVERING_SESSION
            LOGGER.warning(
                "offer_%s_session_expired offer=%s attempt=%s recovering",
                outcome.operation,
                outcome.offer_id,
                tries,
            )
            try:
                self.session.ensure_logged_in(force=True)
            except Exception as recovery_exc:
                LOGGER.warning(
                    "session_recovery_failed offer=%s error=%s", outcome.offer_id, recovery_exc
                )
            else:
                delay = 0.0

        if delay > 0:
            outcome.state = AttemptState.BACKING_OFF
            outcome.delays.append(delay)
            LOGGER.warning(
                "offer_%s_retry offer=%s attempt=%s/%s delay=%.1fs kind=%s error=%s",
                outcome.operation,
                outcome.offer_id,
                tries,
                max_attempts,
                delay,
                kind.value,
                exc,
            )
            self._sleep(delay)

    @staticmethod
    def _finish(outcome: OperationOutcome, result: Any = None, error: Exception | None = None) -> None:
        outcome.result = result
        outcome.error = error
        outcome.state = AttemptState.DONE

    def _refresh_inventory(self) -> None:
        try:
            self.inventory.refresh(self.config.account_id)
        except Exception as exc:
            LOGGER.warning("inventory_refresh_failed account=%s error=%s", self.config.account_id, exc)
