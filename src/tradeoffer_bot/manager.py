from __future__ import annotations

import logging
import time
from typing import Any, Callable

from tradeoffer_bot.config import BotConfig
from tradeoffer_bot.confirmations import ConfirmationGate
from tradeoffer_bot.errors import ErrorKind, classify_error
from tradeoffer_bot.interfaces import (
    ConfirmationApprover,
    DecisionHandler,
    InventoryService,
    SessionRecoverer,
    TradeClient,
)
from tradeoffer_bot.models import (
    STATUS_PENDING,
    OfferAction,
    OfferState,
    PollSnapshot,
    TradeOffer,
)
from tradeoffer_bot.offer_queue import OfferQueue, Runner, thread_runner
from tradeoffer_bot.poll_state import PollStateManager
from tradeoffer_bot.reservations import ItemReservations
from tradeoffer_bot.retry import ResilientExecutor
from tradeoffer_bot.storage import Storage

LOGGER = logging.getLogger("tradeoffer_bot")


class TradeOfferManager:
    def __init__(
        self,
        config: BotConfig,
        client: TradeClient,
        handler: DecisionHandler,
        session: SessionRecoverer,
        approver: ConfirmationApprover,
        inventory: InventoryService,
        *,
        storage: Storage | None = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], float] = time.time,
        runner: Runner = thread_runner,
    ) -> None:
        self.config = config
        self.client = client
        self.handler = handler
        self.inventory = inventory
        self.storage = storage
        self.reservations = ItemReservations()
        self.executor = ResilientExecutor(client, session, inventory, config, sleep=sleep)
        self.confirmations = ConfirmationGate(
            approver,
            config.identity_secret,
            on_error=handler.on_confirmation_error,
        )
        self.poll_state = PollStateManager(
            self.reservations,
            retention_seconds=config.poll_retention_seconds,
            now=now,
        )
        self.queue = OfferQueue(
            fetch=self.executor.fetch,
            process=self._process_offer,
            on_fetch_error=handler.on_fetch_error,
            runner=runner,
        )
        self.poll_snapshot: PollSnapshot | None = None

    def reserved_items(self) -> frozenset[str]:
        return self.reservations.reserved_items()

    def submit(self, offer: TradeOffer) -> bool:
        """Reserve a new incoming offer's outgoing items and queue it for a decision."""
        if offer.is_glitched():
            LOGGER.info("offer_glitched_skipped offer=%s", offer.offer_id)
            return False
        self.reservations.reserve_many(offer.outgoing_assetids(), owner=offer.offer_id)
        return self.queue.submit(offer)

    def on_offer_changed(self, offer: TradeOffer, old_state: OfferState | None) -> None:
        assetids = offer.outgoing_assetids()
        LOGGER.info(
            "offer_changed offer=%s old_state=%s new_state=%s",
            offer.offer_id,
            getattr(old_state, "name", old_state),
            offer.state.name,
        )
        if offer.state in {OfferState.ACTIVE, OfferState.CREATED_NEEDS_CONFIRMATION}:
            self.reservations.reserve_many(assetids, owner=offer.offer_id)
            if offer.data("assetids") is None:
                offer.set_data("assetids", assetids)
        elif offer.state not in {OfferState.IN_ESCROW, OfferState.ACCEPTED}:
            self.reservations.release_many(assetids, owner=offer.offer_id)

        if offer.state != OfferState.ACCEPTED:
            self._notify(self.handler.on_offer_updated, offer, old_state)
            return

        for assetid in assetids:
            try:
                self.inventory.remove_item(assetid)
            except Exception as exc:
                LOGGER.warning(
                    "inventory_remove_failed offer=%s assetid=%s error=%s", offer.offer_id, assetid, exc
                )
        try:
            self.inventory.refresh(self.config.account_id)
        except Exception as exc:
            LOGGER.warning("inventory_refresh_failed offer=%s error=%s", offer.offer_id, exc)
        self.reservations.release_many(assetids, owner=offer.offer_id)
        self._notify(self.handler.on_offer_updated, offer, old_state)

    def send_offer(self, offer: TradeOffer) -> str:
        assetids = offer.outgoing_assetids()
        # The platform assigns the offer id on send.
        owner = offer.offer_id or f"unsent:{id(offer)}"
        self.reservations.reserve_many(assetids, owner=owner)
        offer.set_data("assetids", assetids)
        try:
            status = self.executor.send(offer)
        except Exception:
            self.reservations.release_many(assetids, owner=owner)
            raise
        if offer.offer_id and offer.offer_id != owner:
            self.reservations.transfer(assetids, owner, offer.offer_id)
        LOGGER.info("offer_sent offer=%s status=%s", offer.offer_id, status)
        if status == STATUS_PENDING:
            self.confirmations.confirm(offer)
        return status

    def accept_offer(self, offer: TradeOffer) -> str:
        try:
            status = self.executor.accept(offer)
        except Exception as exc:
            if classify_error(exc) == ErrorKind.PERMANENT:
                self.reservations.release_many(offer.outgoing_assetids(), owner=offer.offer_id)
            raise
        LOGGER.info("offer_accepted offer=%s status=%s", offer.offer_id, status)
        if status == STATUS_PENDING:
            self.confirmations.confirm(offer)
        return status

    def decline_offer(self, offer: TradeOffer) -> None:
        self.executor.decline(offer)
        LOGGER.info("offer_declined offer=%s", offer.offer_id)

    def on_poll(self, snapshot: PollSnapshot, now_ts: float | None = None) -> PollSnapshot:
        pruned = self.poll_state.prune(snapshot, now_ts=now_ts)
        self.poll_state.adopt(pruned)
        self.poll_snapshot = pruned
        self._notify(self.handler.on_poll_snapshot, pruned)
        if self.storage is not None and self.config.persist_poll_state:
            try:
                self.storage.save_poll_snapshot(pruned)
            except Exception as exc:
                LOGGER.warning("poll_data_persist_failed offers=%s error=%s", len(pruned.timestamps), exc)
        return pruned

    def adopt(self, snapshot: PollSnapshot) -> int:
        added = self.poll_state.adopt(snapshot)
        self.poll_snapshot = snapshot
        return added

    def restore(self) -> int:
        if self.storage is None:
            return 0
        snapshot = self.storage.load_poll_snapshot()
        if snapshot is None:
            LOGGER.info("poll_data_restore_empty")
            return 0
        return self.adopt(snapshot)

    def close(self) -> None:
        if self.storage is not None:
            self.storage.close()

    def _process_offer(self, offer: TradeOffer) -> None:
        action = OfferAction.parse(self.handler.on_new_offer(offer))
        LOGGER.info("offer_decision offer=%s action=%s", offer.offer_id, action.value)
        if action == OfferAction.ACCEPT:
            try:
                self.accept_offer(offer)
            except Exception as exc:
                self._notify(self.handler.on_accept_error, offer.offer_id, exc)
        elif action == OfferAction.DECLINE:
            try:
                self.decline_offer(offer)
            except Exception as exc:
                self._notify(self.handler.on_decline_error, offer.offer_id, exc)

    @staticmethod
    def _notify(hook: Callable[..., Any], *args: Any) -> None:
        try:
            hook(*args)
        except Exception:
            LOGGER.exception("handler_hook_failed hook=%s", getattr(hook, "__name__", hook))
