from __future__ import annotations

import logging
import time
from typing import Callable

from tradeoffer_bot.models import RESERVING_STATES, RETAINED_POLL_STATES, PollSnapshot
from tradeoffer_bot.reservations import ItemReservations

LOGGER = logging.getLogger("tradeoffer_bot")


class PollStateManager:
    def __init__(
        self,
        reservations: ItemReservations,
        retention_seconds: float = 3600.0,
        now: Callable[[], float] = time.time,
    ) -> None:
        self.reservations = reservations
        self.retention_seconds = float(retention_seconds)
        self._now = now

    def prune(self, snapshot: PollSnapshot, now_ts: float | None = None) -> PollSnapshot:
        """Return a copy without resolved offers older than the retention window.

        Accepted, needs-confirmation and escrow offers are kept regardless of age.
        """
        current = round(self._now() if now_ts is None else now_ts)
        pruned = snapshot.copy()
        removed = 0
        for offer_id, ts in list(snapshot.timestamps.items()):
            if snapshot.state_of(offer_id) in RETAINED_POLL_STATES:
                continue
            if current - float(ts) <= self.retention_seconds:
                continue
            pruned.offer_data.pop(offer_id, None)
            pruned.timestamps.pop(offer_id, None)
            removed += 1
        if removed:
            LOGGER.info("poll_data_pruned removed=%s remaining=%s", removed, len(pruned.timestamps))
        return pruned

    def adopt(self, snapshot: PollSnapshot) -> int:
        """Reserve the outgoing items of every live offer in a stored snapshot."""
        live_ids = [
            offer_id
            for offer_id in list(snapshot.sent) + list(snapshot.received)
            if snapshot.state_of(offer_id) in RESERVING_STATES
        ]
        added = 0
        for offer_id in live_ids:
            added += self.reservations.reserve_many(snapshot.assetids_of(offer_id), owner=offer_id)
        LOGGER.info(
            "poll_data_adopted live_offers=%s newly_reserved=%s reserved_total=%s",
            len(live_ids),
            added,
            len(self.reservations),
        )
        return added
