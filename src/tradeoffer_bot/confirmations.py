from __future__ import annotations

import logging
from typing import Callable

from tradeoffer_bot.errors import ConfirmationError
from tradeoffer_bot.interfaces import ConfirmationApprover
from tradeoffer_bot.models import TradeOffer

LOGGER = logging.getLogger("tradeoffer_bot")


class ConfirmationGate:
    """Approves the mobile confirmation an offer is waiting on.

    A failed approval is logged and reported through ``on_error`` as a
    ``ConfirmationError`` chained to the approver's exception, but never
    raised: the send/accept that produced the pending status already succeeded.
    """

    def __init__(
        self,
        approver: ConfirmationApprover,
        identity_secret: str,
        on_error: Callable[[str, Exception], None] | None = None,
    ) -> None:
        self.approver = approver
        self.identity_secret = identity_secret
        self.on_error = on_error

    def confirm(self, offer: TradeOffer) -> bool:
        try:
            self.approver.approve(self.identity_secret, offer.offer_id)
        except Exception as exc:
            LOGGER.error("confirmation_failed offer=%s error=%s", offer.offer_id, exc)
            if self.on_error is not None:
                error = ConfirmationError(f"confirmation failed for offer {offer.offer_id}: {exc}")
                error.__cause__ = exc
                try:
                    self.on_error(offer.offer_id, error)
                except Exception:
                    LOGGER.exception("confirmation_error_hook_failed offer=%s", offer.offer_id)
            return False
        finally:
            offer.set_data("actedOnConfirmation", True)
        LOGGER.info("confirmation_accepted offer=%s", offer.offer_id)
        return True
