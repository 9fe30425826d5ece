from __future__ import annotations

from tradeoffer_bot.models import OfferAction, OfferState, PollSnapshot, TradeOffer


class TradeClient:
    """Remote trading platform. Failures are raised as ``TradeApiError``."""

    def send(self, offer: TradeOffer) -> str:
        raise NotImplementedError

    def accept(self, offer: TradeOffer, skip_state_update: bool = True) -> str:
        raise NotImplementedError

    def decline(self, offer: TradeOffer) -> None:
        raise NotImplementedError

    def fetch_offer(self, offer_id: str) -> TradeOffer:
        raise NotImplementedError


class SessionRecoverer:
    def ensure_logged_in(self, force: bool = False) -> None:
        """Block until a fresh session is confirmed; raise if recovery fails."""
        raise NotImplementedError


class ConfirmationApprover:
    def approve(self, secret: str, object_id: str) -> None:
        raise NotImplementedError


class InventoryService:
    def refresh(self, account_id: str) -> None:
        raise NotImplementedError

    def remove_item(self, assetid: str) -> None:
        raise NotImplementedError


class DecisionHandler:
    """Business logic hooks. Every hook except ``on_new_offer`` defaults to a no-op."""

    def on_new_offer(self, offer: TradeOffer) -> OfferAction | str:
        return OfferAction.IGNORE

    def on_offer_updated(self, offer: TradeOffer, old_state: OfferState | None) -> None:
        return

    def on_poll_snapshot(self, snapshot: PollSnapshot) -> None:
        return

    def on_fetch_error(self, offer_id: str, err: Exception) -> None:
        return

    def on_accept_error(self, offer_id: str, err: Exception) -> None:
        return

    def on_decline_error(self, offer_id: str, err: Exception) -> None:
        return

    def on_confirmation_error(self, offer_id: str, err: Exception) -> None:
        return
