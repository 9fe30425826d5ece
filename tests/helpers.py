from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import sys
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tradeoffer_bot.config import load_config  # noqa: E402
from tradeoffer_bot.errors import ErrorKind, TradeApiError  # noqa: E402
from tradeoffer_bot.interfaces import (  # noqa: E402
    ConfirmationApprover,
    DecisionHandler,
    InventoryService,
    SessionRecoverer,
    TradeClient,
)
from tradeoffer_bot.models import STATUS_ACCEPTED, STATUS_SENT, OfferItem, OfferState, TradeOffer  # noqa: E402


def make_config(**kwargs):
    cfg = load_config()
    defaults = {
        "account_id": "76561190000000001",
        "identity_secret": "identity-secret",
        "max_attempts": 5,
        "retry_backoff_seconds": 5.0,
        "poll_retention_seconds": 3600.0,
        "database_path": ":memory:",
        "persist_poll_state": False,
    }
    defaults.update(kwargs)
    return replace(cfg, **defaults)


def build_offer(
    offer_id: str,
    give: list[str] | None = None,
    receive: list[str] | None = None,
    state: OfferState = OfferState.ACTIVE,
    **kwargs: Any,
) -> TradeOffer:
    return TradeOffer(
        offer_id=offer_id,
        state=state,
        items_to_give=[OfferItem(assetid=x) for x in (give or [])],
        items_to_receive=[OfferItem(assetid=x) for x in (receive if receive is not None else ["r-" + offer_id])],
        **kwargs,
    )


def transient(message: str = "ETIMEDOUT") -> TradeApiError:
    return TradeApiError(message, ErrorKind.TRANSIENT)


def session_expired() -> TradeApiError:
    return TradeApiError("Not Logged In", ErrorKind.SESSION_EXPIRED)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ScriptedClient(TradeClient):
    """Each call pops the next scripted response; exceptions are raised.

    Once a script is exhausted the default response is returned.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, list[Any]] = {"send": [], "accept": [], "decline": [], "fetch": []}
        self.calls: list[tuple[str, str]] = []
        self.offers: dict[str, TradeOffer] = {}
        self.on_call = None

    def script(self, operation: str, *responses: Any) -> None:
        self.scripts[operation].extend(responses)

    def _next(self, operation: str, offer_id: str, default: Any) -> Any:
        self.calls.append((operation, offer_id))
        if self.on_call is not None:
            self.on_call(operation, offer_id)
        queue = self.scripts[operation]
        response = queue.pop(0) if queue else default
        if isinstance(response, Exception):
            raise response
        return response

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def send(self, offer: TradeOffer) -> str:
        return self._next("send", offer.offer_id, STATUS_SENT)

    def accept(self, offer: TradeOffer, skip_state_update: bool = True) -> str:
        return self._next("accept", offer.offer_id, STATUS_ACCEPTED)

    def decline(self, offer: TradeOffer) -> None:
        self._next("decline", offer.offer_id, None)

    def fetch_offer(self, offer_id: str) -> TradeOffer:
        default = self.offers.get(offer_id)
        if default is None:
            default = TradeApiError("NoMatch", ErrorKind.NO_MATCH)
        return self._next("fetch", offer_id, default)


class FakeSession(SessionRecoverer):
    def __init__(self, failures: int = 0) -> None:
        self.calls: list[bool] = []
        self.failures = failures

    def ensure_logged_in(self, force: bool = False) -> None:
        self.calls.append(force)
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("login failed")


class FakeApprover(ConfirmationApprover):
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.error = error

    def approve(self, secret: str, object_id: str) -> None:
        self.calls.append((secret, object_id))
        if self.error is not None:
            raise self.error


class FakeInventory(InventoryService):
    def __init__(self) -> None:
        self.refreshes: list[str] = []
        self.removed: list[str] = []
        self.on_refresh = None
        self.remove_error: Exception | None = None

    def refresh(self, account_id: str) -> None:
        self.refreshes.append(account_id)
        if self.on_refresh is not None:
            self.on_refresh()

    def remove_item(self, assetid: str) -> None:
        self.removed.append(assetid)
        if self.remove_error is not None:
            raise self.remove_error


class RecordingHandler(DecisionHandler):
    def __init__(self, actions: dict[str, str] | None = None, default: str = "ignore") -> None:
        self.actions = actions or {}
        self.default = default
        self.decided: list[str] = []
        self.updated: list[tuple[str, OfferState | None]] = []
        self.snapshots: list[object] = []
        self.errors: list[tuple[str, str, Exception]] = []
        self.on_decide = None

    def on_new_offer(self, offer: TradeOffer):
        self.decided.append(offer.offer_id)
        if self.on_decide is not None:
            self.on_decide(offer)
        return self.actions.get(offer.offer_id, self.default)

    def on_offer_updated(self, offer: TradeOffer, old_state: OfferState | None) -> None:
        self.updated.append((offer.offer_id, old_state))

    def on_poll_snapshot(self, snapshot) -> None:
        self.snapshots.append(snapshot)

    def on_fetch_error(self, offer_id: str, err: Exception) -> None:
        self.errors.append(("fetch", offer_id, err))

    def on_accept_error(self, offer_id: str, err: Exception) -> None:
        self.errors.append(("accept", offer_id, err))

    def on_decline_error(self, offer_id: str, err: Exception) -> None:
        self.errors.append(("decline", offer_id, err))

    def on_confirmation_error(self, offer_id: str, err: Exception) -> None:
        self.errors.append(("confirmation", offer_id, err))
