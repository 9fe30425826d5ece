from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
import logging
from typing import Any

LOGGER = logging.getLogger("tradeoffer_bot")

STATUS_SENT = "sent"
STATUS_ACCEPTED = "accepted"
STATUS_PENDING = "pending"


class OfferState(IntEnum):
    INVALID = 1
    ACTIVE = 2
    ACCEPTED = 3
    COUNTERED = 4
    EXPIRED = 5
    CANCELED = 6
    DECLINED = 7
    INVALID_ITEMS = 8
    CREATED_NEEDS_CONFIRMATION = 9
    CANCELED_BY_SECOND_FACTOR = 10
    IN_ESCROW = 11

    @staticmethod
    def parse(raw: Any) -> "OfferState | None":
        if raw is None:
            return None
        if isinstance(raw, OfferState):
            return raw
        try:
            return OfferState(int(raw))
        except (TypeError, ValueError):
            return None


# States in which an offer's outgoing items stay committed.
RESERVING_STATES = frozenset(
    {
        OfferState.ACTIVE,
        OfferState.CREATED_NEEDS_CONFIRMATION,
        OfferState.IN_ESCROW,
    }
)

# States exempt from age-based pruning of poll data.
RETAINED_POLL_STATES = frozenset(
    {
        OfferState.ACCEPTED,
        OfferState.CREATED_NEEDS_CONFIRMATION,
        OfferState.IN_ESCROW,
    }
)


class OfferAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    IGNORE = "ignore"

    @staticmethod
    def parse(raw: Any) -> "OfferAction":
        if isinstance(raw, OfferAction):
            return raw
        value = str(raw or "").strip().lower()
        for action in OfferAction:
            if action.value == value:
                return action
        if value:
            LOGGER.warning("unknown_offer_action action=%r treated_as=ignore", raw)
        return OfferAction.IGNORE


@dataclass(frozen=True)
class OfferItem:
    assetid: str
    appid: int = 440
    contextid: str = "2"


@dataclass
class TradeOffer:
    offer_id: str
    state: OfferState = OfferState.ACTIVE
    items_to_give: list[OfferItem] = field(default_factory=list)
    items_to_receive: list[OfferItem] = field(default_factory=list)
    is_our_offer: bool = False
    glitched: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def data(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def set_data(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def is_glitched(self) -> bool:
        # An offer with nothing on either side cannot be a real trade.
        return self.glitched or (not self.items_to_give and not self.items_to_receive)

    def outgoing_assetids(self) -> list[str]:
        return [item.assetid for item in self.items_to_give]


@dataclass
class PollSnapshot:
    """Authoritative offer-state dump delivered by the platform poller.

    ``sent`` and ``received`` map offer id to state code, ``timestamps`` maps
    offer id to the epoch second of the last observed change, ``offer_data``
    maps offer id to per-offer metadata (``assetids`` among others).
    """

    sent: dict[str, int] = field(default_factory=dict)
    received: dict[str, int] = field(default_factory=dict)
    timestamps: dict[str, float] = field(default_factory=dict)
    offer_data: dict[str, dict[str, Any]] = field(default_factory=dict)

    def state_of(self, offer_id: str) -> OfferState | None:
        if offer_id in self.sent:
            return OfferState.parse(self.sent[offer_id])
        if offer_id in self.received:
            return OfferState.parse(self.received[offer_id])
        return None

    def assetids_of(self, offer_id: str) -> list[str]:
        data = self.offer_data.get(offer_id) or {}
        return [str(x) for x in data.get("assetids") or []]

    def copy(self) -> "PollSnapshot":
        return PollSnapshot(
            sent=dict(self.sent),
            received=dict(self.received),
            timestamps=dict(self.timestamps),
            offer_data={key: dict(value) for key, value in self.offer_data.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent": dict(self.sent),
            "received": dict(self.received),
            "timestamps": dict(self.timestamps),
            "offerData": {key: dict(value) for key, value in self.offer_data.items()},
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "PollSnapshot":
        payload = payload or {}
        offer_data = payload.get("offerData", payload.get("offer_data")) or {}
        return cls(
            sent={str(k): int(v) for k, v in (payload.get("sent") or {}).items()},
            received={str(k): int(v) for k, v in (payload.get("received") or {}).items()},
            timestamps={str(k): float(v) for k, v in (payload.get("timestamps") or {}).items()},
            offer_data={str(k): dict(v or {}) for k, v in offer_data.items()},
        )
