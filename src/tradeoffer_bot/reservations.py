from __future__ import annotations

import threading
from typing import Iterable

ANONYMOUS_OWNER = ""


class ItemReservations:
    """Membership index of outgoing asset ids committed to in-flight offers.

    Each item remembers which offers hold it, so releasing one offer's items
    keeps anything another live offer still holds. Reserve and release are
    idempotent per (item, owner) pair.
    """

    def __init__(self) -> None:
        self._owners: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def reserve(self, assetid: str, owner: str = ANONYMOUS_OWNER) -> bool:
        with self._lock:
            return self._reserve_locked(str(assetid), str(owner))

    def release(self, assetid: str, owner: str | None = None) -> bool:
        """Drop ``owner``'s hold on an item, or every hold when owner is None.

        Returns True when the item stopped being reserved.
        """
        with self._lock:
            return self._release_locked(str(assetid), owner)

    def reserve_many(self, assetids: Iterable[str], owner: str = ANONYMOUS_OWNER) -> int:
        with self._lock:
            return sum(1 for assetid in assetids if self._reserve_locked(str(assetid), str(owner)))

    def release_many(self, assetids: Iterable[str], owner: str | None = None) -> int:
        with self._lock:
            return sum(1 for assetid in assetids if self._release_locked(str(assetid), owner))

    def transfer(self, assetids: Iterable[str], old_owner: str, new_owner: str) -> None:
        with self._lock:
            for assetid in assetids:
                key = str(assetid)
                holders = self._owners.get(key)
                if holders is None or old_owner not in holders:
                    continue
                holders.discard(old_owner)
                holders.add(new_owner)

    def reserved_items(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._owners)

    def owners_of(self, assetid: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._owners.get(str(assetid), ()))

    def is_reserved(self, assetid: str) -> bool:
        with self._lock:
            return str(assetid) in self._owners

    def __contains__(self, assetid: object) -> bool:
        return self.is_reserved(str(assetid))

    def __len__(self) -> int:
        with self._lock:
            return len(self._owners)

    def _reserve_locked(self, assetid: str, owner: str) -> bool:
        holders = self._owners.get(assetid)
        if holders is None:
            self._owners[assetid] = {owner}
            return True
        holders.add(owner)
        return False

    def _release_locked(self, assetid: str, owner: str | None) -> bool:
        holders = self._owners.get(assetid)
        if holders is None:
            return False
        if owner is not None:
            holders.discard(str(owner))
            if holders:
                return False
        del self._owners[assetid]
        return True
