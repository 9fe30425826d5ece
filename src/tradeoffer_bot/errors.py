from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PERMANENT = "permanent"
    ITEM_MISMATCH = "item_mismatch"
    SESSION_EXPIRED = "session_expired"
    NO_MATCH = "no_match"
    TRANSIENT = "transient"


# Platform result code for "one or more items no longer exist in the inventory".
ERESULT_ITEM_MISMATCH = 26


class TradeApiError(Exception):
    """Failure reported by the remote trading client.

    Client adapters are expected to set ``kind``; an error raised without one
    is treated as transient and retried.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        *,
        eresult: int | None = None,
        operation: str = "",
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.eresult = eresult
        self.operation = operation

    def __repr__(self) -> str:
        return (
            f"TradeApiError({str(self)!r}, kind={self.kind.value}, "
            f"eresult={self.eresult}, operation={self.operation!r})"
        )


class ConfirmationError(RuntimeError):
    pass


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, TradeApiError):
        if exc.kind == ErrorKind.TRANSIENT and exc.eresult == ERESULT_ITEM_MISMATCH:
            return ErrorKind.ITEM_MISMATCH
        return exc.kind
    return ErrorKind.TRANSIENT
