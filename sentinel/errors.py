"""Error taxonomy shared by the gateways, the loop and the executors.

Every error carries a machine-checkable ``kind``. The upstream
message is kept on the exception only for diagnostics.
"""

import re
from enum import Enum


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    STALE_DATA = "stale_data"
    DATA_UNAVAILABLE = "data_unavailable"
    CIRCUIT_OPEN = "circuit_open"
    INVALID_CONFIGURATION = "invalid_configuration"
    EXECUTION = "execution"
    QUOTA = "quota"


class SentinelError(Exception):
    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str = "", kind: ErrorKind | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class TransientSourceFailure(SentinelError):
    kind = ErrorKind.TRANSIENT


class RateLimited(TransientSourceFailure):
    kind = ErrorKind.RATE_LIMITED


class StaleData(SentinelError):
    kind = ErrorKind.STALE_DATA


class DataUnavailable(SentinelError):
    kind = ErrorKind.DATA_UNAVAILABLE


class CircuitOpen(DataUnavailable):
    kind = ErrorKind.CIRCUIT_OPEN


class ExecutionFailure(SentinelError):
    kind = ErrorKind.EXECUTION


class QuotaExceeded(SentinelError):
    kind = ErrorKind.QUOTA


_QUOTA_PATTERN = re.compile(r"quota|rate[- ]?limit|429|too many requests", re.IGNORECASE)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an arbitrary exception from an upstream client to an ErrorKind.

    Typed errors win. Status codes are checked next, and the message text
    is only consulted for clients that raise bare exceptions.
    """
    if isinstance(exc, SentinelError):
        return exc.kind
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if status == 429:
        return ErrorKind.QUOTA
    if _QUOTA_PATTERN.search(str(exc)):
        return ErrorKind.QUOTA
    return ErrorKind.TRANSIENT
