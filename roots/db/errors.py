"""Maps storage connectivity failures onto a fixed set of 503 responses.

Callers never see driver specific codes: every recognised failure collapses
into one of the categories in ``DATABASE_ERROR_MESSAGES``.
"""
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, TimeoutError as PoolTimeoutError

AUTH_FAILED = "auth_failed"
UNAVAILABLE = "unavailable"
TIMEOUT = "timeout"
UNKNOWN_DATABASE = "unknown_database"
POOL_EXHAUSTED = "pool_exhausted"

DATABASE_ERROR_MESSAGES = {
    AUTH_FAILED: "Database authentication failed.",
    UNAVAILABLE: "Database unavailable. Please try again later.",
    TIMEOUT: "Database connection timed out.",
    UNKNOWN_DATABASE: "Database does not exist or is unreachable.",
    POOL_EXHAUSTED: "Database connection pool exhausted. Please retry shortly.",
}

_MESSAGE_PATTERNS = (
    (AUTH_FAILED, ("access denied", "password authentication failed", "authentication failed")),
    (UNKNOWN_DATABASE, ("unknown database", "does not exist")),
    (TIMEOUT, ("timed out", "timeout expired")),
    (POOL_EXHAUSTED, ("connection pool", "too many connections", "queuepool limit")),
    (UNAVAILABLE, (
        "can't connect", "can't reach database server", "could not connect",
        "connection refused", "server closed the connection", "lost connection",
        "unable to open database file", "server has gone away",
    )),
)


class DatabaseUnavailable(Exception):
    """Raised instead of touching the database while the breaker is open."""

    def __init__(self, code: str = UNAVAILABLE, retry_after: float | None = None):
        super().__init__(DATABASE_ERROR_MESSAGES.get(code, DATABASE_ERROR_MESSAGES[UNAVAILABLE]))
        self.code = code
        self.retry_after = retry_after


@dataclass(frozen=True)
class DatabaseErrorResponse:
    status: int
    message: str
    code: str


def _classify_message(text: str) -> str | None:
    lowered = text.lower()
    for code, fragments in _MESSAGE_PATTERNS:
        if any(f in lowered for f in fragments):
            return code
    return None


def classify_database_error(exc: BaseException | None) -> str | None:
    """Return the error category for ``exc`` or None when it is not a
    connectivity problem."""
    if exc is None:
        return None
    if isinstance(exc, DatabaseUnavailable):
        return exc.code
    if isinstance(exc, PoolTimeoutError):
        return POOL_EXHAUSTED
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return UNAVAILABLE
        if isinstance(exc, (OperationalError, InterfaceError)):
            return _classify_message(str(exc.orig or exc))
        return None
    if isinstance(exc, ConnectionError):
        return UNAVAILABLE
    return None


def get_database_error_response(exc: BaseException | None) -> DatabaseErrorResponse | None:
    code = classify_database_error(exc)
    if code is None:
        return None
    return DatabaseErrorResponse(status=503, message=DATABASE_ERROR_MESSAGES[code], code=code)


def backoff_seconds_for(exc: BaseException | None, default: float, pool: float) -> float:
    if classify_database_error(exc) == POOL_EXHAUSTED:
        return pool
    return default
