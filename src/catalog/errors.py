"""
Error taxonomy shared by the stores, services and HTTP layer.

Every failure the service reports is one of the ``CatalogError`` subclasses
below. Backend exceptions are turned into one of them by ``classify_error``,
which is applied at the store boundary through ``storage_errors()``.
"""

import re
from contextlib import contextmanager

import psycopg


class CatalogError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, **self.details}


class ValidationError(CatalogError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFound(CatalogError):
    status_code = 404
    code = "NOT_FOUND"


class PayloadTooLarge(CatalogError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


class Unavailable(CatalogError):
    status_code = 503
    code = "DB_OFFLINE"


class CapacityExhausted(CatalogError):
    status_code = 507
    code = "DB_FULL"


class InternalError(CatalogError):
    status_code = 500
    code = "INTERNAL_ERROR"


class PurgeIncomplete(InternalError):
    """Purge stopped midway; details report what was removed so far."""


# SQLSTATE 53100 is disk_full
CAPACITY_SQLSTATES = frozenset({"53100"})
CAPACITY_WORDING = ("quota", "storage", "no space left", "disk full", "could not extend file")

# admin_shutdown, crash_shutdown, cannot_connect_now
UNAVAILABLE_SQLSTATES = frozenset({"57P01", "57P02", "57P03"})

_CREDENTIALS = re.compile(r"(\w+://[^:/@\s]+):[^@\s]*@")
_PASSWORD_PARAM = re.compile(r"(password\s*=\s*)('[^']*'|\S+)", re.IGNORECASE)


def redact(message: str) -> str:
    """Mask passwords embedded in connection strings."""
    message = _CREDENTIALS.sub(r"\1:***@", message)
    return _PASSWORD_PARAM.sub(r"\1***", message)


def _sqlstate(exc: BaseException) -> str | None:
    return getattr(exc, "sqlstate", None)


def is_capacity_error(exc: BaseException) -> bool:
    if _sqlstate(exc) in CAPACITY_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(word in message for word in CAPACITY_WORDING)


def is_connection_error(exc: BaseException) -> bool:
    if not isinstance(exc, psycopg.OperationalError):
        return False
    sqlstate = _sqlstate(exc)
    if sqlstate is None:
        # Raised client-side: the server could not be reached at all
        return True
    return sqlstate.startswith("08") or sqlstate in UNAVAILABLE_SQLSTATES


def classify_error(exc: BaseException) -> CatalogError:
    """Map any exception onto the catalog error taxonomy."""
    if isinstance(exc, CatalogError):
        return exc
    if is_capacity_error(exc):
        return CapacityExhausted("Storage capacity exhausted")
    if is_connection_error(exc):
        return Unavailable("Database unavailable")
    return InternalError(redact(str(exc)) or type(exc).__name__)


@contextmanager
def storage_errors():
    """Re-raise backend failures as catalog errors, chaining the original."""
    try:
        yield
    except CatalogError:
        raise
    except Exception as e:
        raise classify_error(e) from e
