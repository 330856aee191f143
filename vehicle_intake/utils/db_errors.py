# vehicle_intake/utils/db_errors.py
"""Helpers for classifying SQLAlchemy / DB-API errors."""

from typing import Optional, Tuple

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

UNIQUE_VIOLATION = "23505"


def db_error_code(exc: BaseException) -> Optional[str]:
    """SQLSTATE of the underlying driver error, when the driver exposes one."""
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_unique_violation(exc: BaseException) -> bool:
    if not isinstance(exc, IntegrityError):
        return False
    if db_error_code(exc) == UNIQUE_VIOLATION:
        return True
    return "unique" in str(exc.orig if exc.orig is not None else exc).lower()


def describe_db_error(exc: BaseException) -> Tuple[Optional[str], str]:
    """(code, message) for logs and failure reports."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return db_error_code(exc), str(exc.orig).strip()
    if isinstance(exc, SQLAlchemyError):
        return db_error_code(exc), str(exc).strip()
    return None, str(exc)
