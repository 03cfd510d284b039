"""
Storage-specific exceptions and conflict classification.

This module defines the exception hierarchy for storage operations and the
classification used by the migration runner to recognise "the desired state
already exists" failures.

Classification order:
    1. An explicit ConflictError anywhere in the exception chain
    2. Driver error codes (PostgreSQL SQLSTATE, SQLite extended error names)
    3. Message fragments, for drivers that expose no codes (SQLite DDL)
"""

from enum import Enum
from typing import Iterator, Optional


class ConflictKind(Enum):
    """Kinds of idempotent conflicts a migration can run into."""

    DUPLICATE_KEY = "duplicate_key"
    DUPLICATE_OBJECT = "duplicate_object"
    DUPLICATE_COLUMN = "duplicate_column"
    ALREADY_DEFINED = "already_defined"


class StorageError(Exception):
    """
    Base exception for storage errors.

    All storage-related exceptions inherit from this base class,
    allowing catch-all error handling when needed.
    """
    pass


class ConflictError(StorageError):
    """
    Target state already exists.

    Migration authors may raise this directly when they detect that their
    change was applied out-of-band.

    Attributes:
        kind: ConflictKind describing the conflict
    """

    def __init__(self, kind: ConflictKind, message: str = '') -> None:
        self.kind = kind
        super().__init__(message or kind.value.replace('_', ' '))


# PostgreSQL SQLSTATE codes
SQLSTATE_CONFLICTS = {
    '23505': ConflictKind.DUPLICATE_KEY,      # unique_violation
    '42P07': ConflictKind.DUPLICATE_OBJECT,   # duplicate_table
    '42710': ConflictKind.DUPLICATE_OBJECT,   # duplicate_object
    '42701': ConflictKind.DUPLICATE_COLUMN,   # duplicate_column
}

# sqlite3.Error.sqlite_errorname (Python 3.11+)
SQLITE_CONFLICTS = {
    'SQLITE_CONSTRAINT_UNIQUE': ConflictKind.DUPLICATE_KEY,
    'SQLITE_CONSTRAINT_PRIMARYKEY': ConflictKind.DUPLICATE_KEY,
}

# Lowercase fragments, checked in order
MESSAGE_CONFLICTS = (
    ('duplicate key', ConflictKind.DUPLICATE_KEY),
    ('unique constraint failed', ConflictKind.DUPLICATE_KEY),
    ('duplicate column', ConflictKind.DUPLICATE_COLUMN),
    ('already defined', ConflictKind.ALREADY_DEFINED),
    ('already exists', ConflictKind.DUPLICATE_OBJECT),
)


def _iter_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc, its DBAPI originals and its causes, without cycles."""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        # sqlalchemy.exc.DBAPIError wraps the driver error in .orig
        pending.append(getattr(current, 'orig', None))
        pending.append(current.__cause__)


def _error_code(exc: BaseException) -> Optional[str]:
    """Extract a SQLSTATE code from asyncpg/psycopg style errors."""
    for attr in ('sqlstate', 'pgcode', 'code'):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value:
            return value
    return None


def classify_conflict(exc: BaseException) -> Optional[ConflictKind]:
    """
    Classify an exception as an idempotent conflict.

    Args:
        exc: Exception raised while executing a migration

    Returns:
        ConflictKind if the error means the target state already exists,
        None for any other failure

    Example:
        >>> classify_conflict(ConflictError(ConflictKind.DUPLICATE_KEY))
        <ConflictKind.DUPLICATE_KEY: 'duplicate_key'>
        >>> classify_conflict(RuntimeError('table widgets already exists'))
        <ConflictKind.DUPLICATE_OBJECT: 'duplicate_object'>
        >>> classify_conflict(RuntimeError('connection reset')) is None
        True
    """
    chain = list(_iter_chain(exc))

    for error in chain:
        if isinstance(error, ConflictError):
            return error.kind

    for error in chain:
        code = _error_code(error)
        if code in SQLSTATE_CONFLICTS:
            return SQLSTATE_CONFLICTS[code]
        name = getattr(error, 'sqlite_errorname', None)
        if name in SQLITE_CONFLICTS:
            return SQLITE_CONFLICTS[name]

    for error in chain:
        message = str(error).lower()
        for fragment, kind in MESSAGE_CONFLICTS:
            if fragment in message:
                return kind

    return None
