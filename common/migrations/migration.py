"""
Migration data models for extension schema evolution.

This module defines the core data structures for extension migrations:
- Migration: Interface every migration module implements
- FunctionMigration: Adapter for modules exporting a bare ``up`` function
- MigrationFile: A migration file discovered on the filesystem
- MigrationRecord: A row of the shared migration history table
- MigrationResult: Outcome of executing one migration

Migration files are Python modules named ``{timestamp}-{semver}-{description}.py``:

    # 1700000000000-1.2.3-add-widgets.py
    from sqlalchemy import text

    from common.migrations import Migration


    class AddWidgets(Migration):
        async def up(self, connection):
            await connection.execute(text('CREATE TABLE widgets (id INTEGER)'))

        async def down(self, connection):
            await connection.execute(text('DROP TABLE widgets'))
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional


class Migration(ABC):
    """
    Interface for class-based migrations.

    ``up`` receives a fresh autocommit connection
    (sqlalchemy.ext.asyncio.AsyncConnection): each statement commits as it
    runs, and nothing is rolled back if ``up`` raises.
    """

    @abstractmethod
    async def up(self, connection) -> None:
        """Apply the migration."""

    async def down(self, connection) -> None:
        """Revert the migration. Optional."""
        raise NotImplementedError(
            f"{type(self).__name__} does not implement down()"
        )


class FunctionMigration:
    """
    Wraps a module-level ``async def up(database)`` function.

    Function migrations receive the database provider itself rather than a
    connection, and manage their own sessions.
    """

    def __init__(self, up: Callable[[Any], Awaitable[None]], name: str):
        self._up = up
        self.name = name

    async def up(self, database) -> None:
        await self._up(database)

    def __repr__(self) -> str:
        return f"<FunctionMigration({self.name})>"


@dataclass
class MigrationFile:
    """
    Represents a migration file discovered for an extension.

    Attributes:
        name: Full filename, used as the history key
            (e.g. '1700000000000-1.2.3-add-widgets.py')
        path: Absolute path to the migration file
        version: Semantic version from the filename (may be invalid)
        timestamp: Numeric timestamp from the filename, the discovery order
        description: Description part of the filename
    """
    name: str
    path: Path
    version: str
    timestamp: int
    description: str

    def sort_key(self) -> tuple:
        return (self.timestamp, self.name)

    def __repr__(self) -> str:
        return (
            f"<MigrationFile({self.timestamp}, {self.version}, "
            f"{self.description})>"
        )


@dataclass
class MigrationRecord:
    """
    A row in the extensions_migrations_history table.

    Attributes:
        extension_identifier: Extension the migration belongs to
        name: Migration filename
        version: Semantic version from the filename
        timestamp: Timestamp from the filename
        executed_at: When the migration was recorded
    """
    extension_identifier: str
    name: str
    version: str
    timestamp: int
    executed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'extension_identifier': self.extension_identifier,
            'name': self.name,
            'version': self.version,
            'timestamp': self.timestamp,
            'executed_at': (
                self.executed_at.isoformat() if self.executed_at else None
            ),
        }


@dataclass
class MigrationResult:
    """
    Outcome of executing one migration.

    Attributes:
        name: Migration filename
        version: Semantic version of the migration
        status: 'applied', 'skipped' (already in history) or
            'conflict' (failed with an idempotent conflict, recorded anyway)
        execution_time_ms: Execution time in milliseconds
    """
    name: str
    version: str
    status: str
    execution_time_ms: int = 0

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'version': self.version,
            'status': self.status,
            'execution_time_ms': self.execution_time_ms,
        }
