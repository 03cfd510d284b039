#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration runner with history tracking and idempotent-conflict recovery.

Executes one extension's schema migrations for a version range, recording
each executed migration in the shared extensions_migrations_history table.

Each class-based migration runs on a fresh autocommit connection, so every
statement it completes stays applied even when a later one fails. A failure
leaves earlier migrations of the batch committed; re-running the batch skips
them via the history table, and statements of the failed migration that
already ran surface as idempotent conflicts on the retry.

Failures whose error means "the target state already exists" (duplicate
key, relation already exists, duplicate column) are recorded as applied and
the batch continues. Every other failure halts the batch.
"""
import logging
import time
from pathlib import Path
from typing import List, Optional

from sqlalchemy import func, select

from common.models import Base, ExtensionMigrationHistory
from common.migrations.migration import (
    FunctionMigration,
    MigrationFile,
    MigrationRecord,
    MigrationResult,
)
from common.migrations.migration_manager import MigrationManager


class MigrationRunner:
    """
    Executes pending schema migrations for one extension.

    Attributes:
        database: ExtensionDatabase providing connections and sessions
        identifier: Extension identifier
        manager: MigrationManager for discovery and loading

    Example:
        runner = MigrationRunner(database, Path('/srv/extensions/article-hub'))

        # Initial install up to 0.1.0
        await runner.run(None, '0.1.0')

        # Upgrade step 0.1.0 -> 0.2.0
        results = await runner.run('0.1.0', '0.2.0')
    """

    def __init__(
        self,
        database,
        extension_dir: Path,
        migrations_subdir: str = 'migrations',
        strict_versions: bool = False
    ):
        """
        Initialize migration runner.

        Args:
            database: ExtensionDatabase instance
            extension_dir: Directory of the extension
            migrations_subdir: Migrations directory relative to extension_dir
            strict_versions: Fail on migration files with invalid versions
        """
        self.database = database
        self.manager = MigrationManager(
            extension_dir,
            migrations_subdir=migrations_subdir,
            strict_versions=strict_versions,
        )
        self.identifier = self.manager.identifier
        self.logger = logging.getLogger(__name__)

    async def ensure_history_table(self) -> None:
        """
        Ensure the shared extensions_migrations_history table exists.

        Safe to call on every run (create is skipped if the table exists).
        """
        async with self.database.connection() as conn:
            await conn.run_sync(
                Base.metadata.create_all,
                tables=[ExtensionMigrationHistory.__table__],
                checkfirst=True,
            )
        self.logger.debug('Ensured %s table exists', ExtensionMigrationHistory.__tablename__)

    def discover_migrations(self) -> List[MigrationFile]:
        """Discover migration files, ordered by timestamp."""
        return self.manager.discover_migrations()

    def select_range(
        self,
        from_version: Optional[str],
        to_version: str
    ) -> List[MigrationFile]:
        """Select migrations with from_version < version <= to_version."""
        return self.manager.select_range(from_version, to_version)

    async def is_migration_executed(self, name: str) -> bool:
        """Check the history table for a migration of this extension."""
        async with self.database.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ExtensionMigrationHistory)
                .where(
                    ExtensionMigrationHistory.extension_identifier == self.identifier,
                    ExtensionMigrationHistory.name == name,
                )
            )
            return result.scalar() > 0

    async def record_migration(self, migration: MigrationFile) -> None:
        """
        Record a migration in the history table.

        Uses INSERT ... ON CONFLICT DO NOTHING, so recording a migration that
        is already present is a no-op.
        """
        stmt = self.database.insert_ignore(
            ExtensionMigrationHistory,
            extension_identifier=self.identifier,
            name=migration.name,
            version=migration.version,
            timestamp=migration.timestamp,
        )
        async with self.database.session() as session:
            await session.execute(stmt)

    async def executed_migrations(self) -> List[MigrationRecord]:
        """List history rows for this extension, oldest first."""
        async with self.database.session() as session:
            result = await session.execute(
                select(ExtensionMigrationHistory)
                .where(ExtensionMigrationHistory.extension_identifier == self.identifier)
                .order_by(ExtensionMigrationHistory.timestamp, ExtensionMigrationHistory.name)
            )
            return [
                MigrationRecord(
                    extension_identifier=row.extension_identifier,
                    name=row.name,
                    version=row.version,
                    timestamp=row.timestamp,
                    executed_at=row.executed_at,
                )
                for row in result.scalars().all()
            ]

    async def execute(self, migration: MigrationFile) -> MigrationResult:
        """
        Execute a single migration exactly once.

        Args:
            migration: Migration file to execute

        Returns:
            MigrationResult with status 'applied', 'skipped' or 'conflict'

        Raises:
            MigrationLoadError: If the migration module cannot be loaded
            Exception: The original error for any non-conflict failure
        """
        if await self.is_migration_executed(migration.name):
            self.logger.info(
                '[%s] Migration already executed, skipping: %s',
                self.identifier,
                migration.name
            )
            return MigrationResult(
                name=migration.name,
                version=migration.version,
                status='skipped',
            )

        self.logger.info('[%s] Executing migration: %s', self.identifier, migration.name)

        instance = self.manager.load_migration(migration)
        start_time = time.time()

        try:
            if isinstance(instance, FunctionMigration):
                await instance.up(self.database)
            else:
                async with self.database.autocommit_connection() as conn:
                    await instance.up(conn)

        except Exception as e:
            execution_time_ms = int((time.time() - start_time) * 1000)
            conflict = self.database.classify_error(e)
            if conflict is None:
                self.logger.error(
                    '[%s] Migration failed: %s - %s',
                    self.identifier,
                    migration.name,
                    e
                )
                raise

            self.logger.warning(
                '[%s] Migration %s hit an idempotent conflict (%s), likely already '
                'applied; marking as completed',
                self.identifier,
                migration.name,
                conflict.value
            )
            await self.record_migration(migration)
            return MigrationResult(
                name=migration.name,
                version=migration.version,
                status='conflict',
                execution_time_ms=execution_time_ms,
            )

        execution_time_ms = int((time.time() - start_time) * 1000)
        await self.record_migration(migration)

        self.logger.info(
            '[%s] Migration completed: %s (%dms)',
            self.identifier,
            migration.name,
            execution_time_ms
        )
        return MigrationResult(
            name=migration.name,
            version=migration.version,
            status='applied',
            execution_time_ms=execution_time_ms,
        )

    async def run(
        self,
        from_version: Optional[str],
        to_version: str
    ) -> List[MigrationResult]:
        """
        Run all pending migrations for a version range.

        Args:
            from_version: Exclusive lower bound, None for initial install
            to_version: Inclusive upper bound

        Returns:
            One MigrationResult per selected migration, in execution order

        Raises:
            Exception: First non-conflict failure; later migrations are not run
        """
        try:
            await self.ensure_history_table()

            migrations = self.select_range(from_version, to_version)
            if not migrations:
                self.logger.info('[%s] No migrations to run', self.identifier)
                return []

            self.logger.info(
                '[%s] Found %d migration(s) to run from %s to %s',
                self.identifier,
                len(migrations),
                from_version or 'initial',
                to_version
            )

            results = []
            for migration in migrations:
                results.append(await self.execute(migration))

            self.logger.info('[%s] All migrations completed successfully', self.identifier)
            return results

        except Exception as e:
            self.logger.error('[%s] Migration process failed: %s', self.identifier, e)
            raise
