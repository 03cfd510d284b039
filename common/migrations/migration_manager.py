"""
Migration manager for extension database schema evolution.

This module provides the MigrationManager class which handles:
- Discovery of migration files in an extension's migrations directory
- Parsing of migration filenames (timestamp, semantic version, description)
- Selection of migrations for a version range
- Loading of migration modules into Migration objects

Migration files follow the naming convention:
    {timestamp}-{semver}-{description}.py
Example:
    1700000000000-1.2.3-add-widgets.py

Discovery order is the numeric timestamp. The semantic version only decides
which batch (version step) a migration belongs to.
"""

import importlib.util
import inspect
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional, Union

from common import semver

from .errors import MigrationDiscoveryError, MigrationLoadError
from .migration import FunctionMigration, Migration, MigrationFile

logger = logging.getLogger(__name__)

LoadedMigration = Union[Migration, FunctionMigration]


class MigrationManager:
    """
    Manages migration file discovery, range selection and loading for one
    extension.

    Does NOT execute migrations (see MigrationRunner).

    Example:
        >>> manager = MigrationManager(Path('/srv/extensions/article-hub'))
        >>> manager.discover_migrations()
        [<MigrationFile(1700000000000, 0.1.0, create-articles)>, ...]
        >>> manager.select_range('0.1.0', '0.3.0')
        [<MigrationFile(..., 0.2.0, ...)>, <MigrationFile(..., 0.3.0, ...)>]
    """

    # Migration filename pattern: {timestamp}-{version}-{description}.py
    MIGRATION_PATTERN = re.compile(r'^(\d+)-([^-]+)-(.+)\.py$')

    def __init__(
        self,
        extension_dir: Path,
        migrations_subdir: str = 'migrations',
        strict_versions: bool = False
    ):
        """
        Initialize migration manager.

        Args:
            extension_dir: Directory of the extension
                Expected structure:
                    article-hub/
                        manifest.json
                        migrations/
                            1700000000000-0.1.0-create-articles.py
                            1700000500000-0.2.0-add-slug.py
            migrations_subdir: Migrations directory relative to extension_dir
            strict_versions: Raise instead of skipping migrations whose
                filename version is not a valid semantic version
        """
        self.extension_dir = Path(extension_dir)
        self.identifier = self.extension_dir.name
        self.migrations_dir = self.extension_dir / migrations_subdir
        self.strict_versions = strict_versions

    def parse_filename(self, filename: str) -> Optional[MigrationFile]:
        """
        Parse a migration filename.

        Returns:
            MigrationFile, or None if the name does not follow the
            convention or is a hidden file

        Example:
            >>> manager.parse_filename('1700000000000-1.2.3-add-widgets.py')
            <MigrationFile(1700000000000, 1.2.3, add-widgets)>
            >>> manager.parse_filename('bad-name.py') is None
            True
        """
        if filename.startswith('.'):
            return None

        match = self.MIGRATION_PATTERN.match(filename)
        if not match:
            return None

        timestamp, version, description = match.groups()
        return MigrationFile(
            name=filename,
            path=(self.migrations_dir / filename).absolute(),
            version=version,
            timestamp=int(timestamp),
            description=description,
        )

    def discover_migrations(self) -> List[MigrationFile]:
        """
        Discover all migration files for the extension.

        Returns:
            Migration files sorted by timestamp ascending (filename breaks
            ties). Empty if the migrations directory does not exist.
        """
        if not self.migrations_dir.is_dir():
            logger.info(
                '[%s] Migrations directory not found: %s',
                self.identifier,
                self.migrations_dir
            )
            return []

        migrations = []
        for file_path in self.migrations_dir.iterdir():
            if not file_path.is_file():
                continue
            migration = self.parse_filename(file_path.name)
            if migration is None:
                if file_path.suffix == '.py' and not file_path.name.startswith(('.', '__')):
                    logger.debug(
                        '[%s] Ignoring file not matching migration pattern: %s',
                        self.identifier,
                        file_path.name
                    )
                continue
            migrations.append(migration)

        return sorted(migrations, key=MigrationFile.sort_key)

    def select_range(
        self,
        from_version: Optional[str],
        to_version: str,
        migrations: Optional[List[MigrationFile]] = None
    ) -> List[MigrationFile]:
        """
        Select migrations belonging to a version range.

        Args:
            from_version: Exclusive lower bound, None for initial install
            to_version: Inclusive upper bound
            migrations: Candidates (defaults to discover_migrations())

        Returns:
            Migrations with from_version < version <= to_version, in
            discovery (timestamp) order

        Raises:
            MigrationDiscoveryError: If strict_versions is set and a
                candidate has an invalid version
            ValueError: If from_version or to_version is invalid
        """
        if migrations is None:
            migrations = self.discover_migrations()

        selected = []
        for migration in migrations:
            if not semver.is_valid(migration.version):
                message = (
                    f"[{self.identifier}] Migration {migration.name} has invalid "
                    f"version '{migration.version}'"
                )
                if self.strict_versions:
                    raise MigrationDiscoveryError(message)
                logger.warning('%s; skipping', message)
                continue

            if semver.gt(migration.version, to_version):
                continue
            if from_version is not None and not semver.gt(migration.version, from_version):
                continue
            selected.append(migration)

        self._warn_on_order_mismatch(selected)
        return selected

    def _warn_on_order_mismatch(self, migrations: List[MigrationFile]) -> None:
        """Log when timestamp order disagrees with semantic version order."""
        for previous, current in zip(migrations, migrations[1:]):
            if semver.lt(current.version, previous.version):
                logger.warning(
                    '[%s] Migration %s (v%s) runs after %s (v%s) by timestamp '
                    'but has an older version',
                    self.identifier,
                    current.name,
                    current.version,
                    previous.name,
                    previous.version
                )

    def load_migration(self, migration: MigrationFile) -> LoadedMigration:
        """
        Import a migration module and resolve its entry point.

        A concrete Migration subclass defined in the module takes precedence;
        otherwise a module-level coroutine function ``up`` is wrapped in a
        FunctionMigration.

        Raises:
            MigrationLoadError: If the module fails to import or exports
                neither entry point
        """
        module_name = 'extension_migrations.{}.{}'.format(
            re.sub(r'\W', '_', self.identifier),
            re.sub(r'\W', '_', Path(migration.name).stem),
        )

        try:
            spec = importlib.util.spec_from_file_location(module_name, migration.path)
            if spec is None or spec.loader is None:
                raise MigrationLoadError(f"Failed to load spec for {migration.path}")

            module = importlib.util.module_from_spec(spec)
            sys.modules[spec.name] = module
            try:
                spec.loader.exec_module(module)
            except Exception:
                sys.modules.pop(spec.name, None)
                raise
        except MigrationLoadError:
            raise
        except Exception as e:
            raise MigrationLoadError(
                f"Failed to import migration {migration.name}: {e}"
            ) from e

        for name in dir(module):
            obj = getattr(module, name)
            if (
                isinstance(obj, type)
                and issubclass(obj, Migration)
                and obj is not Migration
                and not inspect.isabstract(obj)
                and obj.__module__ == module.__name__
            ):
                return obj()

        up = getattr(module, 'up', None)
        if up is not None and inspect.iscoroutinefunction(up):
            return FunctionMigration(up, migration.name)

        raise MigrationLoadError(
            f"Migration {migration.name} does not export a Migration subclass "
            f"or an async 'up' function"
        )
