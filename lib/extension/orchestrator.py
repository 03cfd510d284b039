"""
lib/extension/orchestrator.py

Upgrades every installed extension during bootstrap.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .errors import ExtensionNotFoundError, UpgradeInProgressError
from .metadata import find_manifest
from .version_manager import ExtensionVersionManager, UpgradeReport


@dataclass
class UpgradeSummary:
    """
    Outcome of an upgrade pass over all extensions.

    Attributes:
        reports: Reports of extensions that were checked successfully
        failures: Error message per failed extension identifier
    """
    reports: List[UpgradeReport] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failures


class ExtensionUpgradeOrchestrator:
    """
    Runs ExtensionVersionManager for each installed extension, one at a time.

    An extension is installed if its directory under extensions_dir holds a
    manifest. Extensions are processed in identifier order.

    Example:
        orchestrator = ExtensionUpgradeOrchestrator(database, Path('extensions'))
        summary = await orchestrator.check_and_upgrade_all()
    """

    def __init__(
        self,
        database,
        extensions_dir: Path,
        migrations_subdir: str = 'migrations',
        strict_versions: bool = False,
        fail_fast: bool = True
    ):
        self.database = database
        self.extensions_dir = Path(extensions_dir)
        self.migrations_subdir = migrations_subdir
        self.strict_versions = strict_versions
        self.fail_fast = fail_fast
        self.logger = logging.getLogger(__name__)
        self._running = False

    @property
    def is_running(self) -> bool:
        """True while check_and_upgrade_all() is in progress."""
        return self._running

    def discover_extensions(self) -> List[str]:
        """List installed extension identifiers, sorted."""
        if not self.extensions_dir.is_dir():
            self.logger.warning('Extensions directory not found: %s', self.extensions_dir)
            return []

        return sorted(
            entry.name
            for entry in self.extensions_dir.iterdir()
            if entry.is_dir()
            and not entry.name.startswith(('.', '_'))
            and find_manifest(entry) is not None
        )

    def get_manager(self, identifier: str) -> ExtensionVersionManager:
        """
        Build a version manager for one extension.

        Raises:
            ExtensionNotFoundError: If the extension is not installed
        """
        extension_dir = self.extensions_dir / identifier
        if (
            not identifier
            or Path(identifier).name != identifier
            or not extension_dir.is_dir()
            or find_manifest(extension_dir) is None
        ):
            raise ExtensionNotFoundError(f"Extension not installed: {identifier}")

        return ExtensionVersionManager(
            self.database,
            extension_dir,
            migrations_subdir=self.migrations_subdir,
            strict_versions=self.strict_versions,
        )

    async def check_and_upgrade(self, identifier: str) -> UpgradeReport:
        """Check and upgrade a single extension."""
        return await self.get_manager(identifier).check_and_upgrade()

    async def check_and_upgrade_all(self) -> UpgradeSummary:
        """
        Check and upgrade every installed extension sequentially.

        Returns:
            UpgradeSummary

        Raises:
            UpgradeInProgressError: If a pass is already running
            Exception: First extension failure when fail_fast is set
        """
        if self._running:
            raise UpgradeInProgressError('Extension upgrade already in progress')

        self._running = True
        try:
            identifiers = self.discover_extensions()
            self.logger.info('Checking %d extension(s) for upgrades', len(identifiers))

            summary = UpgradeSummary()
            for identifier in identifiers:
                try:
                    summary.reports.append(await self.check_and_upgrade(identifier))
                except Exception as e:
                    if self.fail_fast:
                        raise
                    summary.failures[identifier] = str(e)
                    self.logger.error(
                        'Extension %s left partially upgraded: %s', identifier, e
                    )

            upgraded = [r.identifier for r in summary.reports if r.upgraded]
            self.logger.info(
                'Extension upgrade pass finished: %d upgraded, %d failed',
                len(upgraded),
                len(summary.failures)
            )
            return summary
        finally:
            self._running = False
