"""
lib/extension/version_manager.py

Walks one extension from its installed version to its manifest version.

Upgrades are executed version by version. For each version:
    migrations (previous, version] -> upgrade script -> version marker
The marker is written last, so a failure anywhere leaves no marker for that
version and the next run resumes at it.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from common.migrations import MigrationResult, MigrationRunner

from .errors import VersionMarkerError
from .upgrade_scripts import UpgradeScriptRunner
from .version_detector import ExtensionVersionDetector, ExtensionVersionInfo


@dataclass
class UpgradeReport:
    """
    Outcome of check_and_upgrade().

    Attributes:
        identifier: Extension identifier
        installed: Version installed before this run (None on first install)
        current: Manifest version
        upgraded_versions: Versions completed (marker written) in this run
        migrations: Results of every migration touched in this run
    """
    identifier: str
    installed: Optional[str]
    current: str
    upgraded_versions: List[str] = field(default_factory=list)
    migrations: List[MigrationResult] = field(default_factory=list)

    @property
    def upgraded(self) -> bool:
        return bool(self.upgraded_versions)

    def to_dict(self) -> dict:
        return {
            'identifier': self.identifier,
            'installed': self.installed,
            'current': self.current,
            'upgraded_versions': list(self.upgraded_versions),
            'migrations': [m.to_dict() for m in self.migrations],
        }


class ExtensionVersionManager:
    """
    Manages the complete upgrade process for a single extension.

    Attributes:
        database: ExtensionDatabase instance
        extension_dir: Directory of the extension
        detector: ExtensionVersionDetector for the extension
        migration_runner: MigrationRunner for the extension
        script_runner: UpgradeScriptRunner for the extension

    Example:
        manager = ExtensionVersionManager(database, Path('/srv/extensions/article-hub'))
        report = await manager.check_and_upgrade()
        print(report.upgraded_versions)
    """

    def __init__(
        self,
        database,
        extension_dir: Path,
        migrations_subdir: str = 'migrations',
        strict_versions: bool = False,
        migration_runner: Optional[MigrationRunner] = None,
        script_runner: Optional[UpgradeScriptRunner] = None
    ):
        self.database = database
        self.extension_dir = Path(extension_dir)
        self.identifier = self.extension_dir.name
        self.detector = ExtensionVersionDetector(self.extension_dir)
        self.versions_dir = self.detector.versions_dir
        self.migration_runner = migration_runner or MigrationRunner(
            database,
            self.extension_dir,
            migrations_subdir=migrations_subdir,
            strict_versions=strict_versions,
        )
        self.script_runner = script_runner or UpgradeScriptRunner(
            database, self.extension_dir
        )
        self.logger = logging.getLogger(__name__)

    def detect(self) -> ExtensionVersionInfo:
        return self.detector.detect()

    async def check_and_upgrade(self) -> UpgradeReport:
        """
        Check the extension and upgrade it if needed.

        Returns:
            UpgradeReport (empty upgraded_versions if already up to date)

        Raises:
            Exception: The first failure of any step; versions completed
                before it keep their markers
        """
        try:
            info = self.detect()
            report = UpgradeReport(
                identifier=self.identifier,
                installed=info.installed,
                current=info.current,
            )

            if not info.needs_upgrade:
                self.logger.info(
                    'Extension %s is up to date: %s', self.identifier, info.current
                )
                return report

            self.logger.info(
                'Extension %s upgrade needed: %s -> %s',
                self.identifier,
                info.installed or 'initial',
                info.current
            )
            await self.execute_upgrade(info, report)
            return report

        except Exception as e:
            self.logger.error(
                'Extension %s version check and upgrade failed: %s', self.identifier, e
            )
            raise

    async def execute_upgrade(
        self,
        info: ExtensionVersionInfo,
        report: UpgradeReport
    ) -> None:
        """Apply every pending version in ascending order."""
        self.logger.info(
            '[%s] Upgrade path: %s', self.identifier, ' -> '.join(info.upgrade_versions)
        )

        previous_version = info.installed
        for version in info.upgrade_versions:
            await self.execute_version_upgrade(version, previous_version, report)
            previous_version = version

        self.logger.info('[%s] Upgrade completed: %s', self.identifier, info.current)

    async def execute_version_upgrade(
        self,
        version: str,
        from_version: Optional[str],
        report: UpgradeReport
    ) -> None:
        """
        Upgrade a single version step.

        Args:
            version: Target version of this step
            from_version: Previous version (None for initial installation)
            report: Report to append results to
        """
        self.logger.info('[%s] Upgrading to %s...', self.identifier, version)

        try:
            # Step 1: migrations
            results = await self.migration_runner.run(from_version, version)
            report.migrations.extend(results)

            # Step 2: upgrade script
            await self.script_runner.execute_upgrades([version])

            # Step 3: version marker
            self.write_version_file(version)

        except Exception as e:
            self.logger.error(
                '[%s] Version %s upgrade failed: %s', self.identifier, version, e
            )
            raise

        report.upgraded_versions.append(version)
        self.logger.info('[%s] Version %s upgrade completed', self.identifier, version)

    def write_version_file(self, version: str) -> Path:
        """
        Write the marker proving a version step completed.

        Raises:
            VersionMarkerError: If the marker cannot be written
        """
        marker = self.versions_dir / version
        try:
            self.versions_dir.mkdir(parents=True, exist_ok=True)
            marker.write_text(
                json.dumps({
                    'version': version,
                    'upgraded_at': datetime.now(timezone.utc).isoformat(),
                    'description': f'{self.identifier} upgraded to version {version}',
                }, indent=2),
                encoding='utf-8'
            )
        except OSError as e:
            raise VersionMarkerError(
                f"[{self.identifier}] Failed to write version file for {version}: {e}"
            ) from e

        self.logger.info('[%s] Version file written: %s', self.identifier, marker)
        return marker
