#!/usr/bin/env python3
"""
Extension upgrader - bootstrap entry point

Runs one upgrade pass over every installed extension and exits:
- 0 when all extensions are up to date (or were upgraded)
- 1 when any extension failed and was left partially upgraded

Usage:
    python upgrade.py [config.json]
    python upgrade.py config.yaml --extension article-hub
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from common.config import get_config
from common.database import ExtensionDatabase
from lib.extension import ExtensionUpgradeOrchestrator, UpgradeInProgressError


logger = logging.getLogger(__name__)


class Upgrader:
    """
    Bootstrap-time extension upgrader.

    Responsibilities:
    1. Connect to the database
    2. Run the orchestrator over installed extensions
    3. Close the database
    """

    def __init__(self, config_path: str = "config.json"):
        self.config = get_config(config_path)
        self.database = ExtensionDatabase(self.config['database_url'])
        upgrade_conf = self.config['upgrade']
        self.orchestrator = ExtensionUpgradeOrchestrator(
            self.database,
            Path(self.config['extensions_dir']),
            migrations_subdir=self.config['migrations_subdir'],
            strict_versions=upgrade_conf['strict_versions'],
            fail_fast=upgrade_conf['fail_fast'],
        )

    async def run(self, identifier=None) -> bool:
        """Upgrade one extension (or all of them). Returns True on success."""
        await self.database.connect()
        try:
            if identifier:
                report = await self.orchestrator.check_and_upgrade(identifier)
                logger.info(
                    "%s: %s -> %s (%d version(s) applied)",
                    report.identifier,
                    report.installed or 'initial',
                    report.current,
                    len(report.upgraded_versions)
                )
                return True

            summary = await self.orchestrator.check_and_upgrade_all()
            for identifier, error in summary.failures.items():
                logger.error("%s failed: %s", identifier, error)
            return summary.success

        except UpgradeInProgressError as e:
            logger.error("%s", e)
            return False
        except Exception as e:
            logger.error("Extension upgrade failed: %s", e, exc_info=True)
            return False
        finally:
            await self.database.close()


async def main():
    """Entry point"""
    parser = argparse.ArgumentParser(description='Upgrade installed extensions')
    parser.add_argument('config', nargs='?', default='config.json',
                        help='Path to JSON/YAML config file (default: config.json)')
    parser.add_argument('--extension', default=None,
                        help='Upgrade only this extension identifier')
    args = parser.parse_args()

    upgrader = Upgrader(args.config)
    success = await upgrader.run(args.extension)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    asyncio.run(main())
