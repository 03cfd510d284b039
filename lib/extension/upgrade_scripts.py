"""
lib/extension/upgrade_scripts.py

Per-version data upgrade scripts.

Scripts live at ``{extension}/upgrade/{version}.py`` and define exactly one
UpgradeScript subclass:

    from lib.extension import UpgradeScript


    class Upgrade(UpgradeScript):
        version = '0.2.0'

        async def execute(self, context):
            await context.database.execute(
                "UPDATE articles SET slug = lower(title) WHERE slug IS NULL"
            )

Schema changes belong in migrations; scripts transform data.
"""

import importlib.util
import inspect
import logging
import re
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import UpgradeScriptError

UPGRADE_SUBDIR = 'upgrade'


@dataclass
class UpgradeContext:
    """
    Everything an upgrade script may touch.

    Attributes:
        database: ExtensionDatabase instance
        identifier: Extension identifier
        extension_dir: Directory of the extension
        logger: Logger scoped to the extension
    """
    database: object
    identifier: str
    extension_dir: Path
    logger: logging.Logger


class UpgradeScript(ABC):
    """
    Base class for extension upgrade scripts.

    Attributes:
        version: Version this script upgrades to (must match the filename)
    """

    version: str = ''

    @abstractmethod
    async def execute(self, context: UpgradeContext) -> None:
        """Run the data upgrade."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(v{self.version})>"


class UpgradeScriptRunner:
    """
    Loads and executes upgrade scripts for one extension.

    Example:
        runner = UpgradeScriptRunner(database, Path('/srv/extensions/article-hub'))
        await runner.execute_upgrades(['0.2.0'])
    """

    def __init__(self, database, extension_dir: Path):
        self.database = database
        self.extension_dir = Path(extension_dir)
        self.identifier = self.extension_dir.name
        self.scripts_dir = self.extension_dir / UPGRADE_SUBDIR
        self.logger = logging.getLogger(__name__)

    def script_path(self, version: str) -> Path:
        return self.scripts_dir / f'{version}.py'

    def load_script(self, version: str) -> Optional[UpgradeScript]:
        """
        Load the upgrade script for a version.

        Returns:
            UpgradeScript instance, or None if the version has no script

        Raises:
            UpgradeScriptError: If the script cannot be imported, defines no
                UpgradeScript subclass, or declares a different version
        """
        path = self.script_path(version)
        if not path.is_file():
            return None

        module_name = 'extension_upgrades.{}.v{}'.format(
            re.sub(r'\W', '_', self.identifier),
            re.sub(r'\W', '_', version),
        )

        try:
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                raise UpgradeScriptError(f"Failed to load spec for {path}")
            module = importlib.util.module_from_spec(spec)
            sys.modules[spec.name] = module
            try:
                spec.loader.exec_module(module)
            except Exception:
                sys.modules.pop(spec.name, None)
                raise
        except UpgradeScriptError:
            raise
        except Exception as e:
            raise UpgradeScriptError(
                f"[{self.identifier}] Failed to import upgrade script {path.name}: {e}"
            ) from e

        script_class = None
        for name in dir(module):
            obj = getattr(module, name)
            if (
                isinstance(obj, type)
                and issubclass(obj, UpgradeScript)
                and obj is not UpgradeScript
                and not inspect.isabstract(obj)
                and obj.__module__ == module.__name__
            ):
                script_class = obj
                break

        if script_class is None:
            raise UpgradeScriptError(
                f"[{self.identifier}] No UpgradeScript subclass found in {path.name}"
            )

        script = script_class()
        if script.version != version:
            raise UpgradeScriptError(
                f"[{self.identifier}] Upgrade script {path.name} declares version "
                f"'{script.version}', expected '{version}'"
            )
        return script

    async def execute_upgrades(self, versions: List[str]) -> List[str]:
        """
        Run upgrade scripts for the given versions, in order.

        Args:
            versions: Versions to run scripts for

        Returns:
            Versions that had a script and ran it

        Raises:
            UpgradeScriptError: If a script fails to load
            Exception: Whatever a script raises
        """
        executed = []
        for version in versions:
            script = self.load_script(version)
            if script is None:
                self.logger.debug(
                    '[%s] No upgrade script for %s', self.identifier, version
                )
                continue

            self.logger.info('[%s] Running upgrade script %s', self.identifier, version)
            context = UpgradeContext(
                database=self.database,
                identifier=self.identifier,
                extension_dir=self.extension_dir,
                logger=logging.getLogger(f'{__name__}.{self.identifier}'),
            )
            try:
                await script.execute(context)
            except Exception as e:
                self.logger.error(
                    '[%s] Upgrade script %s failed: %s', self.identifier, version, e
                )
                raise
            executed.append(version)
            self.logger.info('[%s] Upgrade script %s completed', self.identifier, version)

        return executed
