"""
Extension directory builder and database helpers for tests.
"""

import json
import textwrap
from pathlib import Path
from typing import List, Optional

import yaml


class ExtensionBuilder:
    """Writes an extension directory on disk for tests."""

    def __init__(self, extensions_dir: Path, identifier: str):
        self.identifier = identifier
        self.path = extensions_dir / identifier
        self.path.mkdir(parents=True, exist_ok=True)
        self.migrations_dir = self.path / 'migrations'
        self.upgrade_dir = self.path / 'upgrade'
        self.versions_dir = self.path / 'data' / 'versions'

    def manifest(self, version: str, upgrade_versions: Optional[List[str]] = None,
                 fmt: str = 'json', **extra) -> 'ExtensionBuilder':
        data = {'identifier': self.identifier, 'version': version, **extra}
        if upgrade_versions is not None:
            data['upgrade_versions'] = upgrade_versions
        if fmt == 'json':
            (self.path / 'manifest.json').write_text(json.dumps(data))
        else:
            (self.path / 'manifest.yaml').write_text(yaml.safe_dump(data))
        return self

    def migration(self, timestamp: int, version: str, description: str,
                  *statements: str) -> Path:
        """Class-based migration executing each SQL statement in order."""
        body = '\n'.join(
            f'        await connection.execute(text({sql!r}))' for sql in statements
        ) or '        pass'
        source = (
            'from sqlalchemy import text\n'
            '\n'
            'from common.migrations import Migration\n'
            '\n'
            '\n'
            'class TestMigration(Migration):\n'
            '    async def up(self, connection):\n'
            f'{body}\n'
        )
        return self.migration_source(timestamp, version, description, source)

    def function_migration(self, timestamp: int, version: str, description: str,
                           sql: str) -> Path:
        """Migration exporting a bare async up(database) function."""
        source = (
            'async def up(database):\n'
            f'    await database.execute({sql!r})\n'
        )
        return self.migration_source(timestamp, version, description, source)

    def migration_source(self, timestamp: int, version: str, description: str,
                         source: str) -> Path:
        self.migrations_dir.mkdir(parents=True, exist_ok=True)
        path = self.migrations_dir / f'{timestamp}-{version}-{description}.py'
        path.write_text(textwrap.dedent(source))
        return path

    def upgrade_script(self, version: str, body: str = 'pass',
                       declared_version: Optional[str] = None) -> Path:
        """Upgrade script whose execute() runs body (indented for you)."""
        self.upgrade_dir.mkdir(parents=True, exist_ok=True)
        path = self.upgrade_dir / f'{version}.py'
        path.write_text(
            'from lib.extension import UpgradeScript\n'
            '\n'
            '\n'
            'class Upgrade(UpgradeScript):\n'
            f'    version = {declared_version or version!r}\n'
            '\n'
            '    async def execute(self, context):\n'
            f'{textwrap.indent(textwrap.dedent(body).strip(), " " * 8)}\n'
        )
        return path

    def marker(self, version: str) -> Path:
        self.versions_dir.mkdir(parents=True, exist_ok=True)
        path = self.versions_dir / version
        path.write_text(json.dumps({'version': version}))
        return path

    def markers(self) -> List[str]:
        if not self.versions_dir.is_dir():
            return []
        return sorted(p.name for p in self.versions_dir.iterdir())


async def table_names(database) -> List[str]:
    """Names of user tables in a SQLite database."""
    rows = await database.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' "
        "AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    return [row[0] for row in rows]


async def column_names(database, table: str) -> List[str]:
    rows = await database.execute(f"PRAGMA table_info({table})")
    return [row[1] for row in rows]
