"""
Global pytest configuration and fixtures for extension upgrader tests

Provides:
- Temporary SQLite database
- Extension directory factory (manifest, migrations, upgrade scripts, markers)
"""

import pytest

from common.database import ExtensionDatabase
from tests.fixtures.extensions import ExtensionBuilder


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Extensions
# ============================================================================

@pytest.fixture
def extensions_dir(tmp_path):
    """Empty extensions root directory."""
    path = tmp_path / 'extensions'
    path.mkdir()
    return path


@pytest.fixture
def make_extension(extensions_dir):
    """Factory for extension directories.

    Example:
        def test_something(make_extension):
            ext = make_extension('article-hub').manifest('0.1.0')
            ext.migration(1700000000000, '0.1.0', 'create-articles',
                          'CREATE TABLE articles (id INTEGER)')
    """
    def _make(identifier: str = 'article-hub') -> ExtensionBuilder:
        return ExtensionBuilder(extensions_dir, identifier)
    return _make


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
async def database(tmp_path):
    """Connected ExtensionDatabase backed by a temporary SQLite file.

    Yields:
        ExtensionDatabase: Connected instance, closed after the test
    """
    db = ExtensionDatabase(str(tmp_path / 'upgrader.db'))
    await db.connect()
    yield db
    await db.close()
