#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SQLAlchemy ORM Models for the Extension Upgrader
================================================

Defines database schema using SQLAlchemy 2.0 ORM with type hints.

Models:
- ExtensionMigrationHistory: Shared migration history for all extensions

Usage:
    from common.models import Base, ExtensionMigrationHistory

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Query
    async with AsyncSession(engine) as session:
        result = await session.execute(
            select(ExtensionMigrationHistory).where(
                ExtensionMigrationHistory.extension_identifier == 'article-hub'
            )
        )
        rows = result.scalars().all()
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

HISTORY_TABLE = 'extensions_migrations_history'


# ============================================================================
# Base Class
# ============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all ORM models.

    Attributes:
        AsyncAttrs: Enables async attribute loading (SQLAlchemy 2.0)
        DeclarativeBase: Base for declarative model definitions
    """
    pass


# ============================================================================
# Extension Migration History
# ============================================================================

class ExtensionMigrationHistory(Base):
    """
    One row per executed extension migration.

    A single table is shared by every extension; rows are keyed by
    (extension_identifier, name) and are never updated or deleted.
    """
    __tablename__ = HISTORY_TABLE

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Unique history record ID'
    )

    extension_identifier: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Extension identifier (e.g., 'article-hub')"
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment='Migration filename'
    )

    version: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment='Semantic version from the migration filename'
    )

    timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment='Timestamp from the migration filename'
    )

    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.current_timestamp(),
        comment='When the migration was recorded'
    )

    __table_args__ = (
        UniqueConstraint(
            'extension_identifier',
            'name',
            name='uq_extensions_migrations_history_identifier_name'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ExtensionMigrationHistory({self.extension_identifier}, "
            f"{self.name})>"
        )
