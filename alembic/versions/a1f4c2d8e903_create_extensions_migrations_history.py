"""create extensions migrations history

Revision ID: a1f4c2d8e903
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import context, op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1f4c2d8e903'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create extensions_migrations_history shared by all extensions."""
    # The runner creates the table on first use when Alembic has not run yet
    if not context.is_offline_mode() and sa.inspect(op.get_bind()).has_table(
        'extensions_migrations_history'
    ):
        return

    op.create_table(
        'extensions_migrations_history',
        sa.Column(
            'id',
            sa.Integer(),
            primary_key=True,
            autoincrement=True,
            comment='Unique history record ID'
        ),
        sa.Column(
            'extension_identifier',
            sa.String(length=255),
            nullable=False,
            comment="Extension identifier (e.g., 'article-hub')"
        ),
        sa.Column(
            'name',
            sa.String(length=255),
            nullable=False,
            comment='Migration filename'
        ),
        sa.Column(
            'version',
            sa.String(length=50),
            nullable=False,
            comment='Semantic version from the migration filename'
        ),
        sa.Column(
            'timestamp',
            sa.BigInteger(),
            nullable=False,
            comment='Timestamp from the migration filename'
        ),
        sa.Column(
            'executed_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
            comment='When the migration was recorded'
        ),
        sa.UniqueConstraint(
            'extension_identifier',
            'name',
            name='uq_extensions_migrations_history_identifier_name'
        ),
    )


def downgrade() -> None:
    """Drop extensions_migrations_history."""
    op.drop_table('extensions_migrations_history')
