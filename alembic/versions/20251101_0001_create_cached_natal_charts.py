# mypy: ignore-errors
"""
Migration Alembic pour créer la table cached_natal_charts.

Cette migration crée la table du cache de thèmes natals: un enregistrement encodé (JSON
versionné) par sujet et système de maisons.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20251101_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Crée la table cached_natal_charts."""
    op.create_table(
        "cached_natal_charts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("payload", sa.LargeBinary(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Supprime la table cached_natal_charts."""
    op.drop_table("cached_natal_charts")
