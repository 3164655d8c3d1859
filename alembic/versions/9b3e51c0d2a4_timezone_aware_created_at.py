"""timezone_aware_created_at

Revision ID: 9b3e51c0d2a4
Revises: 4f2a9c1d7e38
Create Date: 2026-10-19 09:41:27.530661

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "9b3e51c0d2a4"
down_revision: Union[str, Sequence[str], None] = "4f2a9c1d7e38"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES = ("image_generations", "video_generations")


def upgrade() -> None:
    """Store created_at as timestamptz; existing values are UTC."""
    for table in TABLES:
        op.alter_column(
            table,
            "created_at",
            existing_type=sa.DateTime(),
            type_=sa.DateTime(timezone=True),
            existing_nullable=False,
            postgresql_using="created_at AT TIME ZONE 'UTC'",
        )


def downgrade() -> None:
    """Revert created_at to timestamp without time zone (UTC)."""
    for table in TABLES:
        op.alter_column(
            table,
            "created_at",
            existing_type=sa.DateTime(timezone=True),
            type_=sa.DateTime(),
            existing_nullable=False,
            postgresql_using="created_at AT TIME ZONE 'UTC'",
        )
