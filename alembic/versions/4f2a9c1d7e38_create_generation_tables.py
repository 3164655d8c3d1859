"""create_generation_tables

Revision ID: 4f2a9c1d7e38
Revises:
Create Date: 2026-10-12 14:03:51.208114

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f2a9c1d7e38"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create image_generations and video_generations tables."""
    op.create_table(
        "image_generations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("prompt", sa.String(), nullable=False),
        sa.Column("model", sa.String(length=100), nullable=False),
        sa.Column("image_url", sa.String(), nullable=False),
        sa.Column("resolution", sa.String(length=20), nullable=False),
        # provider job id, enhanced prompt, aspect ratio, provider URLs
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_image_generations_user_id", "image_generations", ["user_id"])
    op.create_index("ix_image_generations_created_at", "image_generations", ["created_at"])

    op.create_table(
        "video_generations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("prompt", sa.String(), nullable=False),
        sa.Column("video_url", sa.String(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_video_generations_user_id", "video_generations", ["user_id"])
    op.create_index("ix_video_generations_created_at", "video_generations", ["created_at"])


def downgrade() -> None:
    """Drop generation tables."""
    op.drop_index("ix_video_generations_created_at", table_name="video_generations")
    op.drop_index("ix_video_generations_user_id", table_name="video_generations")
    op.drop_table("video_generations")
    op.drop_index("ix_image_generations_created_at", table_name="image_generations")
    op.drop_index("ix_image_generations_user_id", table_name="image_generations")
    op.drop_table("image_generations")
