"""Create the videos table.

One row per YouTube video discovered by the ingestion loop.

Indexes:
- uq_videos_external_id     unique, enforces one row per YouTube video ID
- idx_videos_published_at   default listing order and watermark lookup
- idx_videos_channel_title_published_at  ``sort=channel`` listing
- idx_videos_origin_query_published_at   newest videos per topic

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "videos",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("channel_title", sa.String(255), nullable=False, server_default=""),
        sa.Column("channel_id", sa.String(64), nullable=False, server_default=""),
        sa.Column("origin_query", sa.String(255), nullable=False, server_default=""),
        sa.Column(
            "thumbnails",
            sa.JSON().with_variant(JSONB(), "postgresql"),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("uq_videos_external_id", "videos", ["external_id"], unique=True)
    op.create_index("idx_videos_published_at", "videos", ["published_at"])
    op.create_index(
        "idx_videos_channel_title_published_at",
        "videos",
        ["channel_title", sa.text("published_at DESC")],
    )
    op.create_index(
        "idx_videos_origin_query_published_at",
        "videos",
        ["origin_query", sa.text("published_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_videos_origin_query_published_at", table_name="videos")
    op.drop_index("idx_videos_channel_title_published_at", table_name="videos")
    op.drop_index("idx_videos_published_at", table_name="videos")
    op.drop_index("uq_videos_external_id", table_name="videos")
    op.drop_table("videos")
