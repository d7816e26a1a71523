"""create board tables

Revision ID: 3f7c2a9d41b0
Revises:
Create Date: 2026-10-19 10:12:44.118203

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "3f7c2a9d41b0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create boards, columns, cards and insight tables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # -- boards --
    op.create_table(
        "boards",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # -- board_columns --
    op.create_table(
        "board_columns",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("board_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_board_columns_board_id", "board_columns", ["board_id"])

    # -- cards --
    # Unsized vector: dimensionality follows the configured embedding provider
    op.create_table(
        "cards",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("board_id", sa.Uuid(), nullable=False),
        sa.Column("column_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("embedding", Vector(), nullable=True),
        sa.Column("embedding_hash", sa.String(64), nullable=True),
        sa.Column("cluster_label", sa.String(32), nullable=True),
        sa.Column("mood", sa.String(32), nullable=True),
        sa.Column(
            "suggestion_status",
            sa.String(16),
            nullable=False,
            server_default="idle",
        ),
        sa.Column("suggestion_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["column_id"], ["board_columns.id"], ondelete="SET NULL"
        ),
    )
    op.create_index("ix_cards_board_id", "cards", ["board_id"])

    # -- suggestions --
    op.create_table(
        "suggestions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("board_id", sa.Uuid(), nullable=False),
        sa.Column("card_id", sa.Uuid(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "accepted", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_suggestions_board_id", "suggestions", ["board_id"])
    op.create_index("ix_suggestions_card_id", "suggestions", ["card_id"])

    # -- clusters --
    op.create_table(
        "clusters",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("board_id", sa.Uuid(), nullable=False),
        sa.Column("cluster_index", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(32), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("color", sa.String(16), nullable=False),
        sa.Column("card_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "centroid",
            JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "board_id", "cluster_index", name="uq_clusters_board_index"
        ),
    )
    op.create_index("ix_clusters_board_id", "clusters", ["board_id"])

    # -- summaries --
    op.create_table(
        "summaries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("board_id", sa.Uuid(), nullable=False),
        sa.Column(
            "themes", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column(
            "top_ideas", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column(
            "next_steps", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["boards.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_summaries_board_id", "summaries", ["board_id"])
    op.create_index("ix_summaries_created_at", "summaries", ["created_at"])


def downgrade() -> None:
    """Drop all board tables."""
    op.drop_index("ix_summaries_created_at", table_name="summaries")
    op.drop_index("ix_summaries_board_id", table_name="summaries")
    op.drop_table("summaries")
    op.drop_index("ix_clusters_board_id", table_name="clusters")
    op.drop_table("clusters")
    op.drop_index("ix_suggestions_card_id", table_name="suggestions")
    op.drop_index("ix_suggestions_board_id", table_name="suggestions")
    op.drop_table("suggestions")
    op.drop_index("ix_cards_board_id", table_name="cards")
    op.drop_table("cards")
    op.drop_index("ix_board_columns_board_id", table_name="board_columns")
    op.drop_table("board_columns")
    op.drop_table("boards")
