"""Create client_messages, sheet_fields and api_keys

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:31.418204

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]
from sync_leads.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b10"
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "client_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("message_id", sa.String(), nullable=False, unique=True),
        sa.Column("counterparty", sa.String(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=True),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("extraction", JSON, nullable=True),
        sa.Column("property", JSON, nullable=True),
        sa.Column("property_id", sa.String(), nullable=True),
        sa.Column("parent_id", sa.String(), nullable=True),
        sa.Column("sentiment", sa.String(), nullable=True),
        sa.Column("intent", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("daily_sentiment", JSON, nullable=True),
        sa.Column("latest_sentiment", sa.String(), nullable=True),
        sa.Column("latest_status", sa.String(), nullable=True),
        sa.Column("sheet_synced", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "needs_sheet_sync", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("last_sheet_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sheet_row_index", sa.Integer(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_client_messages_counterparty", "client_messages", ["counterparty"], schema=SCHEMA
    )
    op.create_index("ix_client_messages_processed", "client_messages", ["processed"], schema=SCHEMA)
    op.create_index(
        "ix_client_messages_counterparty_timestamp",
        "client_messages",
        ["counterparty", "timestamp"],
        schema=SCHEMA,
    )
    op.create_index(
        "ix_client_messages_property_parent",
        "client_messages",
        ["property_id", "parent_id"],
        schema=SCHEMA,
    )

    op.create_table(
        "sheet_fields",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("field_name", sa.String(), nullable=False, unique=True),
        sa.Column("field_type", sa.String(), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("enum_values", sa.Text(), nullable=True),
        schema=SCHEMA,
    )

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("openai_key", sa.String(), nullable=True),
        sa.Column("google_client_email", sa.String(), nullable=True),
        sa.Column("google_private_key", sa.Text(), nullable=True),
        sa.Column("google_sheet_id", sa.String(), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("api_keys", schema=SCHEMA)
    op.drop_table("sheet_fields", schema=SCHEMA)
    op.drop_index("ix_client_messages_property_parent", "client_messages", schema=SCHEMA)
    op.drop_index("ix_client_messages_counterparty_timestamp", "client_messages", schema=SCHEMA)
    op.drop_index("ix_client_messages_processed", "client_messages", schema=SCHEMA)
    op.drop_index("ix_client_messages_counterparty", "client_messages", schema=SCHEMA)
    op.drop_table("client_messages", schema=SCHEMA)
