"""Create messages table

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sender", sa.String(20), nullable=False),
        sa.Column("recipient", sa.String(20), nullable=False),
        sa.Column("text", sa.String(1600), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="PENDING"),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('PENDING', 'SENT', 'FAILED')", name="chk_status"),
        sa.CheckConstraint("sender ~ '^\\+?[1-9][0-9]{1,14}$'", name="chk_sender_format"),
        sa.CheckConstraint("recipient ~ '^\\+?[1-9][0-9]{1,14}$'", name="chk_recipient_format"),
        sa.CheckConstraint("length(text) >= 1 AND length(text) <= 1600", name="chk_text_length"),
    )
    op.create_index("ix_messages_sender", "messages", ["sender"])
    op.create_index("ix_messages_recipient", "messages", ["recipient"])
    op.create_index("ix_messages_status", "messages", ["status"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])
    op.create_index("ix_messages_updated_at", "messages", ["updated_at"])
    op.create_index("idx_messages_user_created", "messages", ["sender", sa.text("created_at DESC")])
    op.create_index("idx_messages_user_created_2", "messages", ["recipient", sa.text("created_at DESC")])
    op.create_index("idx_messages_status_user", "messages", ["status", "sender"])
    op.create_index("idx_messages_status_user_2", "messages", ["status", "recipient"])


def downgrade() -> None:
    op.drop_index("idx_messages_status_user_2", table_name="messages")
    op.drop_index("idx_messages_status_user", table_name="messages")
    op.drop_index("idx_messages_user_created_2", table_name="messages")
    op.drop_index("idx_messages_user_created", table_name="messages")
    op.drop_index("ix_messages_updated_at", table_name="messages")
    op.drop_index("ix_messages_created_at", table_name="messages")
    op.drop_index("ix_messages_status", table_name="messages")
    op.drop_index("ix_messages_recipient", table_name="messages")
    op.drop_index("ix_messages_sender", table_name="messages")
    op.drop_table("messages")
