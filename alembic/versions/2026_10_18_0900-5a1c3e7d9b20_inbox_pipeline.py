"""inbox pipeline tables

Revision ID: 5a1c3e7d9b20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5a1c3e7d9b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Upgrade schema: channels, inboxes, contacts, conversations, messages."""
    op.create_table(
        "channels",
        _id_column(),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("channel_type", sa.String(length=32), nullable=False),
        sa.Column(
            "setup_state",
            sa.String(length=32),
            nullable=False,
            server_default="active",
        ),
        sa.Column("instagram_id", sa.String(length=255), nullable=True),
        sa.Column("page_id", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("website_token", sa.String(length=255), nullable=True),
        sa.Column("webhook_url", sa.String(length=2048), nullable=True),
        sa.Column("provider", sa.String(length=32), nullable=True),
        sa.Column(
            "provider_config",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("encrypted_credentials", sa.LargeBinary(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("website_token"),
    )
    op.create_index("ix_channels_account_id", "channels", ["account_id"])
    op.create_index(
        "ix_channels_type_instagram_id", "channels", ["channel_type", "instagram_id"]
    )
    op.create_index("ix_channels_type_page_id", "channels", ["channel_type", "page_id"])
    op.create_index(
        "ix_channels_type_phone_number", "channels", ["channel_type", "phone_number"]
    )

    op.create_table(
        "inboxes",
        _id_column(),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("channel_id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["channel_id"], ["channels.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("channel_id"),
    )
    op.create_index("ix_inboxes_account_id", "inboxes", ["account_id"])

    op.create_table(
        "contacts",
        _id_column(),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("identifier_facebook", sa.String(length=255), nullable=True),
        sa.Column("identifier_instagram", sa.String(length=255), nullable=True),
        sa.Column("avatar_url", sa.String(length=2048), nullable=True),
        sa.Column(
            "additional_attributes",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "account_id",
            "identifier_instagram",
            name="uq_contacts_account_identifier_instagram",
        ),
        sa.UniqueConstraint(
            "account_id",
            "identifier_facebook",
            name="uq_contacts_account_identifier_facebook",
        ),
    )
    op.create_index("ix_contacts_account_id", "contacts", ["account_id"])
    op.create_index("ix_contacts_email", "contacts", ["email"])
    op.create_index("ix_contacts_phone_number", "contacts", ["phone_number"])

    op.create_table(
        "contact_inboxes",
        _id_column(),
        sa.Column("contact_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("inbox_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inbox_id"], ["inboxes.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "inbox_id", "source_id", name="uq_contact_inboxes_inbox_source"
        ),
    )
    op.create_index(
        "ix_contact_inboxes_contact_id", "contact_inboxes", ["contact_id"]
    )

    op.create_table(
        "conversations",
        _id_column(),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("inbox_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("contact_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("contact_inbox_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("display_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "last_activity_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("contact_last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("agent_last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "additional_attributes",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["inbox_id"], ["inboxes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["contact_inbox_id"], ["contact_inboxes.id"], ondelete="SET NULL"
        ),
        sa.UniqueConstraint(
            "account_id", "display_id", name="uq_conversations_account_display_id"
        ),
    )
    op.create_index("ix_conversations_account_id", "conversations", ["account_id"])
    op.create_index(
        "ix_conversations_contact_inbox", "conversations", ["contact_id", "inbox_id"]
    )

    op.create_table(
        "messages",
        _id_column(),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("inbox_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sender_contact_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("message_type", sa.Integer(), nullable=False),
        sa.Column(
            "content_type", sa.String(length=32), nullable=False, server_default="text"
        ),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("source_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "private", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("external_error", sa.Text(), nullable=True),
        sa.Column(
            "content_attributes",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["inbox_id"], ["inboxes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["sender_contact_id"], ["contacts.id"], ondelete="SET NULL"
        ),
        sa.UniqueConstraint("inbox_id", "source_id", name="uq_messages_inbox_source"),
    )
    op.create_index("ix_messages_account_id", "messages", ["account_id"])
    op.create_index(
        "ix_messages_conversation_created",
        "messages",
        ["conversation_id", "created_at"],
    )

    op.create_table(
        "attachments",
        _id_column(),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("message_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("file_type", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("external_url", sa.String(length=4096), nullable=True),
        sa.Column("file_path", sa.String(length=1024), nullable=True),
        sa.Column("extension", sa.String(length=16), nullable=True),
        sa.Column("coordinates_lat", sa.Float(), nullable=True),
        sa.Column("coordinates_long", sa.Float(), nullable=True),
        sa.Column("fallback_title", sa.String(length=1024), nullable=True),
        sa.Column(
            "meta",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_attachments_account_id", "attachments", ["account_id"])
    op.create_index("ix_attachments_message_id", "attachments", ["message_id"])

    op.create_table(
        "dead_letter_jobs",
        _id_column(),
        sa.Column("task_name", sa.String(length=255), nullable=False),
        sa.Column("queue", sa.String(length=32), nullable=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "payload",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "failed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_dead_letter_jobs_task_name", "dead_letter_jobs", ["task_name"])
    op.create_index(
        "ix_dead_letter_jobs_account_id", "dead_letter_jobs", ["account_id"]
    )


def downgrade() -> None:
    """Downgrade schema: drop the inbox pipeline tables."""
    op.drop_table("dead_letter_jobs")
    op.drop_table("attachments")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("contact_inboxes")
    op.drop_table("contacts")
    op.drop_table("inboxes")
    op.drop_table("channels")
