from alembic import op
import sqlalchemy as sa

revision = "0001_scheduled_delivery"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "workspace_credentials",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("principal_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_name", sa.String(length=255), nullable=True),
        sa.Column("secret_ciphertext", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("principal_id", "workspace_id", name="uq_credential_principal_workspace"),
    )

    op.create_table(
        "scheduled_messages",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("principal_id", sa.String(length=64), nullable=False),
        sa.Column("workspace_id", sa.String(length=64), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("channel_name", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        # Slack's text limit; must equal Settings.message_max_chars. Raising the
        # setting needs a new migration that replaces this constraint.
        sa.CheckConstraint("char_length(body) <= 4000", name="ck_scheduled_messages_body_len"),
        sa.CheckConstraint(
            "status IN ('pending', 'sent', 'failed', 'cancelled')", name="ck_scheduled_messages_status"
        ),
    )
    op.create_index("ix_scheduled_messages_principal_created", "scheduled_messages", ["principal_id", "created_at"])
    op.create_index("ix_scheduled_messages_due_status", "scheduled_messages", ["due_at", "status"])
    op.create_index("ix_scheduled_messages_workspace_status", "scheduled_messages", ["workspace_id", "status"])

def downgrade():
    op.drop_index("ix_scheduled_messages_workspace_status", table_name="scheduled_messages")
    op.drop_index("ix_scheduled_messages_due_status", table_name="scheduled_messages")
    op.drop_index("ix_scheduled_messages_principal_created", table_name="scheduled_messages")
    op.drop_table("scheduled_messages")
    op.drop_table("workspace_credentials")
