from datetime import datetime

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from app.core.ids import gen_id
from app.models.base import Base, AuditMixin


STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

STATUSES = (STATUS_PENDING, STATUS_SENT, STATUS_FAILED, STATUS_CANCELLED)
TERMINAL_STATUSES = frozenset({STATUS_SENT, STATUS_FAILED, STATUS_CANCELLED})


class ScheduledMessage(AuditMixin, Base):
    __tablename__ = "scheduled_messages"
    __table_args__ = (
        Index("ix_scheduled_messages_principal_created", "principal_id", "created_at"),
        Index("ix_scheduled_messages_due_status", "due_at", "status"),
        Index("ix_scheduled_messages_workspace_status", "workspace_id", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("msg"))

    principal_id: Mapped[str] = mapped_column(String(64), nullable=False)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)

    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    channel_name: Mapped[str] = mapped_column(String(255), nullable=False)  # snapshot at creation

    body: Mapped[str] = mapped_column(Text, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=STATUS_PENDING)  # pending/sent/failed/cancelled
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
