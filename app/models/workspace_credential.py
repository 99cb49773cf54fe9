from datetime import datetime

from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from app.core.ids import gen_id
from app.models.base import Base, AuditMixin


class WorkspaceCredential(AuditMixin, Base):
    __tablename__ = "workspace_credentials"
    __table_args__ = (
        UniqueConstraint("principal_id", "workspace_id", name="uq_credential_principal_workspace"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("crd"))

    # Slack user id + team id
    principal_id: Mapped[str] = mapped_column(String(64), nullable=False)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)
    workspace_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Encrypted JSON blob: {"access_token": ..., "refresh_token": ...} (never returned by API)
    secret_ciphertext: Mapped[str] = mapped_column(Text, nullable=False)

    # NULL = provider issued a non-expiring token
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
