from app.models.base import Base  # noqa: F401

from app.models.workspace_credential import WorkspaceCredential  # noqa: F401
from app.models.scheduled_message import ScheduledMessage  # noqa: F401
