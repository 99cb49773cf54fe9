from __future__ import annotations


class DeliveryEngineError(Exception):
    """Base class for errors raised by the scheduled delivery engine."""


class ValidationError(DeliveryEngineError):
    """Bad intake input. Nothing is persisted."""


class NotFoundError(DeliveryEngineError):
    """Unknown id, or a record owned by another principal."""


class AuthError(DeliveryEngineError):
    """No usable Slack credential; delivery must not be attempted."""


class PrincipalNotAuthorized(AuthError):
    def __init__(self, principal_id: str, workspace_id: str | None = None):
        self.principal_id = principal_id
        self.workspace_id = workspace_id
        where = f" in workspace {workspace_id}" if workspace_id else ""
        super().__init__(f"No Slack credential for principal {principal_id}{where}")


class CredentialExpiredNoRefresh(AuthError):
    def __init__(self, principal_id: str):
        self.principal_id = principal_id
        super().__init__("Token expired and no refresh token available")


class ExternalApiError(DeliveryEngineError):
    """Slack rejected the call or was unreachable."""

    def __init__(self, message: str, *, error_code: str | None = None, status_code: int | None = None):
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)
