from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    code = "error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "not_found"


class ForbiddenError(AppError):
    """The caller is authenticated but not allowed to touch the resource."""

    code = "permission_denied"


class ConflictError(AppError):
    code = "conflict"


class ValidationError(AppError):
    code = "invalid_data"


class AuthRequiredError(AppError):
    """Frame arrived before ``auth`` or named an unknown user."""

    code = "auth_required"


class PersistenceError(AppError):
    """A collaborator store failed."""

    code = "persistence_failure"


class CallBusyError(ConflictError):
    code = "call_busy"


class TargetUnreachableError(AppError):
    code = "target_unreachable"


class StaleSignalError(AppError):
    """Signaling frame for an ended or unknown call. Expected under races."""

    code = "stale_signal"
