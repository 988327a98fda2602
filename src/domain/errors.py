"""
Error taxonomy shared by the domain and service layers.

Every error carries a machine-readable ``kind`` and a human-readable
``detail``; the API layer maps each class to an HTTP status code.
"""

from __future__ import annotations

from typing import Any


class DispatchError(Exception):
    kind = "dispatch_error"

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail, **self.extra}


class ValidationError(DispatchError):
    """Missing or malformed input; rejected before any persistence."""

    kind = "validation_error"


class NotFoundError(DispatchError):
    kind = "not_found"


class StateConflictError(DispatchError):
    """Requested transition is illegal for the booking's current state."""

    kind = "state_conflict"


class OtpInvalidError(DispatchError):
    kind = "otp_invalid"

    def __init__(self, detail: str = "Invalid OTP"):
        super().__init__(detail, success=False, isExpired=False)


class OtpExpiredError(DispatchError):
    kind = "otp_expired"

    def __init__(self, detail: str = "OTP has expired. Please generate a new one."):
        super().__init__(detail, success=False, isExpired=True)


class DuplicateError(DispatchError):
    kind = "duplicate"


class PermissionDeniedError(DispatchError):
    kind = "permission_denied"


class UnauthenticatedError(DispatchError):
    """The caller could not be resolved to a known user."""

    kind = "unauthenticated"
