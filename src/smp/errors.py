"""Application error codes and the AppError exception."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Closed set of error codes returned in the error envelope."""

    # Auth
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    NONCE_MISMATCH = "NONCE_MISMATCH"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Profiles
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    NAME_TAKEN = "NAME_TAKEN"

    # Gates
    GATE_NOT_FOUND = "GATE_NOT_FOUND"
    GATE_INACTIVE = "GATE_INACTIVE"

    # Parties
    PARTY_NOT_FOUND = "PARTY_NOT_FOUND"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    PARTY_FULL = "PARTY_FULL"
    PARTY_STARTED = "PARTY_STARTED"
    NOT_LEADER = "NOT_LEADER"
    MEMBER_NOT_READY = "MEMBER_NOT_READY"
    MEMBER_NOT_LOCKED = "MEMBER_NOT_LOCKED"

    # Runs
    RUN_NOT_FOUND = "RUN_NOT_FOUND"
    RUN_ALREADY_FINISHED = "RUN_ALREADY_FINISHED"
    INVALID_CONTRIBUTIONS = "INVALID_CONTRIBUTIONS"
    DUPLICATE_IDEMPOTENCY_KEY = "DUPLICATE_IDEMPOTENCY_KEY"

    # Inventory
    RELIC_NOT_FOUND = "RELIC_NOT_FOUND"

    # Media
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    UPLOAD_FAILED = "UPLOAD_FAILED"

    # Chain
    CHAIN_ERROR = "CHAIN_ERROR"

    # System
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"


class AppError(Exception):
    """Business-rule or infrastructure failure mapped to an HTTP status.

    Raised from services and routers; the global handler renders it as
    ``{"ok": false, "error": {"code", "message", "details"?}}``.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Error body for the response envelope."""
        body: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body

    @classmethod
    def bad_request(cls, code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> AppError:
        return cls(code, message, 400, details)

    @classmethod
    def unauthorized(cls, code: ErrorCode = ErrorCode.UNAUTHORIZED, message: str = "Unauthorized") -> AppError:
        return cls(code, message, 401)

    @classmethod
    def forbidden(cls, code: ErrorCode = ErrorCode.FORBIDDEN, message: str = "Forbidden") -> AppError:
        return cls(code, message, 403)

    @classmethod
    def not_found(cls, code: ErrorCode, message: str) -> AppError:
        return cls(code, message, 404)

    @classmethod
    def conflict(cls, code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> AppError:
        return cls(code, message, 409, details)

    @classmethod
    def chain_error(cls, message: str, details: dict[str, Any] | None = None) -> AppError:
        return cls(ErrorCode.CHAIN_ERROR, message, 502, details)

    @classmethod
    def internal_error(cls, message: str = "Internal server error", details: dict[str, Any] | None = None) -> AppError:
        return cls(ErrorCode.INTERNAL_ERROR, message, 500, details)
