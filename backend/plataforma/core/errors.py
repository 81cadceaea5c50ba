"""Error Hierarchy - typed, categorized exceptions for every pipeline and lifecycle failure.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Request-local errors (400-level) never propagate past the request
    - Infrastructure errors during startup are logged by the lifecycle, never fatal
    - to_response() produces the REST envelope; no internal details in messages

Design Decisions:
    - Single hierarchy with PlataformaError base: one FastAPI handler catches all
    - SecurityRejection carries a plain-text body: bots and scanners get no JSON envelope
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    SECURITY = "security"
    DATABASE = "database"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Context attached to an error for logs."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: str | None = None
    client_ip: str | None = None
    debug_info: dict[str, Any] | None = None


class PlataformaError(Exception):
    """Base exception for all platform errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Request Errors (400-level) ─────────────────────────────────

class MalformedBodyError(PlataformaError):
    """Structured (JSON) request body could not be parsed."""
    def __init__(self, detail: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed JSON body: {detail}",
            "MALFORMED_BODY", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )


class SecurityRejection(PlataformaError):
    """Request shed by a security filter (user-agent, path or rate limit)."""
    def __init__(
        self,
        reason: str,
        body: str,
        http_status: int = 403,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            body, "SECURITY_REJECTION", ErrorCategory.SECURITY,
            ErrorSeverity.INFO, context, http_status,
        )
        self.reason = reason
        self.body = body


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(PlataformaError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class PoolExhaustedError(PlataformaError):
    """No connection could be leased within the connect timeout."""
    def __init__(self, timeout_seconds: float, context: ErrorContext | None = None):
        super().__init__(
            f"No database connection available after {timeout_seconds}s",
            "POOL_EXHAUSTED", ErrorCategory.DATABASE,
            ErrorSeverity.ERROR, context, 503,
        )
        self.timeout_seconds = timeout_seconds


class OperationTimeoutError(PlataformaError):
    """A bounded operation did not finish inside its time budget."""
    def __init__(
        self,
        operation: str,
        timeout_seconds: float,
        code: str = "OPERATION_TIMEOUT",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{operation} did not complete within {timeout_seconds}s",
            code, ErrorCategory.TIMEOUT,
            ErrorSeverity.WARNING, context, 504,
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class AuthTimeoutError(OperationTimeoutError):
    """Database authentication did not resolve in time."""
    def __init__(self, timeout_seconds: float, context: ErrorContext | None = None):
        super().__init__(
            "schema.authenticate", timeout_seconds, "AUTH_TIMEOUT", context,
        )


class SchemaInitError(PlataformaError):
    """Required tables could not be created."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Schema initialization failed: {message}",
            "SCHEMA_INIT_FAILED", ErrorCategory.DATABASE,
            ErrorSeverity.WARNING, context, 503,
        )


class EncryptionFailureError(PlataformaError):
    """Outgoing response could not be encrypted; response is withheld."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Response encryption failed: {message}",
            "ENCRYPTION_FAILURE", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )

    def to_response(self) -> dict:
        # Never echo the underlying failure to the client
        return {
            "error": {
                "code": self.code,
                "message": "An unexpected error occurred",
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }
