"""Error hierarchy for the auth service.

Services raise these; main.api_error_handler renders them as
{"error": {"code", "message", "details"}} with the class status code.
The credential routes intercept FieldValidationError first and turn it
into a 200 payload with an errors list.
"""


class APIError(Exception):
    """Base class: a machine-readable code, a message and an HTTP status.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class FieldValidationError(ValidationError):
    """User-correctable failure tied to one input field.

    Credential flows raise this for taken usernames, wrong passwords,
    expired or mismatched one-time codes. Auth routes catch it and return
    ``{"errors": [{"field", "message"}]}`` inside a normal 200 payload;
    anywhere else it falls through to the generic 400 envelope.

    Attributes:
        field: Name of the offending input field (e.g., "token").
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(
            message=message,
            details=[{"field": field, "message": message}],
        )
        self.field = field


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid auth credentials provided. The message stays generic
    so callers cannot tell a bad signature from a revoked session.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class InfrastructureError(APIError):
    """Backing service unreachable (503).

    Raised when the one-time code cache cannot be reached. Not recoverable
    inside a request: the operation fails and the client may retry later.
    """

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(
            code="SERVICE_UNAVAILABLE",
            message=message,
            status_code=503,
        )


