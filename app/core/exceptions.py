from typing import Any, Optional


class AppError(Exception):
    """Base class for errors surfaced to API and WebSocket callers."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_SERVER_ERROR",
        status_code: int = 500,
        detail: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail


class NotFoundError(AppError):
    """Missing session, optimization or question set."""

    def __init__(self, message: str = "Resource not found", detail: Optional[Any] = None) -> None:
        super().__init__(message=message, code="NOT_FOUND", status_code=404, detail=detail)


class ForbiddenError(AppError):
    """Ownership mismatch, wrong session status or exhausted quota."""

    def __init__(self, message: str = "Access denied", detail: Optional[Any] = None) -> None:
        super().__init__(message=message, code="FORBIDDEN", status_code=403, detail=detail)


class ValidationError(AppError):
    def __init__(self, message: str = "Invalid request", detail: Optional[Any] = None) -> None:
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=400, detail=detail)


class UpstreamError(AppError):
    """An AI or voice provider call failed and no fallback applies."""

    def __init__(self, message: str = "Upstream provider failed", detail: Optional[Any] = None) -> None:
        super().__init__(message=message, code="UPSTREAM_ERROR", status_code=502, detail=detail)


class RateLimitError(AppError):
    def __init__(self, message: str = "Too many requests", detail: Optional[Any] = None) -> None:
        super().__init__(message=message, code="RATE_LIMITED", status_code=429, detail=detail)
