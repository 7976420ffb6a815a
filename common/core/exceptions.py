from typing import Any, Dict


class AppException(Exception):
    """Base application exception."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or "Application error"

    def to_response_body(self) -> Dict[str, Any]:
        """Body returned to clients by the app-level exception handler."""
        return {"detail": self.message}


class NotFoundError(AppException):
    """Resource not found exception."""

    status_code = 404


class ConflictError(AppException):
    """Request conflicts with the current state of a resource."""

    status_code = 409


class ValidationError(AppException):
    """Validation error exception."""

    status_code = 400
