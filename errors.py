from typing import Any, List, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and a client-safe message."""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors


class ValidationError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class UpstreamError(AppError):
    """An external provider (OpenAI, Blogger) failed or refused the call."""
    status_code = 500


class ReconnectRequiredError(UpstreamError):
    status_code = 400

    def __init__(self, message: str = "Blogspot authorization expired. Please reconnect your account."):
        super().__init__(message)
