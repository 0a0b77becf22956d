"""
Error taxonomy for the account and session services.

Services raise these; the HTTP layer turns each one into the
``{"status": false, "error": ..., "code": ...}`` envelope with the
matching status code.
"""


class AppError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class DuplicateUsernameError(ConflictError):
    default_message = "User already exists!"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class AccountNotFoundError(NotFoundError):
    default_message = "User not found!"


class AuthError(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Invalid credentials"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(message, headers or {"WWW-Authenticate": "Bearer"})


class InvalidTokenError(AppError):
    status_code = 422
    code = "invalid_token"
    default_message = "Invalid or expired token"


class MalformedTokenError(AppError):
    status_code = 400
    code = "malformed_token"
    default_message = "Malformed bearer token"


class InternalError(AppError):
    pass
