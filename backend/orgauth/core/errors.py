from __future__ import annotations


class AuthError(Exception):
    """Base class for auth-core failures mapped to HTTP responses.

    ``message`` is what the caller sees; ``error_code`` is only logged, so
    failures that must look identical to the client (wrong OTP vs. no OTP)
    can still be told apart in telemetry.
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code


class InputValidationError(AuthError):
    status_code = 400
    error_code = "validation_error"


class InvalidCredentialsError(AuthError):
    status_code = 401
    error_code = "invalid_credentials"


class OtpInvalidError(InvalidCredentialsError):
    error_code = "otp_invalid"


class OtpNotFoundError(InvalidCredentialsError):
    error_code = "otp_not_found"


class InvalidAssertionError(InvalidCredentialsError):
    error_code = "invalid_assertion"


class MissingTokenError(InvalidCredentialsError):
    error_code = "missing_token"


class TokenInvalidError(InvalidCredentialsError):
    error_code = "token_invalid"


class TokenExpiredError(TokenInvalidError):
    error_code = "token_expired"


class ForbiddenError(AuthError):
    status_code = 403
    error_code = "forbidden"


class InactiveAccountError(ForbiddenError):
    error_code = "inactive_account"


class InactiveTenantError(ForbiddenError):
    error_code = "inactive_tenant"


class NotFoundError(AuthError):
    status_code = 404
    error_code = "not_found"


class LockoutError(AuthError):
    status_code = 429
    error_code = "too_many_attempts"


class UnexpectedError(AuthError):
    status_code = 500
    error_code = "server_error"
