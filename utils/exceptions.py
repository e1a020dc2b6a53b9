"""
Auth error taxonomy.

Every error carries the HTTP status and the machine-readable `error` code the
API error handler puts in the response envelope.
"""
from __future__ import annotations


class AuthError(Exception):
    status = 400
    error = "BAD_REQUEST"
    message = "Bad request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class DuplicateEmail(AuthError):
    status = 409
    error = "DUPLICATE_EMAIL"
    message = "Email already registered"


class InvalidCredentials(AuthError):
    # One message for unknown email, wrong password and deactivated account
    status = 401
    error = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class InvalidToken(AuthError):
    status = 401
    error = "INVALID_TOKEN"
    message = "Invalid or expired token"


class PossibleTokenReuse(AuthError):
    status = 401
    error = "TOKEN_REUSE"
    message = "Refresh token invalid (possible reuse); all sessions revoked"


class Unauthorized(AuthError):
    status = 401
    error = "UNAUTHORIZED"
    message = "Unauthorized"


class Forbidden(AuthError):
    status = 403
    error = "FORBIDDEN"
    message = "Forbidden"


class NotFound(AuthError):
    status = 404
    error = "NOT_FOUND"
    message = "Resource not found"
