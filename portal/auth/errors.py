from __future__ import annotations


class AuthError(Exception):
    """Base class for errors that map onto an HTTP status at the edge."""

    status_code: int = 500
    public_message: str = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class MissingFieldsError(AuthError):
    status_code = 400
    public_message = "Username and password are required"


class InvalidCredentialsError(AuthError):
    status_code = 401
    public_message = "Invalid credentials"


class SigningError(AuthError):
    status_code = 500
    public_message = "Failed to create session"


class VerificationError(AuthError):
    """
    Token failed verification (bad signature, expired, or missing claims).

    Never surfaced to clients: session checks fold it into "anonymous".
    """

    status_code = 401
    public_message = "Invalid session"


class ConfigError(Exception):
    """Required auth configuration is missing or empty."""
