class AuthError(Exception):
    """Base authentication/authorization error."""


class InvalidCredentialsError(AuthError):
    """Raised for an unknown, inactive, or wrong-password login."""


class EmailInUseError(AuthError):
    """Raised when signup targets an email that already has an account."""


class InvalidRefreshTokenError(AuthError):
    """Raised when a refresh token fails verification."""


class UnauthenticatedError(AuthError):
    """Raised when a guarded route receives no usable access token."""


class ForbiddenError(AuthError):
    """Raised when the caller's role is not allowed on a route."""


class InvalidTokenError(Exception):
    """Raised when a token is malformed, tampered with, or expired."""


class ExternalDispatchError(Exception):
    """Raised when the external ingestion worker cannot be notified."""
