from abc import ABC


class UserError(ABC, Exception):
    """Base class for caller-facing errors.

    All errors that inherit from UserError will have their messages
    displayed to the caller. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when no user matches a lookup."""

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when input or seed data fails validation."""


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    """Raised when a password does not match the stored digest."""


class TokenNotFoundError(AuthenticationError):
    """Raised when a token is unknown, revoked or already rotated."""

    def __init__(self, message: str = "Invalid session token") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    """Raised when a token is past its expiry."""

    def __init__(self, message: str = "Session token expired") -> None:
        super().__init__(message)


class UserNotFoundError(AuthenticationError):
    """Raised when a live session points to a user that no longer exists."""

    def __init__(self, message: str = "Session user no longer exists") -> None:
        super().__init__(message)


class TokenCollisionError(Exception):
    """Raised when a freshly minted token already exists in the store.

    Not a UserError: a collision means the random source is broken and must
    reach operators as an internal failure.
    """
