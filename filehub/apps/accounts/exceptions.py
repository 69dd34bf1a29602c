"""Exceptions for accounts app."""


class AuthenticationError(Exception):
    """Raised when credentials cannot be verified."""


class MalformedAuthorizationError(AuthenticationError):
    """Raised when an Authorization header cannot be parsed."""


class UserExistsError(Exception):
    """Raised when creating a user whose username is already taken."""

    def __init__(self, username: str) -> None:
        """Initialize UserExistsError.

        Args:
            username: The username that is already taken.
        """
        self.username = username
        super().__init__(f'User already exists: {username}')


class SetupCompletedError(Exception):
    """Raised when first-user setup runs after a user already exists."""
