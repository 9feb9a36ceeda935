"""Data access exception hierarchy.

Every error raised by the database package derives from
SupabaseClientError, so callers can catch any backend failure with a
single except clause.
"""


class SupabaseClientError(Exception):
    """Raised when Supabase client construction or operations fail.

    Attributes:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        """Initialize SupabaseClientError with a message.

        Args:
            message: Description of the error that occurred.
        """
        self.message = message
        super().__init__(self.message)


class GatewayError(SupabaseClientError):
    """Raised when a remote data gateway operation fails.

    Example:
        >>> raise GatewayError("Failed to list locations: timeout")
    """


class AuthenticationRequiredError(GatewayError):
    """Raised when an operation needs a signed-in user and there is none.

    This is fatal to the requested operation and is never retried.

    Example:
        >>> raise AuthenticationRequiredError("User not authenticated")
    """
