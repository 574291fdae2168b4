class NotFoundError(ValueError):
    """Raised when a referenced user, workout, set or template does not exist."""

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class ForbiddenError(Exception):
    """Raised when the acting user may not access a resource."""


class AuthenticationError(Exception):
    """Raised for missing, invalid or expired credentials."""
