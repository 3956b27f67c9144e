"""Domain error types."""


class DomainError(Exception):
    """Base domain error."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed request (missing fields, empty recipient set)."""
    pass


class AuthorizationError(DomainError):
    """Authorization error."""
    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class ConfigurationError(DomainError):
    """Provider credentials missing or unusable. Dispatch fails fast, no partial work."""
    pass


class ProviderAuthError(DomainError):
    """The provider token endpoint rejected the signed assertion."""
    pass
