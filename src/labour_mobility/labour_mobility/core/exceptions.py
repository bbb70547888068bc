class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when the caller cannot be identified from the bearer token."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a record or appeal does not exist for the caller."""


class ConflictError(DomainError):
    """Raised when an action would break a uniqueness rule."""


class StateError(DomainError):
    """Raised when a transition is not valid for the current appeal status."""
