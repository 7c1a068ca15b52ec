"""Exceptions."""

from typing import Optional


class ConfigurationError(RuntimeError):
    """A required setting is missing or has an unknown value."""


class ValidationError(ValueError):
    """Input from the caller is missing or malformed."""


class UnknownSession(RuntimeError):
    """No session is bound to the provided session handle."""


class UpstreamAuthError(RuntimeError):
    """The identity provider could not authenticate the user."""

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        super(UpstreamAuthError, self).__init__(message or reason)
        self.reason = reason


class TokenExchangeFailed(UpstreamAuthError):
    """The identity provider rejected the authorization code."""

    def __init__(self, message: Optional[str] = None) -> None:
        super(TokenExchangeFailed, self).__init__('token-exchange', message)


class IdentityProviderUnavailable(TokenExchangeFailed):
    """The identity provider could not be reached, or failed with a 5xx."""


class NotAuthorized(RuntimeError):
    """The caller does not hold the role required for the operation."""


class AccessDenied(RuntimeError):
    """The login or session is refused; ``reason`` says why."""

    def __init__(self, reason: str) -> None:
        super(AccessDenied, self).__init__(reason)
        self.reason = reason


class InternalError(RuntimeError):
    """The store failed in an unexpected way."""
