"""Custom exception classes for the application."""


class BaseAppException(Exception):
    """Base exception class for all application exceptions."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TransportError(BaseAppException):
    """Raised on network, timeout or non-2xx failures talking to either API."""
    pass


class WooCommerceAPIError(TransportError):
    """Raised when the WooCommerce REST API encounters an error."""
    pass


class LocalAPIError(TransportError):
    """Raised when the local point-of-sale API encounters an error."""
    pass


class AuthenticationError(TransportError):
    """Raised when the catalog rejects the configured credentials."""
    pass


class RateLimitError(TransportError):
    """Raised when API rate limit is exceeded."""
    pass


class SKUNotFoundError(BaseAppException):
    """Raised when a SKU is not found in the target system."""
    pass


class UpdateFailure(BaseAppException):
    """Raised when a remote stock write is rejected."""
    pass


class ConnectivityError(BaseAppException):
    """Raised when a startup connection check fails."""
    pass


class ConfigurationError(BaseAppException):
    """Raised when there's a configuration error."""
    pass
