"""
Error Taxonomy
==============

Every failure the panel can surface to an admin derives from ShopDeskError.

- ValidationError: local check failed, no network call was made
- TransportError: the request never produced a usable response
- ServiceError: the remote side answered and reported a failure
- ConfigurationError: missing settings detected at startup
"""


class ShopDeskError(Exception):
    """Base class for ShopDesk errors"""

    def __init__(self, message=None, details=None):
        super().__init__(message or '')
        self.message = message
        self.details = details or {}

    def __str__(self):
        return self.message or self.__class__.__name__


class ValidationError(ShopDeskError):
    pass


class TransportError(ShopDeskError):
    pass


class ServiceError(ShopDeskError):
    """Remote service reported success: false (or an HTTP error)"""

    def __init__(self, message=None, details=None, status_code=None):
        super().__init__(message, details)
        self.status_code = status_code


class ConfigurationError(ShopDeskError):
    pass
