"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Malformed or missing input; raised before any storage is touched"""

    pass


class NotFoundError(DomainException):
    """Referenced contribution or case does not exist"""

    pass


class PermissionDeniedError(DomainException):
    """Caller is authenticated but may not perform the action"""

    pass


class AuthenticationError(DomainException):
    """Identity provider did not resolve the caller"""

    pass


class StoreError(DomainException):
    """Record store rejected a read or write"""

    pass


class SideEffectFailure(DomainException):
    """Non-critical side effect failed (notification, ledger update)"""

    pass


class NotificationDeliveryError(SideEffectFailure):
    """Notification service returned an error or is unavailable"""

    pass
