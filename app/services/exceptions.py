class ServiceError(Exception):
    """Base exception for service-level errors."""


class AuthenticationError(ServiceError):
    pass


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class PasswordMismatch(ServiceError):
    pass


class ValidationRejected(ServiceError):
    """A single uploaded file was refused by the asset policy."""


class UnsupportedMediaType(ValidationRejected):
    pass


class PayloadTooLarge(ValidationRejected):
    pass


class IntegrityFault(ServiceError):
    """A stored record violates the record/file invariant.

    Never substitute empty data for this; it must reach the caller.
    """


class StorageUnavailable(ServiceError):
    """The database or the filesystem could not be reached. Safe to retry."""
