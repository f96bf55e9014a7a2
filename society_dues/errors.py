"""Custom exception classes for the maintenance tracker.

Provides domain-specific exceptions for clear error handling and reporting.
"""


class SocietyError(Exception):
    """Base exception for maintenance tracker errors."""

    pass


class AuthRejectedError(SocietyError):
    """Sign-in rejected (bad credentials, unknown unit, identity service failure)."""

    pass


class NotSignedInError(SocietyError):
    """Operation requires an active session."""

    pass


class PermissionDeniedError(SocietyError):
    """Active session lacks admin authority for the operation."""

    pass


class DocumentStoreError(SocietyError):
    """Remote document store error."""

    pass


class DocumentReadError(DocumentStoreError):
    """Document could not be read or a subscription failed."""

    pass


class DocumentWriteError(DocumentStoreError):
    """Document could not be created or updated."""

    pass


class UnitNotFoundError(SocietyError):
    """Referenced unit id does not exist."""

    pass


class ExpenseNotFoundError(SocietyError):
    """Referenced expense id does not exist."""

    pass


class InvalidPeriodError(SocietyError):
    """Period index outside 0-11."""

    pass


__all__ = [
    "SocietyError",
    "AuthRejectedError",
    "NotSignedInError",
    "PermissionDeniedError",
    "DocumentStoreError",
    "DocumentReadError",
    "DocumentWriteError",
    "UnitNotFoundError",
    "ExpenseNotFoundError",
    "InvalidPeriodError",
]
