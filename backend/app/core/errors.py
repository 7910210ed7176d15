"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class ReceiptError(Exception):
    """Base class for every error raised by the receipt services."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class InvoiceValidationError(ReceiptError):
    """Field-level validation failure. ``errors`` maps field name to message."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(errors.values()))
        self.errors = dict(errors)


class ConfigurationError(ReceiptError):
    """The invoice store is not configured or cannot be reached."""


class PersistenceError(ReceiptError):
    """The invoice store rejected a read or write."""


class SubmissionError(ReceiptError):
    """A submit failed at the persistence boundary.

    ``kind`` is one of ``configuration``, ``persistence`` or ``unknown``.
    """

    def __init__(self, message: str, kind: str) -> None:
        super().__init__(message)
        self.kind = kind


class EditorBusyError(ReceiptError):
    pass


class UnsavedChangesError(ReceiptError):
    pass


class InvoiceNotFoundError(ReceiptError):
    pass


class DraftNotFoundError(ReceiptError):
    pass
