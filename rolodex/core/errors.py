"""Typed errors raised by the contact core."""
from __future__ import annotations


class CRMError(Exception):
    """Base error for contact core operations."""

    code = "CRM_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(CRMError):
    """Raised when a record is absent or belongs to another owner.

    Both cases share this error so callers cannot probe for other owners'
    records.
    """

    code = "RESOURCE_NOT_FOUND"


class InvalidStateError(CRMError):
    """Raised when an operation is not allowed in the record's current state."""

    code = "INVALID_STATE"


class ValidationError(CRMError):
    """Raised when input fails validation or violates a store constraint."""

    code = "VALIDATION_ERROR"


CONTACT_NOT_FOUND = "Contact not found"
VERSION_NOT_FOUND = "Version not found"
