"""
Error Taxonomy

Typed failures surfaced by the approval core. Callers (the HTTP layer, scripts,
tests) branch on the class, never on the message text.
"""

from typing import Optional


class AccountTrackError(Exception):
    """Base class for every failure raised by the approval core"""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.resource = resource


class NotFoundError(AccountTrackError):
    """Referenced account, transaction, approval or notification is absent"""


class ConflictError(AccountTrackError):
    """Duplicate identifier, or a second outstanding approval for one account"""


class InvalidStateError(AccountTrackError):
    """Operation not allowed in the entity's current state"""


class ValidationError(AccountTrackError):
    """Malformed payload fields"""


class ResourceExhaustedError(AccountTrackError):
    """Identifier allocation ran out of attempts"""


class StoreError(AccountTrackError):
    """Backing store failure"""


class DuplicateRecordError(StoreError):
    """Compare-and-insert found an existing primary key"""
