"""
Error types raised by the inventory store.

Callers only need to tell "failed" from "succeeded"; the subclasses exist
so tests and screens can be specific when they want to.
"""


class InventoryError(Exception):
    """Base class for every error raised by the store."""


class NotInitializedError(InventoryError):
    """The store was used before initialize() completed."""


class StorageError(InventoryError):
    """Underlying SQLite failure, including failed migrations."""


class UniquenessViolation(InventoryError):
    """A name that must be unique already exists."""


class ReferentialIntegrityError(InventoryError):
    """A foreign key is missing, or the last row of a kind was removed."""


class NotFoundError(InventoryError):
    """No row exists with the requested id."""


class StatusTransitionError(InventoryError):
    """The requested item status change is not allowed from its current state."""
