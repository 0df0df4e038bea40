"""Exception types raised by the record store and the tracker."""


class CarbookError(Exception):
    """Base class for all carbook errors."""

    def __init__(self, message: str = "", committed_id=None):
        super().__init__(message)
        # Id of a record an earlier step of the same workflow already wrote
        self.committed_id = committed_id


class NotFoundError(CarbookError):
    """Unknown collection, or a record that must exist is missing."""


class ValidationError(CarbookError):
    """A caller-supplied record or bundle is malformed."""


class StorageError(CarbookError):
    """The underlying storage engine failed (open, write or I/O)."""
