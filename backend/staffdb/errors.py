"""Domain errors raised by the Staff Directory and Schedule Ledger."""
from contextlib import contextmanager

from .store import DocumentValidationError, DuplicateKeyError, StoreError


class StaffServiceError(Exception):
    """Base class for errors surfaced to API callers."""


class ValidationError(StaffServiceError):
    """Required input missing or malformed."""


class ConflictError(StaffServiceError):
    """A uniqueness constraint was violated."""


class NotFoundError(StaffServiceError):
    """A referenced identifier does not resolve."""


class InternalError(StaffServiceError):
    """Unclassified persistence or infrastructure fault."""


@contextmanager
def store_errors(conflict_message: str = 'Duplicate key'):
    """Translate store exceptions raised inside the block into domain errors."""
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError(conflict_message) from e
    except DocumentValidationError as e:
        raise ValidationError(str(e)) from e
    except StoreError as e:
        raise InternalError(str(e)) from e
