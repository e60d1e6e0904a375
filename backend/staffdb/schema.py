"""
Collection schemas for the Staff and Schedule collections.

Staff:    businessId*, franchiseId*, name*, email, role (manager|staff), active
Schedule: staffId*, start*, end*, notes

(* = required). Both carry id / createdAt / updatedAt maintained by the store.
A partial unique index over (franchiseId, email) applies only when email is
a string, so records without an email never conflict.
"""
from datetime import datetime
from typing import Any

from .store import DocumentStore, DocumentValidationError, format_timestamp
from .types import Document

STAFF = 'Staff'
SCHEDULE = 'Schedule'

STAFF_ROLES = ('manager', 'staff')
STAFF_DEFAULTS = {'role': 'staff', 'active': True}

# Fields a staff patch may touch; tenant identifiers are fixed at creation
MUTABLE_STAFF_FIELDS = ('name', 'email', 'role', 'active')


def _require_text(doc: Document, field: str) -> None:
    value = doc.get(field)
    if value is None or not isinstance(value, str) or not value.strip():
        raise DocumentValidationError(field, f"Path `{field}` is required.")


def _optional_text(doc: Document, field: str) -> None:
    value = doc.get(field)
    if value is not None and not isinstance(value, str):
        raise DocumentValidationError(field, f"Path `{field}` must be a string.")


def validate_staff(doc: Document) -> None:
    for field in ('businessId', 'franchiseId', 'name'):
        _require_text(doc, field)
    _optional_text(doc, 'email')
    role = doc.get('role')
    if role not in STAFF_ROLES:
        raise DocumentValidationError(
            'role', f"`{role}` is not a valid enum value for path `role` ({', '.join(STAFF_ROLES)})."
        )
    if not isinstance(doc.get('active'), bool):
        raise DocumentValidationError('active', "Path `active` must be a boolean.")


def validate_schedule(doc: Document) -> None:
    for field in ('staffId', 'start', 'end'):
        _require_text(doc, field)
    _optional_text(doc, 'notes')


def register_schemas(store: DocumentStore) -> None:
    """Attach defaults, validators and indexes to a connected store."""
    store.register_schema(STAFF, defaults=STAFF_DEFAULTS, validator=validate_staff)
    store.create_index(STAFF, ('franchiseId', 'email'), unique=True, partial_string='email')
    store.register_schema(SCHEDULE, validator=validate_schedule)


def to_timestamp(value: Any, field: str) -> str:
    """Coerce a datetime or ISO-8601 string to the stored UTC timestamp form.

    Raises DocumentValidationError for anything that is not a valid date.
    """
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, str) and value.strip():
        try:
            return format_timestamp(datetime.fromisoformat(value.strip()))
        except ValueError:
            pass
    if value is None or value == '':
        raise DocumentValidationError(field, f"Path `{field}` is required.")
    raise DocumentValidationError(field, f"Cast to date failed for value \"{value}\" at path \"{field}\"")
