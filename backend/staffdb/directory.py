"""
Staff Directory: create, list, update and soft-delete staff records.

Uniqueness of (franchiseId, email) is enforced by the store's partial index,
atomically with the write; there is no check-then-insert here.
"""
from typing import Any, Dict, Optional

from .errors import NotFoundError, ValidationError, store_errors
from .schema import MUTABLE_STAFF_FIELDS, STAFF
from .store import DocumentStore
from .types import StaffPage, StaffRecord

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

DUPLICATE_STAFF_MESSAGE = 'Duplicate staff for franchise/email'


class StaffDirectory:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, data: Dict[str, Any]) -> StaffRecord:
        """Insert a staff record; role and active fall back to schema defaults."""
        with store_errors(DUPLICATE_STAFF_MESSAGE):
            return self.store.insert_one(STAFF, data)

    def find(self, staff_id: str) -> Optional[StaffRecord]:
        with store_errors():
            return self.store.find_one(STAFF, {'id': staff_id})

    def list(self, business_id: Optional[str] = None, franchise_id: Optional[str] = None,
             page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> StaffPage:
        """Return one page of staff, newest first, with the unwindowed total.

        Without filters every tenant's records are returned.
        """
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        limit = min(limit, MAX_PAGE_SIZE)
        filters = {}
        if business_id:
            filters['businessId'] = business_id
        if franchise_id:
            filters['franchiseId'] = franchise_id
        with store_errors():
            items = self.store.find(
                STAFF, filters,
                sort=[('createdAt', -1), ('id', -1)],
                skip=(page - 1) * limit,
                limit=limit,
            )
            total = self.store.count(STAFF, filters)
        return {'items': items, 'total': total, 'page': page, 'limit': limit}

    def update(self, staff_id: str, patch: Dict[str, Any]) -> StaffRecord:
        """Apply an allow-listed partial update and return the new record."""
        illegal = sorted(k for k in patch if k not in MUTABLE_STAFF_FIELDS)
        if illegal:
            raise ValidationError(f"Fields cannot be updated: {', '.join(illegal)}")
        with store_errors(DUPLICATE_STAFF_MESSAGE):
            doc = self.store.update_one(STAFF, {'id': staff_id}, patch)
        if doc is None:
            raise NotFoundError('Not found')
        return doc

    def deactivate(self, staff_id: str) -> StaffRecord:
        """Soft-delete: set active=False. Idempotent for inactive records."""
        with store_errors():
            doc = self.store.update_one(STAFF, {'id': staff_id}, {'active': False})
        if doc is None:
            raise NotFoundError('Not found')
        return doc
