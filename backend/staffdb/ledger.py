"""Schedule Ledger: time intervals attached to existing staff records."""
from typing import Any, Dict

from .directory import StaffDirectory
from .errors import NotFoundError, store_errors
from .schema import SCHEDULE, to_timestamp
from .store import DocumentStore
from .types import ScheduleList, ScheduleRecord


class ScheduleLedger:
    def __init__(self, store: DocumentStore, directory: StaffDirectory):
        self.store = store
        self.directory = directory

    def attach(self, staff_id: str, payload: Dict[str, Any]) -> ScheduleRecord:
        """Create a schedule for *staff_id*.

        The staff lookup and the insert run under one store transaction, so a
        concurrent writer cannot slip in between them. start/end order and
        overlap with other schedules are not checked.
        """
        with store_errors():
            record = {k: v for k, v in payload.items() if k != 'staffId'}
            record['start'] = to_timestamp(payload.get('start'), 'start')
            record['end'] = to_timestamp(payload.get('end'), 'end')
            record['staffId'] = staff_id
            with self.store.transaction():
                if self.directory.find(staff_id) is None:
                    raise NotFoundError('Staff not found')
                return self.store.insert_one(SCHEDULE, record)

    def list_by_staff(self, staff_id: str) -> ScheduleList:
        """All schedules for *staff_id*, earliest start first.

        Unknown staff ids yield an empty list.
        """
        with store_errors():
            return self.store.find(SCHEDULE, {'staffId': staff_id}, sort=[('start', 1), ('id', 1)])
