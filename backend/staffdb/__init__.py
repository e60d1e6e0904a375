"""Storage and domain layer for the staff service."""
from .directory import StaffDirectory
from .ledger import ScheduleLedger
from .schema import register_schemas
from .store import DocumentStore

__all__ = ['DocumentStore', 'ScheduleLedger', 'StaffDirectory', 'register_schemas']
