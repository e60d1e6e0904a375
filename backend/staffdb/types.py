"""Common type aliases for the staff service storage layer."""
from typing import Any

# A single stored document (field name -> JSON value)
Document = dict[str, Any]

# Field-equality filter and (field, 1 | -1) sort specification
Filter = dict[str, Any]
SortSpec = list[tuple[str, int]]

# Domain record aliases
StaffRecord = Document
ScheduleRecord = Document
StaffPage = dict[str, Any]

# List aliases
ScheduleList = list[ScheduleRecord]
