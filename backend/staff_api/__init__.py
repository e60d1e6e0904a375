"""REST API for staff records and their schedules."""
