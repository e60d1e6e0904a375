"""API Routers package."""
from . import staff, schedule

__all__ = ['staff', 'schedule']
